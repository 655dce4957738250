import chess
import pytest

from perftdiff.errors import IllegalMove, InvalidPosition, MoveParseError, ProtocolViolation
from perftdiff.position import apply_move, move_key, parse_fen, parse_move, to_fen


@pytest.mark.parametrize(
    "fen",
    [
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1",
        "rnbqkbnr/pppp1ppp/8/4p3/8/8/PPPPPPPP/RNBQKBNR w KQkq e6 0 2",
        "r3k2r/p1ppqpb1/bn2pnp1/3PN3/1p2P3/2N2Q1p/PPPBBPPP/R3K2R w KQkq - 0 1",
        "4k3/8/8/8/8/8/8/R3K2R b Q - 17 42",
        "8/2p5/3p4/KP5r/1R3p1k/8/4P1P1/8 w - - 0 1",
    ],
)
def test_fen_round_trip_preserves_every_field(fen: str) -> None:
    board = parse_fen(fen)
    again = parse_fen(to_fen(board))

    assert to_fen(board) == fen
    assert again.board_fen() == board.board_fen()
    assert again.turn == board.turn
    assert again.castling_rights == board.castling_rights
    assert again.ep_square == board.ep_square
    assert again.halfmove_clock == board.halfmove_clock
    assert again.fullmove_number == board.fullmove_number


def test_en_passant_target_survives_after_double_push() -> None:
    board = apply_move(parse_fen("4k3/8/8/8/8/8/4P3/4K3 w - - 0 1"), chess.Move.from_uci("e2e4"))
    assert to_fen(board) == "4k3/8/8/8/4P3/8/8/4K3 b - e3 0 1"


def test_invalid_fen_rejected() -> None:
    with pytest.raises(InvalidPosition):
        parse_fen("not a fen")


@pytest.mark.parametrize("token", ["e2e4", "e7e8q", "a7b8n", " g1f3 "])
def test_parse_move_accepts_uci(token: str) -> None:
    assert move_key(parse_move(token)) == token.strip()


@pytest.mark.parametrize("token", ["", "e2", "z9z9", "e2e4x", "0000", "Nf3"])
def test_parse_move_rejects_bad_tokens(token: str) -> None:
    with pytest.raises(MoveParseError):
        parse_move(token)


def test_move_parse_error_is_a_protocol_violation() -> None:
    assert issubclass(MoveParseError, ProtocolViolation)


def test_apply_move_returns_new_board() -> None:
    board = parse_fen("rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1")
    child = apply_move(board, parse_move("g1f3"))

    assert child is not board
    assert board.turn == chess.WHITE
    assert child.turn == chess.BLACK
    assert to_fen(child) == "rnbqkbnr/pppppppp/8/8/8/5N2/PPPPPPPP/RNBQKB1R b KQkq - 1 1"


def test_apply_illegal_move_raises() -> None:
    with pytest.raises(IllegalMove):
        apply_move(chess.Board(), parse_move("e2e5"))
