"""Canonical text encodings for positions and moves.

Positions are ``chess.Board`` values and moves are ``chess.Move`` values from
python-chess. Boards handed around by this package are never mutated in
place: :func:`apply_move` returns a fresh board.
"""

from __future__ import annotations

import chess

from .errors import IllegalMove, InvalidPosition, MoveParseError


def parse_fen(text: str) -> chess.Board:
    try:
        return chess.Board(text.strip())
    except ValueError as exc:
        raise InvalidPosition(f"Invalid FEN {text!r}: {exc}") from exc


def to_fen(board: chess.Board) -> str:
    # Keep the en-passant target whenever it is set so the encoding is lossless.
    return board.fen(en_passant="fen")


def parse_move(token: str) -> chess.Move:
    try:
        move = chess.Move.from_uci(token.strip())
    except ValueError as exc:
        raise MoveParseError(f"Unparsable move {token!r}") from exc
    if not move:
        raise MoveParseError(f"Null move {token!r} is not a perft move")
    return move


def move_key(move: chess.Move) -> str:
    return move.uci()


def apply_move(board: chess.Board, move: chess.Move) -> chess.Board:
    if not board.is_legal(move):
        raise IllegalMove(f"{move.uci()} is not legal in {to_fen(board)}")
    child = board.copy(stack=False)
    child.push(move)
    return child
