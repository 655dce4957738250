"""Shared defaults and protocol tokens."""

from __future__ import annotations

START_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"

DEFAULT_DEPTH = 5
DEFAULT_MAX_PENDING = 16

# Seconds allowed for a persistent engine to exit after "quit".
SHUTDOWN_GRACE_S = 1.0

CMD_UCI = "uci"
CMD_ISREADY = "isready"
CMD_POSITION_FEN = "position fen"
CMD_GO_PERFT = "go perft"
CMD_QUIT = "quit"

TOKEN_UCIOK = "uciok"
TOKEN_READYOK = "readyok"

DIVIDE_SEPARATOR = ": "

FOUND = "found"
EXPECTED = "expected"
