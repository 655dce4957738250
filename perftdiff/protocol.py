"""Parsing of ``<move>: <count>`` divide output shared by external backends."""

from __future__ import annotations

from typing import Iterable

import chess

from .constants import DIVIDE_SEPARATOR
from .errors import ProtocolViolation
from .perft import NodeCountList
from .position import parse_move


def parse_divide_line(line: str) -> tuple[chess.Move, int]:
    text = line.strip()
    token, sep, count_text = text.partition(DIVIDE_SEPARATOR)
    if not sep or not token:
        raise ProtocolViolation(f"Failed to parse perft output {line!r}")

    count_text = count_text.strip()
    if not (count_text.isascii() and count_text.isdigit()):
        raise ProtocolViolation(f"Failed to parse perft count in {line!r}")

    return parse_move(token), int(count_text)


def parse_divide_output(lines: Iterable[str]) -> NodeCountList:
    """Parse divide lines until the first blank line or the end of input."""
    result: NodeCountList = []
    for line in lines:
        if not line.strip():
            break
        result.append(parse_divide_line(line))
    return result
