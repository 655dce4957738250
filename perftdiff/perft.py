"""Perft utilities backed by the python-chess move generator."""

from __future__ import annotations

import chess

NodeCountList = list[tuple[chess.Move, int]]


def _count(board: chess.Board, depth: int) -> int:
    if depth == 0:
        return 1

    moves = list(board.legal_moves)
    if depth == 1:
        return len(moves)

    nodes = 0
    for move in moves:
        board.push(move)
        nodes += _count(board, depth - 1)
        board.pop()
    return nodes


def perft(board: chess.Board, depth: int) -> int:
    if depth < 0:
        raise ValueError("Depth must be >= 0")
    return _count(board.copy(stack=False), depth)


def perft_divide(board: chess.Board, depth: int) -> NodeCountList:
    """Leaf counts per root move, in move-generation order.

    Depth 0 has nothing to divide by and yields an empty list.
    """
    if depth < 0:
        raise ValueError("Depth must be >= 0")
    if depth == 0:
        return []

    work = board.copy(stack=False)
    result: NodeCountList = []
    for move in list(work.legal_moves):
        work.push(move)
        result.append((move, _count(work, depth - 1)))
        work.pop()
    return result
