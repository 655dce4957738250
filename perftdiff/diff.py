"""Merging two divide results into per-move records."""

from __future__ import annotations

from dataclasses import dataclass

import chess

from .perft import NodeCountList
from .position import move_key


@dataclass(frozen=True, slots=True)
class MoveDiff:
    move: chess.Move
    found: int | None = None
    expected: int | None = None

    def __post_init__(self) -> None:
        if self.found is None and self.expected is None:
            raise ValueError(f"MoveDiff for {self.move.uci()} has no counts")

    @property
    def key(self) -> str:
        return move_key(self.move)

    @property
    def matches(self) -> bool:
        return self.found == self.expected


def merge(found: NodeCountList, expected: NodeCountList) -> list[MoveDiff]:
    """Union of both lists keyed by UCI, sorted by UCI string.

    Sorting by the key rather than keeping backend order keeps the cursor on
    the same row across refreshes when the move set does not change.
    """
    counts: dict[str, tuple[chess.Move, int | None, int | None]] = {}

    for move, count in found:
        counts[move_key(move)] = (move, count, None)

    for move, count in expected:
        key = move_key(move)
        if key in counts:
            known_move, found_count, _ = counts[key]
            counts[key] = (known_move, found_count, count)
        else:
            counts[key] = (move, None, count)

    return [
        MoveDiff(move=move, found=found_count, expected=expected_count)
        for _, (move, found_count, expected_count) in sorted(counts.items())
    ]


def mismatches(diffs: list[MoveDiff]) -> list[MoveDiff]:
    return [diff for diff in diffs if not diff.matches]


def totals(diffs: list[MoveDiff]) -> tuple[int, int]:
    found_total = sum(diff.found or 0 for diff in diffs)
    expected_total = sum(diff.expected or 0 for diff in diffs)
    return found_total, expected_total
