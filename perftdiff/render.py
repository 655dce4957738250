"""Plain-text rendering of a session for the command line."""

from __future__ import annotations

from .diff import MoveDiff
from .navigator import Navigator, SessionSummary

HELP = "k Up, j Down, l/Enter Select, h Back, r Refresh, q Quit"


def _count(value: int | None) -> str:
    return "-" if value is None else str(value)


def render_table(diffs: list[MoveDiff], cursor: int | None = None) -> str:
    lines = [f"   {'move':<8}{'found':>12}{'expected':>12}"]
    for index, diff in enumerate(diffs):
        marker = ">" if index == cursor else " "
        flag = " " if diff.matches else "!"
        lines.append(f"{marker}{flag} {diff.key:<8}{_count(diff.found):>12}{_count(diff.expected):>12}")
    if not diffs:
        lines.append("   (no moves)")
    return "\n".join(lines)


def render_info(summary: SessionSummary, moves_played: list[str]) -> str:
    lines = [
        f"Starting position: {summary.starting_fen}",
        f"Current position:  {summary.current_fen}",
        f"Moves played:      {' '.join(moves_played) or '-'}",
        f"Search depth:      {summary.search_depth}",
        f"Current depth:     {summary.current_depth}",
        f"Total found:       {summary.total_found}",
        f"Total expected:    {summary.total_expected}",
        f"Mismatched moves:  {summary.mismatched_moves}",
    ]
    for side, pending, error in (
        ("found", summary.found_pending, summary.found_error),
        ("expected", summary.expected_pending, summary.expected_error),
    ):
        if error is not None:
            lines.append(f"{side}: error ({error})")
        elif pending:
            lines.append(f"{side}: waiting for results")
    return "\n".join(lines)


def render_session(navigator: Navigator) -> str:
    return "\n\n".join(
        [
            render_table(navigator.diffs, navigator.cursor),
            render_info(navigator.summary(), navigator.moves_played),
            HELP,
        ]
    )
