"""Session state: the path being inspected and the diff at its tip."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Iterator

import chess

from .constants import EXPECTED, FOUND
from .diff import MoveDiff, merge, mismatches, totals
from .dispatcher import PerftDispatcher, ResultSlot
from .errors import BackendError, IllegalMove
from .perft import NodeCountList
from .position import apply_move, to_fen

log = logging.getLogger(__name__)


class Command(str, Enum):
    UP = "up"
    DOWN = "down"
    SELECT = "select"
    BACK = "back"
    REFRESH = "refresh"
    QUIT = "quit"

    @classmethod
    def from_key(cls, key: str) -> "Command | None":
        return _KEY_BINDINGS.get(key.strip().lower())


_KEY_BINDINGS = {
    "k": Command.UP,
    "up": Command.UP,
    "j": Command.DOWN,
    "down": Command.DOWN,
    "l": Command.SELECT,
    "enter": Command.SELECT,
    "": Command.SELECT,
    "select": Command.SELECT,
    "h": Command.BACK,
    "back": Command.BACK,
    "r": Command.REFRESH,
    "refresh": Command.REFRESH,
    "q": Command.QUIT,
    "esc": Command.QUIT,
    "quit": Command.QUIT,
}


@dataclass(slots=True)
class SessionSummary:
    starting_fen: str
    current_fen: str
    search_depth: int
    current_depth: int
    remaining_depth: int
    total_found: int
    total_expected: int
    mismatched_moves: int
    found_pending: bool
    expected_pending: bool
    found_error: str | None
    expected_error: str | None

    @property
    def settled(self) -> bool:
        return not (self.found_pending or self.expected_pending)


class Navigator:
    """Walks the game tree, re-querying both dispatchers at every node.

    ``found`` serves the candidate backend and ``expected`` the reference one.
    Each side keeps the id of its latest submitted query; slot contents with
    any other id belong to a node the operator already left and are ignored.
    """

    def __init__(
        self,
        found: PerftDispatcher,
        expected: PerftDispatcher,
        root: chess.Board,
        max_depth: int,
    ) -> None:
        if max_depth < 1:
            raise ValueError("max_depth must be >= 1")

        self.found = found
        self.expected = expected
        self.max_depth = max_depth
        self.found_slot = ResultSlot()
        self.expected_slot = ResultSlot()
        self.path: list[chess.Board] = [root.copy(stack=False)]
        self.moves: list[chess.Move] = []
        self.diffs: list[MoveDiff] = []
        self.cursor = 0
        self.terminated = False
        self.errors: dict[str, BackendError | None] = {FOUND: None, EXPECTED: None}
        self._submitted = {FOUND: 0, EXPECTED: 0}
        self._settled = {FOUND: False, EXPECTED: False}

        self.submit_queries()

    @property
    def root(self) -> chess.Board:
        return self.path[0]

    @property
    def current(self) -> chess.Board:
        return self.path[-1]

    @property
    def depth(self) -> int:
        return len(self.path)

    @property
    def remaining_depth(self) -> int:
        return max(self.max_depth - len(self.path), 0)

    @property
    def selected(self) -> MoveDiff | None:
        if not self.diffs:
            return None
        return self.diffs[self.cursor]

    @property
    def moves_played(self) -> list[str]:
        return [move.uci() for move in self.moves]

    @property
    def settled(self) -> bool:
        return all(self._settled.values())

    def pending(self, side: str) -> bool:
        return not self._settled[side]

    def submit_queries(self) -> None:
        board = self.current
        depth = self.remaining_depth
        for side, dispatcher, slot in self._sides():
            self.errors[side] = None
            self._settled[side] = False
            try:
                self._submitted[side] = dispatcher.submit(board, depth, slot)
            except BackendError as exc:
                log.warning("%s: could not submit query: %s", side, exc)
                self._submitted[side] = 0
                self.errors[side] = exc
                self._settled[side] = True

    def refresh(self) -> bool:
        """Rebuild the diff list from whatever both slots currently hold.

        Returns True once both sides have answered the latest queries.
        """
        results: dict[str, NodeCountList] = {}
        for side, _, slot in self._sides():
            results[side] = []
            outcome = slot.read()
            if outcome is None or outcome.request_id != self._submitted[side]:
                continue
            self._settled[side] = True
            if outcome.ok:
                self.errors[side] = None
                results[side] = outcome.result or []
            else:
                self.errors[side] = outcome.error

        self.diffs = merge(results[FOUND], results[EXPECTED])
        self._clamp_cursor()
        return self.settled

    def wait_until_settled(self, timeout: float | None = None, interval: float = 0.01) -> bool:
        deadline = None if timeout is None else time.monotonic() + timeout
        while not self.refresh():
            if deadline is not None and time.monotonic() >= deadline:
                return False
            time.sleep(interval)
        return True

    def handle(self, command: Command) -> None:
        if command is Command.UP:
            self.move_up()
        elif command is Command.DOWN:
            self.move_down()
        elif command is Command.SELECT:
            self.select()
        elif command is Command.BACK:
            self.back()
        elif command is Command.REFRESH:
            self.refresh()
        elif command is Command.QUIT:
            self.terminated = True

    def move_up(self) -> None:
        if self.diffs:
            self.cursor = max(self.cursor - 1, 0)

    def move_down(self) -> None:
        if self.diffs:
            self.cursor = min(self.cursor + 1, len(self.diffs) - 1)

    def select(self) -> None:
        if len(self.path) >= self.max_depth or not self.diffs:
            return

        move = self.diffs[self.cursor].move
        try:
            child = apply_move(self.current, move)
        except IllegalMove as exc:
            log.info("not descending: %s", exc)
            return

        self.path.append(child)
        self.moves.append(move)
        self._descend_or_return()

    def back(self) -> None:
        if len(self.path) == 1:
            return
        self.path.pop()
        self.moves.pop()
        self._descend_or_return()

    def summary(self) -> SessionSummary:
        total_found, total_expected = totals(self.diffs)
        return SessionSummary(
            starting_fen=to_fen(self.root),
            current_fen=to_fen(self.current),
            search_depth=self.max_depth,
            current_depth=self.depth,
            remaining_depth=self.remaining_depth,
            total_found=total_found,
            total_expected=total_expected,
            mismatched_moves=len(mismatches(self.diffs)),
            found_pending=self.pending(FOUND),
            expected_pending=self.pending(EXPECTED),
            found_error=_describe(self.errors[FOUND]),
            expected_error=_describe(self.errors[EXPECTED]),
        )

    def close(self) -> None:
        self.found.close()
        self.expected.close()

    def __enter__(self) -> "Navigator":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _descend_or_return(self) -> None:
        self.cursor = 0
        self.submit_queries()
        self.refresh()

    def _clamp_cursor(self) -> None:
        if not self.diffs:
            self.cursor = 0
        else:
            self.cursor = min(self.cursor, len(self.diffs) - 1)

    def _sides(self) -> Iterator[tuple[str, PerftDispatcher, ResultSlot]]:
        yield FOUND, self.found, self.found_slot
        yield EXPECTED, self.expected, self.expected_slot


def _describe(error: BackendError | None) -> str | None:
    if error is None:
        return None
    return f"{type(error).__name__}: {error}"
