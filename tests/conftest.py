"""Shared test doubles for backends, dispatchers and external engines."""

from __future__ import annotations

import sys
import threading
import time
from pathlib import Path

import chess
import pytest

from perftdiff.backends import EmbeddedBackend, PerftBackend
from perftdiff.dispatcher import QueryOutcome, ResultSlot, next_request_id
from perftdiff.errors import BackendError, ProtocolViolation
from perftdiff.perft import NodeCountList
from perftdiff.position import to_fen

FAKE_ENGINE = Path(__file__).resolve().parent / "fixtures" / "fake_engine.py"


def fake_engine_command(*options: str) -> list[str]:
    return [sys.executable, str(FAKE_ENGINE), *options]


@pytest.fixture
def fake_engine() -> list[str]:
    return fake_engine_command()


class FilteringBackend(EmbeddedBackend):
    """Reference divide with some moves dropped, as a buggy generator would."""

    name = "filtering"

    def __init__(self, omit: set[str]) -> None:
        self.omit = omit

    def divide(self, board: chess.Board, depth: int) -> NodeCountList:
        return [(move, count) for move, count in super().divide(board, depth) if move.uci() not in self.omit]


class FlakyBackend(EmbeddedBackend):
    name = "flaky"

    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.calls = 0

    def divide(self, board: chess.Board, depth: int) -> NodeCountList:
        self.calls += 1
        if self.calls <= self.failures:
            raise ProtocolViolation("Failed to parse perft output 'e2e4 20'")
        return super().divide(board, depth)


class GatedBackend(PerftBackend):
    """Blocks every query until ``release`` is set and records the depths asked for."""

    name = "gated"

    def __init__(self) -> None:
        self.started = threading.Event()
        self.release = threading.Event()
        self.depths: list[int] = []
        self.closed = False

    def divide(self, board: chess.Board, depth: int) -> NodeCountList:
        self.started.set()
        self.release.wait(timeout=10)
        self.depths.append(depth)
        return EmbeddedBackend().divide(board, depth)

    def close(self) -> None:
        self.closed = True


class ManualDispatcher:
    """Records submissions; tests decide when and how each one completes."""

    def __init__(self) -> None:
        self.submitted: list[tuple[int, chess.Board, int, ResultSlot]] = []
        self.closed = False
        self.busy: BackendError | None = None

    def submit(self, board: chess.Board, depth: int, slot: ResultSlot) -> int:
        if self.busy is not None:
            raise self.busy
        request_id = next_request_id()
        self.submitted.append((request_id, board, depth, slot))
        slot.mark_submitted(request_id)
        return request_id

    def complete(
        self,
        result: NodeCountList | None = None,
        error: BackendError | None = None,
        index: int = -1,
    ) -> None:
        request_id, board, depth, slot = self.submitted[index]
        if result is None and error is None:
            result = EmbeddedBackend().divide(board, depth)
        slot.write(QueryOutcome(request_id, to_fen(board), depth, result=result, error=error))

    def close(self) -> None:
        self.closed = True


def wait_for_outcome(slot: ResultSlot, request_id: int, timeout: float = 10.0) -> QueryOutcome:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        outcome = slot.read()
        if outcome is not None and outcome.request_id == request_id:
            return outcome
        time.sleep(0.005)
    raise AssertionError(f"no outcome for request {request_id}")
