"""One worker thread per backend, serialising perft queries into result slots."""

from __future__ import annotations

import itertools
import logging
import queue
import threading
from dataclasses import dataclass

import chess

from .backends import PerftBackend
from .constants import DEFAULT_MAX_PENDING
from .errors import BackendError, DispatcherBusy, DispatcherClosed
from .perft import NodeCountList
from .position import to_fen

log = logging.getLogger(__name__)

_request_ids = itertools.count(1)
_request_ids_lock = threading.Lock()


def next_request_id() -> int:
    with _request_ids_lock:
        return next(_request_ids)


@dataclass(frozen=True, slots=True)
class QueryOutcome:
    request_id: int
    fen: str
    depth: int
    result: NodeCountList | None = None
    error: BackendError | None = None

    def __post_init__(self) -> None:
        if (self.result is None) == (self.error is None):
            raise ValueError("QueryOutcome needs exactly one of result or error")

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class QueryRequest:
    request_id: int
    board: chess.Board
    depth: int
    slot: "ResultSlot"


class ResultSlot:
    """Latest completed outcome for one backend, guarded by a lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._outcome: QueryOutcome | None = None
        self._latest_request_id = 0

    @property
    def latest_request_id(self) -> int:
        with self._lock:
            return self._latest_request_id

    def mark_submitted(self, request_id: int) -> None:
        with self._lock:
            self._latest_request_id = max(self._latest_request_id, request_id)

    def write(self, outcome: QueryOutcome) -> None:
        with self._lock:
            self._outcome = outcome

    def read(self) -> QueryOutcome | None:
        with self._lock:
            return self._outcome


class PerftDispatcher:
    """Owns a backend and runs its queries strictly in submission order.

    ``max_pending`` bounds the queue; 0 means unbounded.
    """

    def __init__(
        self,
        backend: PerftBackend,
        name: str | None = None,
        max_pending: int = DEFAULT_MAX_PENDING,
    ) -> None:
        self.backend = backend
        self.name = name or backend.name
        self._queue: queue.Queue[QueryRequest | None] = queue.Queue(maxsize=max_pending)
        self._closed = False
        self._worker = threading.Thread(target=self._run, name=f"perft-{self.name}", daemon=True)
        self._worker.start()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def closed(self) -> bool:
        return self._closed

    def submit(self, board: chess.Board, depth: int, slot: ResultSlot) -> int:
        if self._closed:
            raise DispatcherClosed(f"{self.name} dispatcher is closed")

        request = QueryRequest(
            request_id=next_request_id(),
            board=board.copy(stack=False),
            depth=depth,
            slot=slot,
        )
        try:
            self._queue.put_nowait(request)
        except queue.Full as exc:
            raise DispatcherBusy(f"{self.name} already has {self.pending} queued queries") from exc

        slot.mark_submitted(request.request_id)
        log.debug("%s: queued #%d depth %d", self.name, request.request_id, depth)
        return request.request_id

    def close(self, timeout: float | None = 5.0) -> None:
        if self._closed:
            return
        self._closed = True

        try:
            self._queue.put(None, timeout=timeout)
        except queue.Full:
            log.warning("%s: queue still full at shutdown", self.name)
        self._worker.join(timeout)
        if self._worker.is_alive():
            log.warning("%s: worker still busy, closing backend underneath it", self.name)
        self.backend.close()

    def __enter__(self) -> "PerftDispatcher":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _run(self) -> None:
        while True:
            request = self._queue.get()
            try:
                if request is None:
                    return
                if self._closed:
                    continue
                if request.request_id < request.slot.latest_request_id:
                    log.debug("%s: skipping superseded #%d", self.name, request.request_id)
                    continue
                request.slot.write(self._execute(request))
            finally:
                self._queue.task_done()

    def _execute(self, request: QueryRequest) -> QueryOutcome:
        fen = to_fen(request.board)
        try:
            result = self.backend.divide(request.board, request.depth)
        except BackendError as exc:
            log.warning("%s: query #%d failed: %s", self.name, request.request_id, exc)
            return QueryOutcome(request.request_id, fen, request.depth, error=exc)
        except Exception as exc:  # noqa: BLE001
            log.exception("%s: query #%d crashed", self.name, request.request_id)
            error = BackendError(f"{type(exc).__name__}: {exc}")
            return QueryOutcome(request.request_id, fen, request.depth, error=error)
        return QueryOutcome(request.request_id, fen, request.depth, result=result)
