"""Persistent engine backend speaking a UCI-style line protocol.

The engine process is started once and reused for every query::

    > uci                 < ... uciok
    > isready             < readyok
    > position fen <fen>
    > isready             < readyok
    > go perft <depth>    < e2e4: 20
                          < ...
                          < (blank line)

Lines are pumped from the engine's stdout by a reader thread so that every
read can honour a deadline.
"""

from __future__ import annotations

import logging
import queue
import subprocess
import threading
import time
from typing import Iterator

import chess

from .backends import PerftBackend, ProgramCommand, command_argv
from .constants import (
    CMD_GO_PERFT,
    CMD_ISREADY,
    CMD_POSITION_FEN,
    CMD_QUIT,
    CMD_UCI,
    SHUTDOWN_GRACE_S,
    TOKEN_READYOK,
    TOKEN_UCIOK,
)
from .errors import (
    BackendError,
    BackendIOError,
    BackendTimeout,
    ProcessSpawnFailed,
    ProtocolViolation,
)
from .perft import NodeCountList
from .position import to_fen
from .protocol import parse_divide_output

log = logging.getLogger(__name__)

_EOF = None


class EngineBackend(PerftBackend):
    def __init__(
        self,
        command: ProgramCommand,
        timeout: float | None = None,
        handshake_timeout: float | None = None,
    ) -> None:
        self._argv = command_argv(command)
        self._timeout = timeout
        self._lines: queue.Queue[str | ProtocolViolation | None] = queue.Queue()
        self._ready_owed = 0
        self._closed = False
        self.name = self._argv[-1]

        try:
            self._proc = subprocess.Popen(
                self._argv,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
                encoding="utf-8",
                errors="strict",
                bufsize=1,
            )
        except OSError as exc:
            raise ProcessSpawnFailed(f"Could not launch {self._argv[0]}: {exc}") from exc

        self._reader = threading.Thread(
            target=self._pump_output,
            name=f"engine-reader-{self._proc.pid}",
            daemon=True,
        )
        self._reader.start()
        log.debug("started engine %s (pid %d)", self._argv, self._proc.pid)

        try:
            self._handshake(self._deadline(handshake_timeout))
        except BackendError:
            self.close()
            raise

    @property
    def running(self) -> bool:
        return not self._closed and self._proc.poll() is None

    def divide(self, board: chess.Board, depth: int) -> NodeCountList:
        if self._closed:
            raise BackendIOError(f"{self.name} has been closed")
        if depth == 0:
            return []

        deadline = self._deadline(self._timeout)
        self._send(f"{CMD_POSITION_FEN} {to_fen(board)}")
        self._sync(deadline)
        self._send(f"{CMD_GO_PERFT} {depth}")
        result = parse_divide_output(self._iter_lines(deadline))
        log.debug("%s: %d moves at depth %d", self.name, len(result), depth)
        return result

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        if self._proc.poll() is None:
            try:
                self._send(CMD_QUIT)
            except BackendIOError:
                log.debug("%s: could not send quit", self.name)
            try:
                self._proc.wait(timeout=SHUTDOWN_GRACE_S)
            except subprocess.TimeoutExpired:
                log.warning("%s did not quit, killing pid %d", self.name, self._proc.pid)
                self._proc.kill()
                self._proc.wait()

        if self._proc.stdin is not None:
            try:
                self._proc.stdin.close()
            except OSError:
                log.debug("%s: stdin already broken", self.name)
        self._reader.join(timeout=SHUTDOWN_GRACE_S)
        if not self._reader.is_alive() and self._proc.stdout is not None:
            self._proc.stdout.close()

    def _handshake(self, deadline: float | None) -> None:
        self._send(CMD_UCI)
        self._wait_for(TOKEN_UCIOK, deadline)
        self._sync(deadline)

    def _sync(self, deadline: float | None) -> None:
        # Every isready is answered by one readyok; lines left over from an
        # aborted query are drained until the last one arrives.
        self._send(CMD_ISREADY)
        self._ready_owed += 1
        while self._ready_owed:
            self._wait_for(TOKEN_READYOK, deadline)
            self._ready_owed -= 1

    def _wait_for(self, token: str, deadline: float | None) -> None:
        while True:
            line = self._read_line(deadline)
            if line.strip() == token:
                return

    def _iter_lines(self, deadline: float | None) -> Iterator[str]:
        while True:
            yield self._read_line(deadline)

    def _read_line(self, deadline: float | None) -> str:
        if deadline is None:
            remaining = None
        else:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise BackendTimeout(f"{self.name} timed out after {self._timeout}s")

        try:
            line = self._lines.get(timeout=remaining)
        except queue.Empty as exc:
            raise BackendTimeout(f"{self.name} timed out waiting for output") from exc

        if line is _EOF:
            self._lines.put(_EOF)
            raise BackendIOError(f"{self.name} closed its output (exit status {self._proc.poll()})")
        if isinstance(line, ProtocolViolation):
            raise line
        return line

    def _send(self, command: str) -> None:
        stdin = self._proc.stdin
        if stdin is None:
            raise BackendIOError(f"{self.name} has no stdin")
        log.debug("%s < %s", self.name, command)
        try:
            stdin.write(command + "\n")
            stdin.flush()
        except (OSError, ValueError) as exc:
            raise BackendIOError(f"Could not write to {self.name}: {exc}") from exc

    def _pump_output(self) -> None:
        stdout = self._proc.stdout
        try:
            if stdout is not None:
                for line in stdout:
                    self._lines.put(line.rstrip("\r\n"))
        except UnicodeDecodeError as exc:
            # The decoder cannot resume mid-stream, so the engine is unusable after this.
            log.warning("%s wrote invalid UTF-8: %s", self.name, exc)
            self._lines.put(ProtocolViolation(f"{self.name} output is not valid UTF-8: {exc}"))
        except (OSError, ValueError) as exc:
            log.debug("%s: output stream ended: %s", self.name, exc)
        finally:
            self._lines.put(_EOF)

    @staticmethod
    def _deadline(timeout: float | None) -> float | None:
        if timeout is None:
            return None
        return time.monotonic() + timeout
