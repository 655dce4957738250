"""Perft backends: the embedded reference generator and a one-shot executable."""

from __future__ import annotations

import logging
import os
import subprocess
from abc import ABC, abstractmethod
from typing import Sequence, Union

import chess

from .errors import BackendTimeout, ProcessSpawnFailed, ProtocolViolation
from .perft import NodeCountList, perft_divide
from .position import to_fen
from .protocol import parse_divide_output

log = logging.getLogger(__name__)

ProgramCommand = Union[str, os.PathLike, Sequence[Union[str, os.PathLike]]]


def command_argv(command: ProgramCommand) -> list[str]:
    """Normalise a program path or an argv prefix to a list of strings."""
    if isinstance(command, (str, os.PathLike)):
        return [os.fspath(command)]
    argv = [os.fspath(part) for part in command]
    if not argv:
        raise ValueError("Backend command must not be empty")
    return argv


class PerftBackend(ABC):
    """Anything that can answer ``divide(board, depth)``.

    Implementations return one ``(move, leaf_count)`` pair per legal move and
    an empty list for depth 0. Failures are raised as ``BackendError``.
    """

    name = "backend"

    @abstractmethod
    def divide(self, board: chess.Board, depth: int) -> NodeCountList:
        raise NotImplementedError

    def close(self) -> None:
        return None

    def __enter__(self) -> "PerftBackend":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class EmbeddedBackend(PerftBackend):
    name = "python-chess"

    def divide(self, board: chess.Board, depth: int) -> NodeCountList:
        return perft_divide(board, depth)


class ExecutableBackend(PerftBackend):
    """Runs ``<command> <fen> <depth>`` once per query and parses its stdout."""

    def __init__(self, command: ProgramCommand, timeout: float | None = None) -> None:
        self._argv = command_argv(command)
        self._timeout = timeout
        self.name = os.path.basename(self._argv[-1])

    def divide(self, board: chess.Board, depth: int) -> NodeCountList:
        if depth == 0:
            return []

        argv = [*self._argv, to_fen(board), str(depth)]
        log.debug("running %s", argv)
        try:
            completed = subprocess.run(
                argv,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                timeout=self._timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise BackendTimeout(f"{self.name} did not finish within {self._timeout}s") from exc
        except OSError as exc:
            raise ProcessSpawnFailed(f"Could not launch {self._argv[0]}: {exc}") from exc

        if completed.returncode != 0:
            log.warning("%s exited with status %d", self.name, completed.returncode)

        try:
            output = completed.stdout.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ProtocolViolation(f"{self.name} wrote output that is not UTF-8") from exc

        return parse_divide_output(output.splitlines())
