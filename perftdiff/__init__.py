"""Differential perft testing against the python-chess move generator."""

from .backends import EmbeddedBackend, ExecutableBackend, PerftBackend
from .config import SessionConfig
from .diff import MoveDiff, merge
from .dispatcher import PerftDispatcher, QueryOutcome, ResultSlot
from .navigator import Command, Navigator
from .uci import EngineBackend

__all__ = [
    "Command",
    "EmbeddedBackend",
    "EngineBackend",
    "ExecutableBackend",
    "MoveDiff",
    "Navigator",
    "PerftBackend",
    "PerftDispatcher",
    "QueryOutcome",
    "ResultSlot",
    "SessionConfig",
    "merge",
]
