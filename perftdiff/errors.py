"""Exception types raised by backends, dispatchers and the session layer."""

from __future__ import annotations


class BackendError(RuntimeError):
    """A perft query against a backend could not be completed."""


class ProcessSpawnFailed(BackendError):
    pass


class BackendIOError(BackendError):
    """Read or write failure against a running process, including end-of-stream."""


class ProtocolViolation(BackendError):
    pass


class MoveParseError(ProtocolViolation):
    pass


class BackendTimeout(BackendError):
    pass


class DispatcherBusy(BackendError):
    pass


class DispatcherClosed(BackendError):
    pass


class InvalidPosition(ValueError):
    pass


class IllegalMove(ValueError):
    pass


class ConfigError(ValueError):
    pass
