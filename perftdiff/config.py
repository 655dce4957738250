"""Session configuration and wiring of backends into a navigator."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .backends import EmbeddedBackend, ExecutableBackend, PerftBackend
from .constants import DEFAULT_DEPTH, DEFAULT_MAX_PENDING, EXPECTED, FOUND, START_FEN
from .dispatcher import PerftDispatcher
from .errors import ConfigError
from .navigator import Navigator
from .position import parse_fen
from .uci import EngineBackend

log = logging.getLogger(__name__)


class SessionConfig(BaseModel):
    depth: int = Field(default=DEFAULT_DEPTH, ge=1)
    fen: str = Field(default=START_FEN)
    engine: Path | None = None
    command: Path | None = None
    timeout: float | None = Field(default=None, gt=0)
    max_pending: int = Field(default=DEFAULT_MAX_PENDING, ge=0)

    @field_validator("fen")
    @classmethod
    def _check_fen(cls, value: str) -> str:
        parse_fen(value)
        return value.strip()

    @model_validator(mode="after")
    def _one_candidate(self) -> "SessionConfig":
        if (self.engine is None) == (self.command is None):
            raise ValueError("exactly one of engine or command must be given")
        return self

    @classmethod
    def load(cls, **values: object) -> "SessionConfig":
        try:
            return cls(**values)
        except ValidationError as exc:
            raise ConfigError(_format_errors(exc)) from exc

    def build_candidate(self) -> PerftBackend:
        if self.engine is not None:
            log.info("using persistent engine %s", self.engine)
            return EngineBackend(self.engine, timeout=self.timeout, handshake_timeout=self.timeout)
        assert self.command is not None
        log.info("using one-shot executable %s", self.command)
        return ExecutableBackend(self.command, timeout=self.timeout)

    def build_navigator(self, candidate: PerftBackend | None = None) -> Navigator:
        found = PerftDispatcher(
            candidate if candidate is not None else self.build_candidate(),
            name=FOUND,
            max_pending=self.max_pending,
        )
        expected = PerftDispatcher(EmbeddedBackend(), name=EXPECTED, max_pending=self.max_pending)
        return Navigator(found, expected, parse_fen(self.fen), self.depth)


def _format_errors(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error["loc"]) or "config"
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)
