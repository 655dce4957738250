"""Thread-safe access to the navigator shared by HTTP and WebSocket routes."""

from __future__ import annotations

import threading
from dataclasses import asdict

from perftdiff.navigator import Command, Navigator


class SessionHolder:
    def __init__(self, navigator: Navigator | None = None) -> None:
        self.navigator = navigator
        self._lock = threading.RLock()

    @property
    def active(self) -> bool:
        return self.navigator is not None

    def snapshot(self) -> dict:
        with self._lock:
            navigator = self._require()
            navigator.refresh()
            return session_payload(navigator)

    def apply(self, command: Command) -> dict:
        with self._lock:
            navigator = self._require()
            navigator.refresh()
            navigator.handle(command)
            navigator.refresh()
            return session_payload(navigator)

    def _require(self) -> Navigator:
        if self.navigator is None:
            raise LookupError("No perft session is configured")
        return self.navigator


def session_payload(navigator: Navigator) -> dict:
    summary = navigator.summary()
    payload = asdict(summary)
    payload["settled"] = summary.settled
    payload["moves_played"] = navigator.moves_played
    payload["cursor"] = navigator.cursor
    payload["terminated"] = navigator.terminated
    payload["diffs"] = [
        {
            "move": diff.key,
            "found": diff.found,
            "expected": diff.expected,
            "matches": diff.matches,
        }
        for diff in navigator.diffs
    ]
    return payload
