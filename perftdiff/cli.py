"""Command-line entry point for perft diff sessions."""

from __future__ import annotations

import argparse
import logging
import os
import selectors
import sys
from pathlib import Path
from typing import Sequence, TextIO

from .config import SessionConfig
from .constants import DEFAULT_DEPTH, DEFAULT_MAX_PENDING, START_FEN
from .diff import mismatches
from .errors import BackendError, ConfigError
from .navigator import Command, Navigator
from .perft import perft_divide
from .position import parse_fen
from .render import render_info, render_session, render_table

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_MISMATCH = 1
EXIT_ERROR = 2

# Seconds the explorer waits for results before each draw when stdin cannot be polled.
RENDER_WAIT_S = 0.5

# Seconds the explorer waits for a key before checking for new results.
RENDER_TICK_S = 0.1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Compare perft divide results against python-chess")
    parser.add_argument("-d", "--depth", type=int, default=DEFAULT_DEPTH, help="Search depth in plies")
    parser.add_argument("-f", "--fen", default=START_FEN, help="Starting position (FEN)")

    candidate = parser.add_mutually_exclusive_group()
    candidate.add_argument("-e", "--engine", type=Path, help="Persistent engine speaking the UCI perft protocol")
    candidate.add_argument("-c", "--command", type=Path, help="Executable run as '<command> <fen> <depth>'")

    parser.add_argument("--timeout", type=float, default=None, help="Per-query timeout in seconds")
    parser.add_argument(
        "--max-pending",
        type=int,
        default=DEFAULT_MAX_PENDING,
        help="Queued queries allowed per backend (0 = unbounded)",
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level")

    subparsers = parser.add_subparsers(dest="subcommand", required=False)

    subparsers.add_parser("explore", help="Walk the game tree interactively (default)")
    subparsers.add_parser("report", help="Print the root diff and exit non-zero on mismatch")

    divide_parser = subparsers.add_parser("divide", help="Print the python-chess divide for a position")
    divide_parser.add_argument("divide_fen", metavar="fen", help="Position (FEN)")
    divide_parser.add_argument("divide_depth", metavar="depth", type=int, help="Perft depth")

    serve_parser = subparsers.add_parser("serve", help="Serve the session over HTTP")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    return parser


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


def config_from_args(args: argparse.Namespace) -> SessionConfig:
    return SessionConfig.load(
        depth=args.depth,
        fen=args.fen,
        engine=args.engine,
        command=args.command,
        timeout=args.timeout,
        max_pending=args.max_pending,
    )


def run_divide(fen: str, depth: int, out: TextIO) -> int:
    board = parse_fen(fen)
    result = perft_divide(board, depth)
    for move, count in result:
        print(f"{move.uci()}: {count}", file=out)
    print(file=out)
    print(f"Nodes searched: {sum(count for _, count in result)}", file=out)
    return EXIT_OK


def run_report(navigator: Navigator, out: TextIO, timeout: float | None = None) -> int:
    if not navigator.wait_until_settled(timeout=timeout):
        print("timed out waiting for results", file=out)
        return EXIT_ERROR

    print(render_table(navigator.diffs), file=out)
    print(file=out)
    print(render_info(navigator.summary(), navigator.moves_played), file=out)

    if any(error is not None for error in navigator.errors.values()):
        return EXIT_ERROR
    if mismatches(navigator.diffs):
        return EXIT_MISMATCH
    return EXIT_OK


class _KeyReader:
    """Reads key lines from stdin, waiting with a timeout when the stream can be polled."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self._encoding = getattr(stream, "encoding", None) or "utf-8"
        self._lines: list[bytes] = []
        self._partial = b""
        self._eof = False
        self._selector: selectors.BaseSelector | None = None

        # select() only accepts sockets on Windows.
        if sys.platform == "win32":
            return
        try:
            self._fd = stream.fileno()
        except (AttributeError, OSError, ValueError):
            return
        selector = selectors.DefaultSelector()
        try:
            selector.register(self._fd, selectors.EVENT_READ)
        except (OSError, ValueError):
            selector.close()
            return
        self._selector = selector

    @property
    def pollable(self) -> bool:
        return self._selector is not None

    def read(self, timeout: float) -> str | None:
        """Next line, ``""`` at end of input, or ``None`` if no full line arrived in time.

        Streams without a pollable descriptor block in ``readline``.
        """
        if self._selector is None:
            return self._stream.readline()

        while not self._lines:
            if self._eof:
                return ""
            if not self._selector.select(timeout):
                return None
            chunk = os.read(self._fd, 4096)
            if chunk:
                *complete, self._partial = (self._partial + chunk).split(b"\n")
                self._lines.extend(complete)
            else:
                self._eof = True
                if self._partial:
                    self._lines.append(self._partial)
                    self._partial = b""
        return self._lines.pop(0).decode(self._encoding, errors="replace") + "\n"

    def close(self) -> None:
        if self._selector is not None:
            self._selector.close()
            self._selector = None


def run_explore(navigator: Navigator, stdin: TextIO, out: TextIO) -> int:
    keys = _KeyReader(stdin)
    shown: str | None = None
    try:
        while not navigator.terminated:
            if keys.pollable:
                navigator.refresh()
            else:
                navigator.wait_until_settled(timeout=RENDER_WAIT_S)

            frame = render_session(navigator)
            if frame != shown:
                print(frame, file=out)
                out.flush()
                shown = frame

            line = keys.read(RENDER_TICK_S)
            if line is None:
                continue
            if not line:
                break
            command = Command.from_key(line)
            if command is None:
                continue
            if command is Command.REFRESH:
                shown = None
            navigator.handle(command)
    finally:
        keys.close()
    return EXIT_OK



def run_serve(navigator: Navigator, host: str, port: int) -> int:
    import uvicorn

    from api.server import create_app

    uvicorn.run(create_app(navigator), host=host, port=port)
    return EXIT_OK


def run(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    if args.subcommand == "divide":
        try:
            return run_divide(args.divide_fen, args.divide_depth, sys.stdout)
        except ValueError as exc:
            print(f"error: {exc}", file=sys.stderr)
            return EXIT_ERROR

    try:
        config = config_from_args(args)
        log.debug("session config: %s", config)
        navigator = config.build_navigator()
    except ConfigError as exc:
        parser.error(str(exc))
    except BackendError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_ERROR

    with navigator:
        if args.subcommand == "report":
            return run_report(navigator, sys.stdout)
        if args.subcommand == "serve":
            return run_serve(navigator, args.host, args.port)
        return run_explore(navigator, sys.stdin, sys.stdout)


def main() -> None:
    sys.exit(run())
