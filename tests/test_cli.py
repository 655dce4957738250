import io
import os
import stat
import sys
import threading
import time
from pathlib import Path

import chess
import pytest

from conftest import FAKE_ENGINE, GatedBackend
from perftdiff import cli
from perftdiff.backends import EmbeddedBackend
from perftdiff.cli import EXIT_ERROR, EXIT_MISMATCH, EXIT_OK, run
from perftdiff.constants import EXPECTED, FOUND, START_FEN
from perftdiff.dispatcher import PerftDispatcher
from perftdiff.navigator import Navigator

posix_only = pytest.mark.skipif(os.name == "nt", reason="needs POSIX shell scripts and pollable pipes")


def _wrapper(tmp_path: Path, *options: str) -> Path:
    script = tmp_path / "candidate"
    extra = " ".join(options)
    script.write_text(f'#!/bin/sh\nexec "{sys.executable}" "{FAKE_ENGINE}" {extra} "$@"\n', encoding="utf-8")
    script.chmod(script.stat().st_mode | stat.S_IXUSR)
    return script


def test_divide_prints_engine_style_output(capsys) -> None:
    assert run(["divide", START_FEN, "1"]) == EXIT_OK
    lines = capsys.readouterr().out.splitlines()

    assert len(lines) == 22
    assert "e2e4: 1" in lines
    assert lines[20] == ""
    assert lines[21] == "Nodes searched: 20"


def test_divide_rejects_bad_fen(capsys) -> None:
    assert run(["divide", "nonsense", "1"]) == EXIT_ERROR
    assert "error" in capsys.readouterr().err


def test_session_needs_a_candidate() -> None:
    with pytest.raises(SystemExit) as excinfo:
        run(["report"])
    assert excinfo.value.code == 2


def test_engine_launch_failure_exits_with_error(tmp_path: Path, capsys) -> None:
    assert run(["-e", str(tmp_path / "missing"), "report"]) == EXIT_ERROR
    assert "Could not launch" in capsys.readouterr().err


@posix_only
def test_report_of_matching_candidate(tmp_path: Path, capsys) -> None:
    assert run(["-d", "2", "-c", str(_wrapper(tmp_path)), "report"]) == EXIT_OK
    assert "Mismatched moves:  0" in capsys.readouterr().out


@posix_only
def test_report_of_buggy_candidate(tmp_path: Path, capsys) -> None:
    code = run(["-d", "3", "-e", str(_wrapper(tmp_path, "--omit", "e2e4")), "--timeout", "30", "report"])
    out = capsys.readouterr().out

    assert code == EXIT_MISMATCH
    assert "e2e4" in out
    assert "Mismatched moves:  1" in out


@posix_only
def test_report_of_failing_candidate(tmp_path: Path) -> None:
    assert run(["-c", str(_wrapper(tmp_path, "--mode", "garbage")), "report"]) == EXIT_ERROR


@posix_only
def test_explore_reads_keys_until_quit(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.setattr(sys, "stdin", io.StringIO("j\nl\nh\nq\n"))
    monkeypatch.setattr(cli, "RENDER_WAIT_S", 30.0)

    assert run(["-d", "2", "-c", str(_wrapper(tmp_path)), "explore"]) == EXIT_OK
    out = capsys.readouterr().out
    assert "Current depth:     2" in out
    assert out.count("Starting position") == 4


def _wait_for_text(out: io.StringIO, text: str, timeout: float = 20.0) -> None:
    deadline = time.monotonic() + timeout
    while text not in out.getvalue():
        assert time.monotonic() < deadline, f"{text!r} never drawn"
        time.sleep(0.01)


@posix_only
def test_explore_redraws_when_results_arrive_without_a_key() -> None:
    gate = GatedBackend()
    found = PerftDispatcher(gate, name=FOUND)
    expected = PerftDispatcher(EmbeddedBackend(), name=EXPECTED)
    out = io.StringIO()
    read_fd, write_fd = os.pipe()

    with Navigator(found, expected, chess.Board(), 2) as navigator, os.fdopen(read_fd, "r") as stdin:
        explorer = threading.Thread(target=cli.run_explore, args=(navigator, stdin, out))
        explorer.start()
        try:
            assert gate.started.wait(timeout=10)
            _wait_for_text(out, "found: waiting for results")
            gate.release.set()
            _wait_for_text(out, "Total found:       20")
        finally:
            gate.release.set()
            os.write(write_fd, b"q\n")
            os.close(write_fd)
            explorer.join(timeout=10)

    assert not explorer.is_alive()
    frames = out.getvalue().split("Starting position")
    assert len(frames) > 2
    assert "waiting for results" not in frames[-1]
    assert "e2e4" in frames[-1]


@posix_only
def test_explore_over_a_pipe_shows_late_results(tmp_path: Path, monkeypatch) -> None:
    read_fd, write_fd = os.pipe()
    out = io.StringIO()
    monkeypatch.setattr(sys, "stdin", os.fdopen(read_fd, "r"))
    monkeypatch.setattr(sys, "stdout", out)

    def quit_once_drawn() -> None:
        try:
            _wait_for_text(out, "Total expected:    400")
            _wait_for_text(out, "Total found:       400")
        finally:
            os.write(write_fd, b"q\n")
            os.close(write_fd)

    typist = threading.Thread(target=quit_once_drawn)
    typist.start()
    try:
        assert run(["-d", "3", "-c", str(_wrapper(tmp_path)), "explore"]) == EXIT_OK
    finally:
        typist.join(timeout=30)
        sys.stdin.close()

    frames = out.getvalue().split("Starting position")
    assert len(frames) > 2
    assert "waiting for results" not in frames[-1]
    assert "Mismatched moves:  0" in frames[-1]
