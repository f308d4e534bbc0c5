"""Tests for the spy dispatcher script run by every launcher."""

from __future__ import annotations

import os
import sys
import typing as t

import pytest

from shpy.environment import SHPY_SESSION_DIR_ENV
from shpy.models import Status, Stderr, Stdout
from shpy.session import Session
from shpy.shimgen import SHIM_PATH, SHPY_SHIM_COMMAND_ENV

pytestmark = pytest.mark.requires_posix_shell

if t.TYPE_CHECKING:  # pragma: no cover - typing only
    import subprocess
    from pathlib import Path

    Runner = t.Callable[..., subprocess.CompletedProcess[str]]


def _env_without_session(**extra: str) -> dict[str, str]:
    env = {k: v for k, v in os.environ.items() if k != SHPY_SESSION_DIR_ENV}
    env.update(extra)
    return env


def test_missing_session_dir_is_fatal(run: Runner) -> None:
    """The dispatcher refuses to run without a session."""
    result = run(
        [sys.executable, SHIM_PATH, "arg"],
        env=_env_without_session(**{SHPY_SHIM_COMMAND_ENV: "tool"}),
    )
    assert result.returncode == 3
    assert result.stderr == f"shpy: {SHPY_SESSION_DIR_ENV} is not set\n"


def test_vanished_session_dir_is_fatal(run: Runner, tmp_path: Path) -> None:
    """A session directory that no longer exists is reported."""
    gone = tmp_path / "gone"
    result = run(
        [sys.executable, SHIM_PATH],
        env=_env_without_session(
            **{SHPY_SESSION_DIR_ENV: str(gone), SHPY_SHIM_COMMAND_ENV: "tool"}
        ),
    )
    assert result.returncode == 3
    assert "Session directory does not exist" in result.stderr


def test_unknown_spy_is_fatal_and_not_recorded(run: Runner) -> None:
    """Launchers for spies missing from the store abort without recording."""
    with Session() as session:
        result = run(
            [sys.executable, SHIM_PATH, "x"],
            env={**os.environ, SHPY_SHIM_COMMAND_ENV: "phantom"},
        )
        assert result.returncode == 3
        assert "Unknown spy: 'phantom'" in result.stderr
        assert session.store.call_count("phantom") == 0


def test_name_falls_back_to_program_name(run: Runner, tmp_path: Path) -> None:
    """Without the command variable the script's own name selects the spy."""
    with Session() as session:
        spy = session.create_spy("shim.py", [Stdout("by name")])
        env = {k: v for k, v in os.environ.items() if k != SHPY_SHIM_COMMAND_ENV}
        result = run([sys.executable, SHIM_PATH, "a"], env=env)
        assert result.stdout == "by name"
        assert spy.calls == [("a",)]


def test_launcher_forwards_arguments_verbatim(run: Runner) -> None:
    """Quotes, globs and empty strings reach the store unchanged."""
    args = ["*", "$HOME", "it's", "", "a\tb", "line\nbreak"]
    with Session() as session:
        spy = session.create_spy("tool", [Status(7)])
        result = run(["tool", *args])
        assert result.returncode == 7
        assert spy.calls == [tuple(args)]


def test_non_utf8_output_is_passed_through(run: Runner) -> None:
    """Configured output is written byte for byte."""
    with Session() as session:
        session.create_spy("tool", [Stdout("caf\udce9\n")])
        result = run(["tool"], text=False)
        assert result.stdout == b"caf\xe9\n"


def test_closed_streams_keep_configured_status(run: Runner) -> None:
    """A spy whose stdout and stderr are closed still records and exits."""
    with Session() as session:
        spy = session.create_spy("tool", [Status(7), Stdout("out"), Stderr("err")])
        result = run(["sh", "-c", 'tool arg >&- 2>&-; echo "status:$?"'])
        assert result.stdout == "status:7\n"
        assert result.stderr == ""
        assert spy.calls == [("arg",)]
