# ruff: noqa: S101
"""pytest-bdd assertions over spy processes and recorded calls."""

from __future__ import annotations

import shlex
import shutil
import typing as t

import pytest
from pytest_bdd import parsers, then

from shpy.errors import SpyCallError

if t.TYPE_CHECKING:  # pragma: no cover - typing only
    import subprocess
    from pathlib import Path

    from shpy.session import Session


@then(parsers.cfparse('the exit codes should be "{codes}"'))
def check_exit_codes(runs: list[subprocess.CompletedProcess[str]], codes: str) -> None:
    """Compare every exit status observed so far."""
    assert [run.returncode for run in runs] == [int(code) for code in codes.split()]


@then(parsers.cfparse("the last exit code should be {code:d}"))
def check_last_exit_code(
    runs: list[subprocess.CompletedProcess[str]], code: int
) -> None:
    """Compare the exit status of the most recent run."""
    assert runs[-1].returncode == code


@then(parsers.cfparse('the outputs should be "{outputs}"'))
def check_outputs(runs: list[subprocess.CompletedProcess[str]], outputs: str) -> None:
    """Compare stdout of every run; values are separated by ``|``."""
    assert [run.stdout for run in runs] == outputs.split("|")


@then(
    parsers.re(r'"(?P<name>[^"]+)" should have been called (?P<count>\d+) times?$'),
    converters={"count": int},
)
def check_call_count(session: Session, name: str, count: int) -> None:
    """Compare the recorded number of calls."""
    session.spy(name).assert_call_count(count)


@then(parsers.cfparse("call {call:d} of \"{name}\" should render as '{rendered}'"))
def check_rendered_call(session: Session, call: int, name: str, rendered: str) -> None:
    """Compare the display form of a recorded call."""
    assert session.spy(name).args_for_call(call) == rendered


@then(parsers.cfparse('the examined call of "{name}" should be "{args}"'))
def check_examined_call(session: Session, name: str, args: str) -> None:
    """The call under the cursor has exactly *args*."""
    assert session.spy(name).was_called_with(*shlex.split(args))


@then(parsers.cfparse('examining "{name}" should report "{message}"'))
def check_exhausted(session: Session, name: str, message: str) -> None:
    """Comparing beyond the history is a call error."""
    with pytest.raises(SpyCallError) as excinfo:
        session.spy(name).was_called_with()
    assert str(excinfo.value) == message


@then(
    parsers.cfparse(
        'asserting "{name}" was called with "{args}" should fail with "{message}"'
    )
)
def check_assertion_failure(
    session: Session, name: str, args: str, message: str
) -> None:
    """The assertion raises with a descriptive message."""
    with pytest.raises(AssertionError) as excinfo:
        session.spy(name).assert_called_with(*shlex.split(args))
    assert str(excinfo.value) == message


@then(parsers.cfparse('"{name}" should no longer be on PATH'))
def check_not_on_path(name: str) -> None:
    """The spy launcher cannot be found any more."""
    assert shutil.which(name) is None


@then("the session directory should be gone")
def check_root_removed(cleaned_root: Path | None) -> None:
    """Cleanup deleted the session tree."""
    assert cleaned_root is not None
    assert not cleaned_root.exists()


__all__ = [
    "check_assertion_failure",
    "check_call_count",
    "check_examined_call",
    "check_exhausted",
    "check_exit_codes",
    "check_last_exit_code",
    "check_not_on_path",
    "check_outputs",
    "check_rendered_call",
    "check_root_removed",
]

# pytest-bdd registers each step as a module-level fixture; export those too so
# ``from tests.steps import *`` makes the step definitions visible.
__all__ += [name for name in globals() if name.startswith("pytestbdd_")]
