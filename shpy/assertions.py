"""Name-keyed query and assertion functions over a :class:`Session`.

These mirror the shell-facing commands one for one. Each takes the session
explicitly and delegates to the :class:`~shpy.spy.Spy` handle.
"""

from __future__ import annotations

import typing as t

from .errors import MissingSessionError

if t.TYPE_CHECKING:  # pragma: no cover - typing only
    from .session import Session


def get_spy_call_count(session: Session, name: str) -> int:
    """Return how often *name* was invoked (0 for unknown spies)."""
    if not session.initialized:
        return 0
    return session.spy(name).call_count


def examine_next_spy_call(session: Session, name: str) -> None:
    """Move the examine cursor of *name* to its next call."""
    session.spy(name).examine_next_call()


def was_spy_called_with(session: Session, name: str, *args: str) -> bool:
    """Compare *args* with the call under the examine cursor of *name*."""
    return session.spy(name).was_called_with(*args)


def get_args_for_call(session: Session, name: str, call: int) -> str:
    """Render the arguments of the 1-based *call* of *name*."""
    if not session.initialized:
        raise MissingSessionError(MissingSessionError.DEFAULT_MESSAGE)
    return session.spy(name).args_for_call(call)


def assert_call_count(
    session: Session, name: str, expected: int, *, msg: str | None = None
) -> None:
    """Assert *name* was invoked *expected* times."""
    actual = get_spy_call_count(session, name)
    if actual != expected:
        text = f"expected:<{expected}> but was:<{actual}>"
        raise AssertionError(f"{msg} {text}" if msg else text)


def assert_called_with(
    session: Session, name: str, *args: str, msg: str | None = None
) -> None:
    """Assert the examined call of *name* had *args* and advance the cursor."""
    session.spy(name).assert_called_with(*args, msg=msg)


def assert_called_once_with(
    session: Session, name: str, *args: str, msg: str | None = None
) -> None:
    """Assert *name* was invoked exactly once, with *args*."""
    assert_call_count(session, name, 1, msg=msg)
    assert_called_with(session, name, *args, msg=msg)


def assert_never_called(session: Session, name: str, *, msg: str | None = None) -> None:
    """Assert *name* was never invoked."""
    assert_call_count(session, name, 0, msg=msg)


__all__ = [
    "assert_call_count",
    "assert_called_once_with",
    "assert_called_with",
    "assert_never_called",
    "examine_next_spy_call",
    "get_args_for_call",
    "get_spy_call_count",
    "was_spy_called_with",
]
