"""Spy handles exposing the recorded call history and assertion helpers."""

from __future__ import annotations

import typing as t

from .errors import SpyCallError
from .models import Call, render_call

if t.TYPE_CHECKING:  # pragma: no cover - typing only
    from .store import SpyStore


def _failure(message: str, msg: str | None) -> AssertionError:
    """Build an ``AssertionError`` prefixed with the caller's message."""
    text = f"{msg} {message}" if msg else message
    return AssertionError(text)


class Spy:
    """Read-only view of one spy in a session's store.

    Every property reads through to the store, so invocations made by child
    processes are visible immediately.
    """

    def __init__(self, name: str, store: SpyStore) -> None:
        self.name = name
        self._store = store

    def __repr__(self) -> str:
        """Return a short debug representation."""
        return f"Spy(name={self.name!r}, call_count={self.call_count})"

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @property
    def call_count(self) -> int:
        """Return the number of recorded invocations."""
        return self._store.call_count(self.name)

    @property
    def calls(self) -> list[Call]:
        """Return a copy of every recorded call in invocation order."""
        return self._store.calls(self.name)

    @property
    def cursor(self) -> int:
        """Return the 0-based call index targeted by :meth:`was_called_with`."""
        return self._store.cursor(self.name)

    def examine_next_call(self) -> None:
        """Advance the examine cursor by one without validating it."""
        self._store.set_cursor(self.name, self.cursor + 1)

    def was_called_with(self, *args: str) -> bool:
        """Return whether the call under the cursor had exactly *args*.

        Raises :class:`~shpy.errors.SpyCallError` when the cursor points past
        the recorded calls.
        """
        cursor = self.cursor
        if cursor >= self.call_count:
            msg = f"{self.name} was not called {cursor + 1} time(s)"
            raise SpyCallError(msg)
        return self._store.get_call(self.name, cursor) == tuple(args)

    def args_for_call(self, call: int) -> str:
        """Render the arguments of the 1-based *call* for display."""
        if call < 1:
            msg = f"Call numbers start at 1, got {call}"
            raise SpyCallError(msg)
        return render_call(self._store.get_call(self.name, call - 1))

    # ------------------------------------------------------------------
    # Assertions
    # ------------------------------------------------------------------
    def assert_call_count(self, expected: int, msg: str | None = None) -> None:
        """Assert the spy was invoked exactly *expected* times."""
        actual = self.call_count
        if actual != expected:
            raise _failure(f"expected:<{expected}> but was:<{actual}>", msg)

    def assert_called_with(self, *args: str, msg: str | None = None) -> None:
        """Assert the call under the cursor had *args*, then advance the cursor.

        The cursor advances even when the assertion fails, so chained calls
        always target successive invocations.
        """
        cursor = self.cursor
        try:
            matched = self.was_called_with(*args)
        except SpyCallError as exc:
            raise _failure(str(exc), msg) from exc
        finally:
            self.examine_next_call()
        if not matched:
            expected = render_call(args)
            actual = self.args_for_call(cursor + 1)
            raise _failure(f"expected:<{expected}> but was:<{actual}>", msg)

    def assert_called_once_with(self, *args: str, msg: str | None = None) -> None:
        """Assert the spy was invoked exactly once, with *args*."""
        self.assert_call_count(1, msg)
        self.assert_called_with(*args, msg=msg)

    def assert_never_called(self, msg: str | None = None) -> None:
        """Assert the spy was never invoked."""
        self.assert_call_count(0, msg)


__all__ = ["Spy"]
