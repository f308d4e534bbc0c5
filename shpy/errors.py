"""Exception hierarchy for shpy."""

from __future__ import annotations


class ShpyError(Exception):
    """Base class for errors raised deliberately by shpy."""


class UsageError(ShpyError):
    """Raised when a command is invoked with the wrong arguments."""

    def __init__(self, usage: str = "") -> None:
        super().__init__(usage)
        self.usage = usage


class SpyCallError(ShpyError):
    """Raised when the recorded call history cannot satisfy a query.

    Typical causes are a 1-based call number beyond the recorded calls, or an
    examine cursor that has moved past the last invocation. This is distinct
    from a comparison that simply evaluates to ``False``.
    """


class FatalError(ShpyError):
    """Raised when the test environment itself is broken.

    Directory creation or removal failures, unknown configuration options and
    corrupted store entries fall into this tier. Callers are not expected to
    recover; the command-line surface turns these into a non-zero exit.
    """


class MissingSessionError(FatalError):
    """Raised when no session directory can be resolved."""

    DEFAULT_MESSAGE = (
        "No shpy session is active; initialise one or export SHPY_SESSION_DIR"
    )


class InvalidSpyNameError(ShpyError, ValueError):
    """Raised when a spy name cannot be used as an executable name."""


class LifecycleError(ShpyError):
    """Raised when sessions are initialised out of order or nested."""


__all__ = [
    "FatalError",
    "InvalidSpyNameError",
    "LifecycleError",
    "MissingSessionError",
    "ShpyError",
    "SpyCallError",
    "UsageError",
]
