"""Spies and stubs for shell commands invoked from tests.

A :class:`Session` owns a temporary directory whose ``bin`` subdirectory is
prepended to ``PATH``. Spies created through the session are installed there,
record every invocation and replay sequenced output and exit statuses.
"""

from __future__ import annotations

from ._version import __version__
from .assertions import (
    assert_call_count,
    assert_called_once_with,
    assert_called_with,
    assert_never_called,
    examine_next_spy_call,
    get_args_for_call,
    get_spy_call_count,
    was_spy_called_with,
)
from .environment import SessionEnvironment, temporary_env
from .errors import (
    FatalError,
    InvalidSpyNameError,
    LifecycleError,
    MissingSessionError,
    ShpyError,
    SpyCallError,
    UsageError,
)
from .models import Call, Response, SpyConfig, Status, Stderr, Stdout
from .platform import is_supported, skip_if_unsupported, unsupported_reason
from .session import Session
from .spy import Spy

__all__ = [
    "Call",
    "FatalError",
    "InvalidSpyNameError",
    "LifecycleError",
    "MissingSessionError",
    "Response",
    "Session",
    "SessionEnvironment",
    "ShpyError",
    "Spy",
    "SpyCallError",
    "SpyConfig",
    "Status",
    "Stderr",
    "Stdout",
    "UsageError",
    "__version__",
    "assert_call_count",
    "assert_called_once_with",
    "assert_called_with",
    "assert_never_called",
    "examine_next_spy_call",
    "get_args_for_call",
    "get_spy_call_count",
    "is_supported",
    "skip_if_unsupported",
    "temporary_env",
    "unsupported_reason",
    "was_spy_called_with",
]
