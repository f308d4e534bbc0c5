#!/usr/bin/env python3
"""Dispatcher executed by every spy launcher."""

from __future__ import annotations

import os
import sys

_SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
# Running this file as a script puts ``shpy/`` itself on ``sys.path``, where
# ``shpy/platform.py`` would shadow the stdlib module. Swap it for the
# directory that contains the package before anything else is imported.
if sys.path and os.path.abspath(sys.path[0] or os.curdir) == _SCRIPT_DIR:
    del sys.path[0]
_LIBRARY_ROOT = os.environ.get("SHPY_PATH") or os.path.dirname(_SCRIPT_DIR)
if _LIBRARY_ROOT not in sys.path:
    sys.path.insert(0, _LIBRARY_ROOT)

import typing as t  # noqa: E402
from pathlib import Path  # noqa: E402

from shpy.environment import SHPY_SESSION_DIR_ENV  # noqa: E402
from shpy.errors import FatalError  # noqa: E402
from shpy.recorder import record_invocation  # noqa: E402
from shpy.shimgen import SHPY_SHIM_COMMAND_ENV  # noqa: E402
from shpy.store import SpyStore  # noqa: E402

if t.TYPE_CHECKING:  # pragma: no cover - typing only
    from shpy.models import Response

EXIT_FATAL = 3


def _resolve_spy_name() -> str:
    if from_env := os.environ.get(SHPY_SHIM_COMMAND_ENV):
        return from_env
    return Path(sys.argv[0]).name


def _resolve_store() -> SpyStore:
    raw = os.environ.get(SHPY_SESSION_DIR_ENV)
    if not raw:
        msg = f"{SHPY_SESSION_DIR_ENV} is not set"
        raise FatalError(msg)
    root = Path(raw)
    if not root.is_dir():
        msg = f"Session directory does not exist: {root}"
        raise FatalError(msg)
    return SpyStore(root)


def _emit(stream: t.TextIO | None, text: str) -> None:
    # Python sets the stream to None when the caller closed its descriptor.
    if stream is None:
        return
    stream.flush()
    stream.buffer.write(text.encode("utf-8", "surrogateescape"))
    stream.buffer.flush()


def _write_response(response: Response) -> t.NoReturn:
    _emit(sys.stdout, response.stdout)
    _emit(sys.stderr, response.stderr)
    sys.exit(response.exit_code)


def main() -> None:
    """Record this invocation and replay the configured output."""
    name = _resolve_spy_name()
    try:
        response = record_invocation(_resolve_store(), name, sys.argv[1:])
    except FatalError as exc:
        print(f"shpy: {exc}", file=sys.stderr)
        sys.exit(EXIT_FATAL)
    _write_response(response)


if __name__ == "__main__":  # pragma: no cover - manual entry
    main()
