"""Utilities for installing spy launchers on the search path."""

from __future__ import annotations

import logging
import os
import shlex
import sys
import typing as t
from pathlib import Path

from .errors import FatalError, InvalidSpyNameError
from .store import SpyStore

SHIM_PATH = Path(__file__).with_name("shim.py").resolve()
SHPY_SHIM_COMMAND_ENV = "SHPY_SHIM_COMMAND"
logger = logging.getLogger(__name__)


def _validate_not_empty(name: str, error_msg: str) -> None:
    """Raise if *name* is empty."""
    if not name:
        raise InvalidSpyNameError(error_msg)


def _validate_not_dot_directories(name: str, error_msg: str) -> None:
    """Disallow ``.`` and ``..`` which change directory semantics."""
    if name in {".", ".."}:
        raise InvalidSpyNameError(error_msg)


def _validate_no_path_separators(name: str, error_msg: str) -> None:
    """Ensure *name* contains no path separators."""
    separators = {"/", os.sep}
    if os.altsep:
        separators.add(os.altsep)
    if any(sep in name for sep in separators):
        raise InvalidSpyNameError(error_msg)


def _validate_no_nul_bytes(name: str, error_msg: str) -> None:
    """Reject names containing NUL bytes to avoid truncation."""
    if "\x00" in name:
        raise InvalidSpyNameError(error_msg)


def validate_spy_name(name: str) -> None:
    """Validate *name* is usable both as a filename and as a store key."""
    error_msg = f"Invalid spy name: {name!r}"

    validators: list[t.Callable[[str, str], None]] = [
        _validate_not_empty,
        _validate_not_dot_directories,
        _validate_no_path_separators,
        _validate_no_nul_bytes,
    ]
    for validator in validators:
        validator(name, error_msg)
    SpyStore.check_name(name)


def format_launcher(name: str, python_executable: str, shim_path: Path) -> str:
    """Return the POSIX shell launcher that hands *name* to ``shim.py``."""
    return (
        "#!/bin/sh\n"
        f"{SHPY_SHIM_COMMAND_ENV}={shlex.quote(name)} "
        f"exec {shlex.quote(python_executable)} "
        f'{shlex.quote(os.fspath(shim_path))} "$@"\n'
    )


def _validate_launcher_path(launcher: Path) -> None:
    """Refuse to overwrite anything that is not a regular file."""
    if launcher.is_symlink() or (launcher.exists() and not launcher.is_file()):
        msg = f"{launcher} already exists and is not a launcher file"
        raise FatalError(msg)


def install_launcher(directory: Path, name: str) -> Path:
    """Write an executable launcher for *name* into *directory*."""
    validate_spy_name(name)
    if not directory.is_dir():
        msg = f"Spy directory does not exist: {directory}"
        raise FatalError(msg)
    launcher = directory / name
    _validate_launcher_path(launcher)
    try:
        launcher.write_text(
            format_launcher(name, sys.executable, SHIM_PATH), encoding="utf-8"
        )
        launcher.chmod(0o755)
    except OSError as exc:
        msg = f"Cannot install launcher for {name!r}: {exc}"
        raise FatalError(msg) from exc
    logger.debug("Installed launcher %s", launcher)
    return launcher


def remove_launcher(directory: Path, name: str) -> None:
    """Remove the launcher for *name*; a missing launcher is not an error."""
    launcher = directory / name
    try:
        launcher.unlink(missing_ok=True)
    except OSError as exc:
        msg = f"Cannot remove launcher {launcher}: {exc}"
        raise FatalError(msg) from exc


__all__ = [
    "SHIM_PATH",
    "SHPY_SHIM_COMMAND_ENV",
    "format_launcher",
    "install_launcher",
    "remove_launcher",
    "validate_spy_name",
]
