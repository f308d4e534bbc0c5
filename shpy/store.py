"""Filesystem-backed record store for spy definitions and call history.

Layout beneath the session root::

    bin/<spy>                       launcher installed on PATH
    outputs/<spy>/<index>           configured stdout text
    errors/<spy>/<index>            configured stderr text
    statuses/<spy>                  configured exit statuses, one per line
    cursors/<spy>                   examine cursor
    <spy>/<callIndex>/<argIndex>    recorded call arguments

Every invocation runs in its own short-lived process, so the tree is the only
state shared between the test process and the spies it launches.
"""

from __future__ import annotations

import contextlib
import logging
import shutil
import typing as t

from .environment import BIN_DIRNAME, METADATA_FILENAME
from .errors import FatalError, InvalidSpyNameError, SpyCallError
from .models import Call, SpyConfig

if t.TYPE_CHECKING:  # pragma: no cover - typing only
    from pathlib import Path

logger = logging.getLogger(__name__)

OUTPUTS_DIRNAME = "outputs"
ERRORS_DIRNAME = "errors"
STATUSES_DIRNAME = "statuses"
CURSORS_DIRNAME = "cursors"

RESERVED_NAMES: t.Final[frozenset[str]] = frozenset(
    {
        BIN_DIRNAME,
        OUTPUTS_DIRNAME,
        ERRORS_DIRNAME,
        STATUSES_DIRNAME,
        CURSORS_DIRNAME,
        METADATA_FILENAME,
    }
)

_ENCODING = "utf-8"
_ERRORS = "surrogateescape"


@contextlib.contextmanager
def _fatal_on_os_error(action: str) -> t.Iterator[None]:
    """Translate ``OSError`` raised inside the block into :class:`FatalError`."""
    try:
        yield
    except OSError as exc:
        msg = f"Cannot {action}: {exc}"
        raise FatalError(msg) from exc


def _write_text(path: Path, text: str) -> None:
    path.write_text(text, encoding=_ENCODING, errors=_ERRORS)


def _read_text(path: Path) -> str:
    return path.read_text(encoding=_ENCODING, errors=_ERRORS)


def _numbered_entries(directory: Path) -> dict[int, Path]:
    """Return the entries of *directory* keyed by their integer names."""
    if not directory.is_dir():
        return {}
    return {int(p.name): p for p in directory.iterdir() if p.name.isdigit()}


class SpyStore:
    """Record store rooted at a session directory."""

    def __init__(self, root: Path) -> None:
        self.root = root

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------
    def _calls_dir(self, name: str) -> Path:
        return self.root / name

    def _outputs_dir(self, name: str) -> Path:
        return self.root / OUTPUTS_DIRNAME / name

    def _errors_dir(self, name: str) -> Path:
        return self.root / ERRORS_DIRNAME / name

    def _status_file(self, name: str) -> Path:
        return self.root / STATUSES_DIRNAME / name

    def _cursor_file(self, name: str) -> Path:
        return self.root / CURSORS_DIRNAME / name

    @staticmethod
    def check_name(name: str) -> None:
        """Reject names that would collide with the store's own entries."""
        if name in RESERVED_NAMES:
            msg = f"Spy name {name!r} is reserved by the session layout"
            raise InvalidSpyNameError(msg)

    # ------------------------------------------------------------------
    # Definitions
    # ------------------------------------------------------------------
    def reset(self, name: str) -> None:
        """Remove every stored trace of *name*; unknown names are ignored."""
        with _fatal_on_os_error(f"reset spy {name!r}"):
            for directory in (
                self._outputs_dir(name),
                self._errors_dir(name),
                self._calls_dir(name),
            ):
                if directory.is_dir():
                    shutil.rmtree(directory)
            self._status_file(name).unlink(missing_ok=True)
            self._cursor_file(name).unlink(missing_ok=True)
        logger.debug("Reset spy %s", name)

    def write_config(self, name: str, config: SpyConfig) -> None:
        """Persist the output sequences configured for *name*."""
        self.check_name(name)
        with _fatal_on_os_error(f"store configuration for {name!r}"):
            for directory, entries in (
                (self._outputs_dir(name), config.stdout),
                (self._errors_dir(name), config.stderr),
            ):
                if not entries:
                    continue
                directory.mkdir(parents=True, exist_ok=True)
                for index, text in entries.items():
                    _write_text(directory / str(index), text)
            status_file = self._status_file(name)
            status_file.parent.mkdir(parents=True, exist_ok=True)
            _write_text(status_file, "".join(f"{code}\n" for code in config.statuses))

    def read_config(self, name: str) -> SpyConfig:
        """Load the configuration for *name*."""
        status_file = self._status_file(name)
        if not status_file.is_file():
            msg = f"Unknown spy: {name!r}"
            raise FatalError(msg)
        with _fatal_on_os_error(f"read configuration for {name!r}"):
            raw = _read_text(status_file).split()
            stdout = {
                index: _read_text(path)
                for index, path in _numbered_entries(self._outputs_dir(name)).items()
            }
            stderr = {
                index: _read_text(path)
                for index, path in _numbered_entries(self._errors_dir(name)).items()
            }
        try:
            statuses = [int(code) for code in raw]
        except ValueError as exc:
            msg = f"Corrupted status sequence for {name!r}: {raw!r}"
            raise FatalError(msg) from exc
        if not statuses:
            msg = f"Empty status sequence for {name!r}"
            raise FatalError(msg)
        return SpyConfig(statuses=statuses, stdout=stdout, stderr=stderr)

    def exists(self, name: str) -> bool:
        """Return ``True`` when *name* has a stored definition."""
        return self._status_file(name).is_file()

    def known_spies(self) -> list[str]:
        """Return the names of all defined spies, sorted."""
        statuses = self.root / STATUSES_DIRNAME
        if not statuses.is_dir():
            return []
        return sorted(p.name for p in statuses.iterdir())

    # ------------------------------------------------------------------
    # Call history
    # ------------------------------------------------------------------
    def append_call(self, name: str, args: t.Sequence[str]) -> int:
        """Record *args* as the next call of *name* and return its index.

        Index allocation is not locked: concurrent invocations of the same
        spy may race and are unsupported.
        """
        index = self.call_count(name)
        call_dir = self._calls_dir(name) / str(index)
        with _fatal_on_os_error(f"record call {index} of {name!r}"):
            call_dir.mkdir(parents=True)
            for position, arg in enumerate(args):
                _write_text(call_dir / str(position), arg)
        logger.debug("Recorded call %d of %s: %r", index, name, list(args))
        return index

    def call_count(self, name: str) -> int:
        """Return the number of recorded calls for *name*."""
        return len(_numbered_entries(self._calls_dir(name)))

    def get_call(self, name: str, index: int) -> Call:
        """Return the arguments of the 0-based call *index*."""
        call_dir = self._calls_dir(name) / str(index)
        if index < 0 or not call_dir.is_dir():
            msg = f"{name} was not called {index + 1} time(s)"
            raise SpyCallError(msg)
        with _fatal_on_os_error(f"read call {index} of {name!r}"):
            entries = _numbered_entries(call_dir)
            return tuple(_read_text(entries[i]) for i in sorted(entries))

    def calls(self, name: str) -> list[Call]:
        """Return every recorded call of *name* in invocation order."""
        return [self.get_call(name, i) for i in range(self.call_count(name))]

    # ------------------------------------------------------------------
    # Examine cursor
    # ------------------------------------------------------------------
    def cursor(self, name: str) -> int:
        """Return the examine cursor of *name* (``0`` when never advanced)."""
        cursor_file = self._cursor_file(name)
        if not cursor_file.is_file():
            return 0
        raw = _read_text(cursor_file).strip()
        try:
            return int(raw)
        except ValueError as exc:
            msg = f"Corrupted examine cursor for {name!r}: {raw!r}"
            raise FatalError(msg) from exc

    def set_cursor(self, name: str, value: int) -> None:
        """Store *value* as the examine cursor of *name*."""
        cursor_file = self._cursor_file(name)
        with _fatal_on_os_error(f"update examine cursor for {name!r}"):
            cursor_file.parent.mkdir(parents=True, exist_ok=True)
            _write_text(cursor_file, f"{value}\n")


__all__ = ["RESERVED_NAMES", "SpyStore"]
