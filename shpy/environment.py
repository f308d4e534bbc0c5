"""Working-directory and environment management for shpy sessions."""

from __future__ import annotations

import contextlib
import functools
import json
import logging
import os
import shutil
import tempfile
import threading
import time
import typing as t
from pathlib import Path

from .errors import FatalError, LifecycleError, MissingSessionError

logger = logging.getLogger(__name__)

SHPY_SESSION_DIR_ENV = "SHPY_SESSION_DIR"
SHPY_PATH_ENV = "SHPY_PATH"
SHPY_VERSION_ENV = "SHPY_VERSION"

BIN_DIRNAME = "bin"
METADATA_FILENAME = "session.json"

# Directory containing the ``shpy`` package; exported so launchers can put
# the library on ``sys.path`` even when the interpreter lacks it.
LIBRARY_PATH = Path(__file__).resolve().parent.parent

_MANAGED_VARIABLES: t.Final[tuple[str, ...]] = (
    "PATH",
    SHPY_SESSION_DIR_ENV,
    SHPY_PATH_ENV,
    SHPY_VERSION_ENV,
)


def _restore_variables(snapshot: dict[str, str | None]) -> None:
    """Reset each variable in *snapshot*, unsetting those that were absent."""
    for key, value in snapshot.items():
        if value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = value


class RobustRmtreeError(OSError):
    """Raised when :func:`_robust_rmtree` exhausts all removal attempts."""

    def __init__(
        self, path: Path, attempts: int, last_exception: Exception | None
    ) -> None:
        msg = f"Failed to remove {path} after {attempts} attempts"
        super().__init__(msg)
        self.path = path
        self.attempts = attempts
        self.last_exception = last_exception


def _robust_rmtree(path: Path, max_attempts: int = 4, retry_delay: float = 0.1) -> None:
    """Remove directory tree with retries."""
    if not path.exists():
        return
    last_exception: Exception | None = None
    for attempt in range(max_attempts):
        try:
            shutil.rmtree(path)
        except OSError as exc:
            last_exception = exc
        else:
            logger.debug("Removed session directory: %s", path)
            return
        if attempt < max_attempts - 1:
            logger.debug(
                "Attempt %d to remove %s failed. Retrying in %.1fs...",
                attempt + 1,
                path,
                retry_delay,
            )
            time.sleep(retry_delay)
    logger.warning(
        "Failed to remove session directory %s after %d attempts", path, max_attempts
    )
    raise RobustRmtreeError(path, max_attempts, last_exception) from last_exception


CleanupError = tuple[str, BaseException]

P = t.ParamSpec("P")


def _collect_os_error(
    message: str,
) -> t.Callable[
    [t.Callable[t.Concatenate[SessionEnvironment, list[CleanupError], P], None]],
    t.Callable[t.Concatenate[SessionEnvironment, list[CleanupError], P], None],
]:
    """Return a decorator that records ``OSError``s in ``cleanup_errors``."""

    def decorator(
        func: t.Callable[
            t.Concatenate[SessionEnvironment, list[CleanupError], P], None
        ],
    ) -> t.Callable[t.Concatenate[SessionEnvironment, list[CleanupError], P], None]:
        @functools.wraps(func)
        def wrapper(
            self: SessionEnvironment,
            cleanup_errors: list[CleanupError],
            *args: P.args,
            **kwargs: P.kwargs,
        ) -> None:
            try:
                func(self, cleanup_errors, *args, **kwargs)
            except OSError as e:
                cleanup_errors.append((f"{message}: {e}", e))

        return wrapper

    return decorator


class SessionEnvironment:
    """Own the temporary directory tree and ``PATH`` change of one session.

    :meth:`init` is idempotent for a given instance. Only one owning
    environment may be active per thread; a second one raises
    :class:`~shpy.errors.LifecycleError` instead of stacking ``PATH`` entries.
    Environments opened with :meth:`attach` refer to a directory created by
    another process and never touch ``os.environ``.
    """

    _state: t.ClassVar[threading.local] = threading.local()

    @classmethod
    def get_active(cls) -> SessionEnvironment | None:
        """Return the active environment for the current thread, if any."""
        return getattr(cls._state, "active", None)

    @classmethod
    def reset_active(cls) -> None:
        """Forget any active environment for the current thread."""
        cls._state.active = None

    def __init__(self, *, prefix: str = "shpy-", version: str | None = None) -> None:
        self.root: Path | None = None
        self.bin_dir: Path | None = None
        self._prefix = prefix
        self._version = version
        self._saved: dict[str, str | None] | None = None

    @classmethod
    def attach(cls, root: str | os.PathLike[str] | None = None) -> SessionEnvironment:
        """Open the session tree at *root* (default: ``$SHPY_SESSION_DIR``)."""
        raw = (
            os.fspath(root)
            if root is not None
            else os.environ.get(SHPY_SESSION_DIR_ENV)
        )
        if not raw:
            raise MissingSessionError(MissingSessionError.DEFAULT_MESSAGE)
        path = Path(raw)
        if not path.is_dir():
            msg = f"Session directory does not exist: {path}"
            raise MissingSessionError(msg)
        env = cls()
        env.root = path
        env.bin_dir = path / BIN_DIRNAME
        return env

    @property
    def initialized(self) -> bool:
        """Return ``True`` while the session tree is available."""
        return self.root is not None

    @property
    def metadata_path(self) -> Path:
        """Return the location of the session metadata file."""
        return self.require_root() / METADATA_FILENAME

    def require_root(self) -> Path:
        """Return the session root or raise when uninitialised."""
        if self.root is None:
            raise MissingSessionError(MissingSessionError.DEFAULT_MESSAGE)
        return self.root

    def init(self) -> None:
        """Create the session tree and prepend its ``bin`` directory to ``PATH``."""
        if self.root is not None:
            return
        cls = type(self)
        if cls.get_active() is not None:
            msg = "A shpy session is already active in this thread"
            raise LifecycleError(msg)

        try:
            root = Path(tempfile.mkdtemp(prefix=self._prefix))
            bin_dir = root / BIN_DIRNAME
            bin_dir.mkdir()
        except OSError as exc:
            msg = f"Cannot create session directory: {exc}"
            raise FatalError(msg) from exc

        self._saved = {key: os.environ.get(key) for key in _MANAGED_VARIABLES}
        original_path = self._saved["PATH"] or ""
        self.root = root
        self.bin_dir = bin_dir
        self._write_metadata(original_path)
        cls._state.active = self

        os.environ["PATH"] = os.pathsep.join(
            entry for entry in (str(bin_dir), original_path) if entry
        )
        os.environ.update(self.exported_variables())
        logger.debug("Initialised shpy session at %s", root)

    def exported_variables(self) -> dict[str, str]:
        """Return the ``SHPY_*`` variables child processes rely on."""
        variables = {
            SHPY_SESSION_DIR_ENV: str(self.require_root()),
            SHPY_PATH_ENV: str(LIBRARY_PATH),
        }
        if self._version is not None:
            variables[SHPY_VERSION_ENV] = self._version
        return variables

    def _write_metadata(self, original_path: str) -> None:
        payload = {
            "original_path": original_path,
            "library_path": str(LIBRARY_PATH),
            "version": self._version,
        }
        try:
            self.metadata_path.write_text(json.dumps(payload), encoding="utf-8")
        except OSError as exc:
            msg = f"Cannot write session metadata: {exc}"
            raise FatalError(msg) from exc

    def read_metadata(self) -> dict[str, t.Any]:
        """Return the metadata recorded when the session was created."""
        try:
            return json.loads(self.metadata_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            msg = f"Cannot read session metadata: {exc}"
            raise FatalError(msg) from exc

    @property
    def original_path(self) -> str:
        """Return ``PATH`` as it was before the session was initialised."""
        if self._saved is not None:
            return self._saved["PATH"] or ""
        return str(self.read_metadata().get("original_path", ""))

    def teardown(self) -> None:
        """Restore the environment and remove the session tree.

        Safe to call repeatedly and on environments whose :meth:`init` never
        ran. Failure to remove the tree raises :class:`FatalError`.
        """
        cleanup_errors: list[CleanupError] = []
        self._restore_environment(cleanup_errors)
        self._remove_tree(cleanup_errors)
        if type(self).get_active() is self:
            type(self).reset_active()
        self.root = None
        self.bin_dir = None
        if cleanup_errors:
            error_msg = "; ".join(msg for msg, _ in cleanup_errors)
            logger.error("Session teardown encountered errors: %s", error_msg)
            raise FatalError(f"Cleanup failed: {error_msg}") from cleanup_errors[0][1]

    @_collect_os_error("Environment restoration failed")
    def _restore_environment(self, _cleanup_errors: list[CleanupError]) -> None:
        if self._saved is None:
            return
        _restore_variables(self._saved)
        self._saved = None

    @_collect_os_error("Directory cleanup failed")
    def _remove_tree(self, _cleanup_errors: list[CleanupError]) -> None:
        if self.root is None:
            return
        _robust_rmtree(self.root)


@contextlib.contextmanager
def temporary_env(mapping: dict[str, str]) -> t.Iterator[None]:
    """Temporarily apply environment variables from *mapping*."""
    snapshot = {key: os.environ.get(key) for key in mapping}
    os.environ.update(mapping)
    try:
        yield
    finally:
        _restore_variables(snapshot)


__all__ = [
    "BIN_DIRNAME",
    "LIBRARY_PATH",
    "METADATA_FILENAME",
    "SHPY_PATH_ENV",
    "SHPY_SESSION_DIR_ENV",
    "SHPY_VERSION_ENV",
    "RobustRmtreeError",
    "SessionEnvironment",
    "temporary_env",
]
