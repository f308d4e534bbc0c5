"""Session object owning the spies of one test run."""

from __future__ import annotations

import logging
import typing as t

from ._version import __version__
from .environment import SessionEnvironment
from .errors import MissingSessionError
from .models import SpyConfig
from .shimgen import install_launcher, remove_launcher, validate_spy_name
from .spy import Spy
from .store import SpyStore

if t.TYPE_CHECKING:  # pragma: no cover - typing only
    import os
    import types
    from pathlib import Path

logger = logging.getLogger(__name__)


class Session:
    """Explicit owner of the session directory, ``PATH`` change and spies.

    Use as a context manager or call :meth:`init` and :meth:`teardown`
    directly. Every spy operation goes through the session, so several
    sessions may exist side by side as long as only one is initialised per
    thread.
    """

    def __init__(
        self,
        *,
        prefix: str = "shpy-",
        environment: SessionEnvironment | None = None,
    ) -> None:
        self.environment = (
            environment
            if environment is not None
            else SessionEnvironment(prefix=prefix, version=__version__)
        )
        self._spies: dict[str, Spy] = {}

    @classmethod
    def attach(cls, root: str | os.PathLike[str] | None = None) -> Session:
        """Return a session bound to an existing tree (default: from env)."""
        return cls(environment=SessionEnvironment.attach(root))

    # ------------------------------------------------------------------
    # Context manager protocol
    # ------------------------------------------------------------------
    def __enter__(self) -> Session:
        """Initialise the session."""
        self.init()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: types.TracebackType | None,
    ) -> None:
        """Tear the session down."""
        self.teardown()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    @property
    def initialized(self) -> bool:
        """Return ``True`` while the session tree exists."""
        return self.environment.initialized

    @property
    def store(self) -> SpyStore:
        """Return the record store of the initialised session."""
        return SpyStore(self.environment.require_root())

    def init(self) -> None:
        """Create the session tree; a no-op when already initialised."""
        self.environment.init()

    def teardown(self) -> None:
        """Reset every spy, remove the tree and restore ``PATH``."""
        if self.initialized:
            store = self.store
            for name in sorted(set(store.known_spies()) | set(self._spies)):
                self._reset(store, name)
        self._spies.clear()
        self.environment.teardown()
        logger.debug("Session torn down")

    cleanup_spies = teardown

    # ------------------------------------------------------------------
    # Spies
    # ------------------------------------------------------------------
    @property
    def spies(self) -> dict[str, Spy]:
        """Return handles for every spy defined in this session."""
        if not self.initialized:
            return {}
        return {name: self.spy(name) for name in self.store.known_spies()}

    def spy(self, name: str) -> Spy:
        """Return the handle for *name*."""
        if not self.initialized:
            raise MissingSessionError(MissingSessionError.DEFAULT_MESSAGE)
        handle = self._spies.get(name)
        if handle is None:
            validate_spy_name(name)
            handle = Spy(name, self.store)
            self._spies[name] = handle
        return handle

    def create_spy(self, name: str, options: t.Iterable[object] = ()) -> Spy:
        """Define (or redefine) *name* and install it on ``PATH``.

        *options* is an ordered iterable of :class:`~shpy.models.Status`,
        :class:`~shpy.models.Stdout` and :class:`~shpy.models.Stderr`. Each
        stream keeps its own order; without any ``Status`` the spy exits 0.
        """
        self.init()
        validate_spy_name(name)
        config = SpyConfig.from_options(options)
        store = self.store
        self._reset(store, name)
        store.write_config(name, config)
        install_launcher(self._bin_dir(), name)
        logger.debug(
            "Created spy %s (statuses=%s, stdout=%d, stderr=%d)",
            name,
            config.statuses,
            len(config.stdout),
            len(config.stderr),
        )
        return self.spy(name)

    create_stub = create_spy

    def _bin_dir(self) -> Path:
        bin_dir = self.environment.bin_dir
        if bin_dir is None:
            raise MissingSessionError(MissingSessionError.DEFAULT_MESSAGE)
        return bin_dir

    def _reset(self, store: SpyStore, name: str) -> None:
        store.reset(name)
        remove_launcher(self._bin_dir(), name)
        self._spies.pop(name, None)


__all__ = ["Session"]
