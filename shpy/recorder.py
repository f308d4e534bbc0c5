"""Record spy invocations and resolve the configured playback."""

from __future__ import annotations

import logging
import typing as t

from .models import Response

if t.TYPE_CHECKING:  # pragma: no cover - typing only
    from .store import SpyStore

logger = logging.getLogger(__name__)


def record_invocation(store: SpyStore, name: str, argv: t.Sequence[str]) -> Response:
    """Append *argv* to the history of *name* and return what it should emit.

    Unknown spies raise :class:`~shpy.errors.FatalError` before anything is
    recorded. Output resolves against the index the new call was stored at.
    """
    config = store.read_config(name)
    index = store.append_call(name, argv)
    response = Response(
        stdout=config.stdout_for(index) or "",
        stderr=config.stderr_for(index) or "",
        exit_code=config.status_for(index),
    )
    logger.debug("Spy %s call %d exits with %d", name, index, response.exit_code)
    return response


__all__ = ["record_invocation"]
