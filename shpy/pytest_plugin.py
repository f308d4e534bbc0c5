"""Pytest plugin providing the ``shpy_session`` fixture."""

from __future__ import annotations

import logging
import os
import typing as t

import pytest

from .platform import skip_if_unsupported
from .session import Session

logger = logging.getLogger(__name__)


def pytest_addoption(parser: pytest.Parser) -> None:
    """Register command-line and ini options for the plugin."""
    group = parser.getgroup("shpy")
    group.addoption(
        "--shpy-auto-cleanup",
        action="store_true",
        dest="shpy_auto_cleanup",
        default=None,
        help="Tear the shpy session down after each test. Overrides the ini setting.",
    )
    group.addoption(
        "--no-shpy-auto-cleanup",
        action="store_false",
        dest="shpy_auto_cleanup",
        default=None,
        help=(
            "Leave session teardown to the test; sessions still initialised at "
            "the end of the test fail it. Overrides the ini setting."
        ),
    )
    parser.addini(
        "shpy_auto_cleanup",
        "Tear the shpy session down automatically after each test.",
        type="bool",
        default=True,
    )


def pytest_configure(config: pytest.Config) -> None:
    """Register plugin-specific markers."""
    config.addinivalue_line(
        "markers",
        "shpy(auto_cleanup: bool = True): override automatic session teardown "
        "for a single test.",
    )


def _auto_cleanup_enabled(request: pytest.FixtureRequest) -> bool:
    """Return whether the fixture should tear the session down itself."""
    # Priority order: marker > CLI option > INI setting
    marker = request.node.get_closest_marker("shpy")
    if marker is not None and "auto_cleanup" in marker.kwargs:
        return bool(marker.kwargs["auto_cleanup"])

    config = request.config
    cli_value = config.getoption("shpy_auto_cleanup")
    if cli_value is not None:
        return bool(cli_value)

    return bool(config.getini("shpy_auto_cleanup"))


def _worker_prefix(request: pytest.FixtureRequest) -> str:
    """Build a temporary-directory prefix that stays distinct per worker."""
    worker_id = os.getenv("PYTEST_XDIST_WORKER")
    if worker_id is None:
        worker_input = getattr(request.config, "workerinput", None)
        if isinstance(worker_input, dict):
            worker_id = str(worker_input.get("workerid", "main"))
        else:
            worker_id = "main"
    return f"shpy-{worker_id}-{os.getpid()}-"


@pytest.fixture
def shpy_session(request: pytest.FixtureRequest) -> t.Generator[Session, None, None]:
    """Provide an initialised :class:`Session` and tear it down afterwards."""
    skip_if_unsupported()

    session = Session(prefix=_worker_prefix(request))
    auto_cleanup = _auto_cleanup_enabled(request)
    try:
        session.init()
        yield session
    except Exception:
        logger.exception("Error during shpy fixture setup or test execution")
        raise
    finally:
        _teardown_session(session, auto_cleanup=auto_cleanup)


def _teardown_session(session: Session, *, auto_cleanup: bool) -> None:
    """Tear *session* down, failing the test when it was left behind."""
    leaked = not auto_cleanup and session.initialized
    try:
        session.teardown()
    except Exception:
        logger.exception("Error during shpy fixture cleanup")
        pytest.fail("shpy fixture cleanup failed")
    if leaked:
        pytest.fail("shpy session was not cleaned up by the test")


__all__ = ["shpy_session"]
