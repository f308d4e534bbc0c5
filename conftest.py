"""Global test configuration and shared fixtures."""

from __future__ import annotations

import shutil
import subprocess
import typing as t

import pytest

import shpy.environment

pytest_plugins = ("shpy.pytest_plugin", "pytester")


def _posix_shell_available() -> bool:
    """Return ``True`` when spy launchers can be executed."""
    return shutil.which("sh") is not None


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "requires_posix_shell: mark test as executing spy launchers via /bin/sh",
    )


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Skip tests needing a POSIX shell when none is available."""
    if _posix_shell_available():
        return
    skip = pytest.mark.skip(reason="no POSIX shell available to run spy launchers")
    for item in items:
        if "requires_posix_shell" in item.keywords:
            item.add_marker(skip)


@pytest.fixture
def run() -> t.Callable[..., subprocess.CompletedProcess[str]]:
    """Return a helper running *argv* with captured text output.

    Non-zero exit statuses are returned rather than raised; spies are expected
    to fail on demand.
    """

    def _run(
        argv: t.Sequence[object], **kwargs: t.Any
    ) -> subprocess.CompletedProcess[str]:
        kwargs.setdefault("check", False)
        kwargs.setdefault("text", True)
        return subprocess.run(  # noqa: S603
            [str(a) for a in argv], capture_output=True, **kwargs
        )

    return _run


@pytest.fixture(autouse=True)
def reset_active_session_state() -> t.Generator[None, None, None]:
    """Ensure clean state for ``SessionEnvironment`` between tests."""
    shpy.environment.SessionEnvironment.reset_active()
    yield
    shpy.environment.SessionEnvironment.reset_active()
