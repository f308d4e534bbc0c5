"""Platform support checks for shpy.

Spies are POSIX shell launchers, so only platforms providing ``/bin/sh`` are
supported.
"""

from __future__ import annotations

import os
import sys
import typing as t

# Lets tests emulate another platform without spawning one.
PLATFORM_OVERRIDE_ENV: t.Final[str] = "SHPY_PLATFORM_OVERRIDE"

_UNSUPPORTED_PLATFORMS: t.Final[tuple[tuple[str, str], ...]] = (
    ("win", "shpy requires a POSIX shell and does not support Windows"),
)


def _current_platform(platform: str | None = None) -> str:
    """Return the effective platform name, honouring test overrides."""
    if platform:
        return platform.strip().lower()

    if override := os.getenv(PLATFORM_OVERRIDE_ENV):
        return override.strip().lower()

    return sys.platform.lower()


def unsupported_reason(platform: str | None = None) -> str | None:
    """Return the skip reason for *platform*, or ``None`` when supported."""
    platform_name = _current_platform(platform)
    return next(
        (
            reason
            for prefix, reason in _UNSUPPORTED_PLATFORMS
            if platform_name.startswith(prefix)
        ),
        None,
    )


def is_supported(platform: str | None = None) -> bool:
    """Return ``True`` when *platform* (default: current) supports shpy."""
    return unsupported_reason(platform) is None


def skip_if_unsupported(
    *, reason: str | None = None, platform: str | None = None
) -> None:
    """Skip the current pytest test if shpy is unavailable on *platform*."""
    skip_reason = unsupported_reason(platform)
    if skip_reason is None:
        return

    import pytest

    pytest.skip(reason or skip_reason)


__all__ = [
    "PLATFORM_OVERRIDE_ENV",
    "is_supported",
    "skip_if_unsupported",
    "unsupported_reason",
]
