"""Behavioural tests for spies using pytest-bdd."""

from __future__ import annotations

from pathlib import Path

import pytest
from pytest_bdd import scenario

from tests.steps import *  # noqa: F403

FEATURES_DIR = Path(__file__).resolve().parent.parent / "features"
FEATURE = str(FEATURES_DIR / "spy_recording.feature")

pytestmark = pytest.mark.requires_posix_shell


@scenario(FEATURE, "exit statuses repeat the last configured value")
def test_status_sequence() -> None:
    """Statuses are consumed in order and the last one repeats."""


@scenario(FEATURE, "outputs are replayed in order per stream")
def test_output_sequence() -> None:
    """Stdout entries are consumed in order and the last one repeats."""


@scenario(FEATURE, "arguments are recorded verbatim")
def test_arguments_recorded() -> None:
    """Arguments containing spaces survive recording."""


@scenario(FEATURE, "the examine cursor walks through the calls")
def test_examine_cursor() -> None:
    """The examine cursor selects successive calls."""


@scenario(FEATURE, "failed assertions describe both argument lists")
def test_assertion_message() -> None:
    """Assertion failures name expected and actual arguments."""


@scenario(FEATURE, "recreating a spy discards its history")
def test_recreate_spy() -> None:
    """Redefining a spy resets its calls and behaviour."""


@scenario(FEATURE, "cleaning up removes spies from PATH")
def test_cleanup() -> None:
    """Cleanup removes launchers and the session tree."""
