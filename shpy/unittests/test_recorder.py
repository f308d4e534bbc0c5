"""Unit tests for :mod:`shpy.recorder`."""

from __future__ import annotations

import typing as t

import pytest

from shpy.errors import FatalError
from shpy.models import Response, SpyConfig, Status, Stderr, Stdout
from shpy.recorder import record_invocation
from shpy.store import SpyStore

if t.TYPE_CHECKING:  # pragma: no cover - typing only
    from pathlib import Path


@pytest.fixture
def store(tmp_path: Path) -> SpyStore:
    """Return a store rooted in a fresh temporary directory."""
    return SpyStore(tmp_path)


def _define(store: SpyStore, name: str, *options: object) -> None:
    store.write_config(name, SpyConfig.from_options(options))


def test_statuses_clamp_to_last(store: SpyStore) -> None:
    """Statuses [2, 4] yield 2, 4, 4 over three calls."""
    _define(store, "tool", Status(2), Status(4))
    codes = [record_invocation(store, "tool", []).exit_code for _ in range(3)]
    assert codes == [2, 4, 4]


def test_outputs_repeat_last_configured_value(store: SpyStore) -> None:
    """A single stdout entry is replayed on later calls."""
    _define(store, "tool", Stdout("A"))
    first = record_invocation(store, "tool", [])
    second = record_invocation(store, "tool", [])
    assert first == Response(stdout="A", stderr="", exit_code=0)
    assert second == Response(stdout="A", stderr="", exit_code=0)


def test_unconfigured_streams_stay_silent(store: SpyStore) -> None:
    """Spies without -o/-e never write output."""
    _define(store, "tool", Status(1))
    response = record_invocation(store, "tool", ["x"])
    assert response == Response(exit_code=1)


def test_streams_and_status_resolve_independently(store: SpyStore) -> None:
    """Each stream walks its own sequence."""
    _define(
        store,
        "tool",
        Stderr("e0"),
        Stdout("o0"),
        Stdout("o1"),
        Status(0),
        Stdout("o2"),
        Status(9),
    )
    responses = [record_invocation(store, "tool", []) for _ in range(4)]
    assert [r.stdout for r in responses] == ["o0", "o1", "o2", "o2"]
    assert [r.stderr for r in responses] == ["e0", "e0", "e0", "e0"]
    assert [r.exit_code for r in responses] == [0, 9, 9, 9]


def test_invocation_is_appended_to_history(store: SpyStore) -> None:
    """Arguments are recorded in call order."""
    _define(store, "tool")
    record_invocation(store, "tool", ["first"])
    record_invocation(store, "tool", ["second", "two words"])
    assert store.calls("tool") == [("first",), ("second", "two words")]


def test_unknown_spy_is_fatal_and_not_recorded(store: SpyStore) -> None:
    """Invoking an undefined spy aborts without touching history."""
    with pytest.raises(FatalError):
        record_invocation(store, "ghost", ["x"])
    assert store.call_count("ghost") == 0
