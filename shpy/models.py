"""Data model shared by the spy factory, recorder and query layer."""

from __future__ import annotations

import dataclasses as dc
import typing as t

from .errors import FatalError

# A call is the ordered argument list of one invocation.
Call = tuple[str, ...]


@dc.dataclass(slots=True, frozen=True)
class Status:
    """Exit status to return for the next configured call position."""

    code: int


@dc.dataclass(slots=True, frozen=True)
class Stdout:
    """Text to write to standard output for the next configured position."""

    text: str


@dc.dataclass(slots=True, frozen=True)
class Stderr:
    """Text to write to standard error for the next configured position."""

    text: str


SpyOption = Status | Stdout | Stderr


@dc.dataclass(slots=True)
class SpyConfig:
    """Configured output sequences for a single spy.

    ``stdout`` and ``stderr`` map a configured position to its text. They are
    sparse: positions without an entry fall back to the nearest earlier one.
    ``statuses`` is never empty once built through :meth:`from_options`.
    """

    statuses: list[int] = dc.field(default_factory=lambda: [0])
    stdout: dict[int, str] = dc.field(default_factory=dict)
    stderr: dict[int, str] = dc.field(default_factory=dict)

    @classmethod
    def from_options(cls, options: t.Iterable[object]) -> SpyConfig:
        """Parse *options* left to right into per-stream sequences."""
        statuses: list[int] = []
        stdout: dict[int, str] = {}
        stderr: dict[int, str] = {}
        for option in options:
            match option:
                case Status(code=code):
                    statuses.append(int(code))
                case Stdout(text=text):
                    stdout[len(stdout)] = text
                case Stderr(text=text):
                    stderr[len(stderr)] = text
                case _:
                    msg = f"Unknown spy option: {option!r}"
                    raise FatalError(msg)
        return cls(statuses=statuses or [0], stdout=stdout, stderr=stderr)

    def status_for(self, index: int) -> int:
        """Return the exit status for the 0-based call *index*."""
        return clamp_to_last(self.statuses, index)

    def stdout_for(self, index: int) -> str | None:
        """Return the stdout text for call *index*, or ``None``."""
        return search_backward(self.stdout, index)

    def stderr_for(self, index: int) -> str | None:
        """Return the stderr text for call *index*, or ``None``."""
        return search_backward(self.stderr, index)


@dc.dataclass(slots=True)
class Response:
    """Output a spy produces for one invocation."""

    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0


def clamp_to_last(sequence: t.Sequence[int], index: int) -> int:
    """Return ``sequence[index]`` or its last item once *index* runs past it."""
    if not sequence:
        msg = "Status sequence must not be empty"
        raise FatalError(msg)
    return sequence[min(index, len(sequence) - 1)]


def search_backward(entries: t.Mapping[int, str], index: int) -> str | None:
    """Return the entry at *index* or the closest configured one before it."""
    candidates = [position for position in entries if position <= index]
    if not candidates:
        return None
    return entries[max(candidates)]


def render_call(call: t.Iterable[str]) -> str:
    """Render *call* for display: whitespace-bearing arguments are quoted."""
    return " ".join(
        f'"{arg}"' if any(ch.isspace() for ch in arg) else arg for arg in call
    )


__all__ = [
    "Call",
    "Response",
    "SpyConfig",
    "SpyOption",
    "Status",
    "Stderr",
    "Stdout",
    "clamp_to_last",
    "render_call",
    "search_backward",
]
