"""Command-line surface mirroring the shell function interface.

Run ``eval "$(python -m shpy initSession)"`` in a shell to start a session;
this exports the session variables, prepends the spy directory to ``PATH`` and
defines one shell function per command (``createSpy``, ``assertCalledWith``
and friends) that forwards to ``python -m shpy``.
"""

from __future__ import annotations

import argparse
import dataclasses as dc
import getopt
import logging
import os
import shlex
import sys
import typing as t

from . import assertions
from .environment import (
    SHPY_PATH_ENV,
    SHPY_SESSION_DIR_ENV,
    SHPY_VERSION_ENV,
)
from .errors import (
    FatalError,
    InvalidSpyNameError,
    SpyCallError,
    UsageError,
)
from .models import SpyOption, Status, Stderr, Stdout
from .session import Session

logger = logging.getLogger(__name__)

SHPY_LOG_LEVEL_ENV = "SHPY_LOG_LEVEL"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CALL_ERROR = 2
EXIT_FATAL = 3

Handler = t.Callable[[list[str]], int]


@dc.dataclass(frozen=True, slots=True)
class Command:
    """A named command with its usage block and handler."""

    name: str
    usage: str
    handler: Handler
    wrapper: str = "call"


_SPY_OPTIONS = "r:o:e:"


def _parse_status(raw: str) -> Status:
    try:
        return Status(int(raw))
    except ValueError:
        msg = f"Exit status must be an integer: {raw!r}"
        raise FatalError(msg) from None


def parse_option_args(argv: t.Sequence[str]) -> tuple[str, list[SpyOption]]:
    """Parse ``[-r status]... [-o out]... [-e err]... name`` into options.

    As with ``getopts``, the token after ``-r``/``-o``/``-e`` is always that
    flag's value, even when it starts with a dash. Output values gain a
    trailing newline, as ``echo`` would print them.
    """
    try:
        pairs, operands = getopt.getopt(list(argv), _SPY_OPTIONS)
    except getopt.GetoptError as exc:
        if exc.opt and "not recognized" in exc.msg:
            msg = f"Unknown option: -{exc.opt}"
        else:
            msg = f"Malformed option: {exc.msg}"
        raise FatalError(msg) from exc
    if len(operands) != 1 or not operands[0]:
        raise UsageError()
    options: list[SpyOption] = []
    for flag, value in pairs:
        match flag:
            case "-r":
                options.append(_parse_status(value))
            case "-o":
                options.append(Stdout(f"{value}\n"))
            case "-e":
                options.append(Stderr(f"{value}\n"))
    return operands[0], options


def _split_message(argv: list[str], arity: int) -> tuple[str | None, list[str]]:
    """Split an optional leading message from exactly *arity* arguments."""
    if len(argv) == arity:
        return None, argv
    if len(argv) == arity + 1:
        return argv[0], argv[1:]
    raise UsageError()


def _parse_count(raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise UsageError() from None


# ----------------------------------------------------------------------
# Handlers
# ----------------------------------------------------------------------
def _init_session(argv: list[str]) -> int:
    if argv:
        raise UsageError()
    if os.environ.get(SHPY_SESSION_DIR_ENV):
        session = Session.attach()
    else:
        session = Session()
        session.init()
    env = session.environment
    exports = {
        **env.exported_variables(),
        SHPY_VERSION_ENV: env.read_metadata().get("version") or "",
        "PATH": os.pathsep.join(
            entry for entry in (str(env.bin_dir), env.original_path) if entry
        ),
    }
    lines = [f"export {key}={shlex.quote(value)}" for key, value in exports.items()]
    lines.extend(_shell_function(command) for command in COMMANDS.values())
    print("\n".join(lines))
    return EXIT_OK


def _shell_function(command: Command) -> str:
    invocation = f"{shlex.quote(sys.executable)} -m shpy {command.name}"
    if command.wrapper == "eval":
        return f'{command.name}() {{ eval "$({invocation} "$@")"; }}'
    return f'{command.name}() {{ {invocation} "$@"; }}'


def _cleanup_spies(argv: list[str]) -> int:
    if argv:
        raise UsageError()
    if not os.environ.get(SHPY_SESSION_DIR_ENV):
        return EXIT_OK
    session = Session.attach()
    original_path = session.environment.original_path
    session.cleanup_spies()
    print(f"export PATH={shlex.quote(original_path)}")
    print(f"unset {SHPY_SESSION_DIR_ENV} {SHPY_PATH_ENV} {SHPY_VERSION_ENV}")
    return EXIT_OK


def _create_spy(argv: list[str]) -> int:
    name, options = parse_option_args(argv)
    Session.attach().create_spy(name, options)
    return EXIT_OK


def _get_spy_call_count(argv: list[str]) -> int:
    if len(argv) != 1:
        raise UsageError()
    print(assertions.get_spy_call_count(Session.attach(), argv[0]))
    return EXIT_OK


def _was_spy_called_with(argv: list[str]) -> int:
    if not argv:
        raise UsageError()
    name, *args = argv
    matched = assertions.was_spy_called_with(Session.attach(), name, *args)
    return EXIT_OK if matched else EXIT_FAILURE


def _get_args_for_call(argv: list[str]) -> int:
    if len(argv) != 2:  # noqa: PLR2004
        raise UsageError()
    name, raw_call = argv
    print(assertions.get_args_for_call(Session.attach(), name, _parse_count(raw_call)))
    return EXIT_OK


def _examine_next_spy_call(argv: list[str]) -> int:
    if len(argv) != 1:
        raise UsageError()
    assertions.examine_next_spy_call(Session.attach(), argv[0])
    return EXIT_OK


def _assert_call_count(argv: list[str]) -> int:
    msg, (name, raw_count) = _split_message(argv, 2)
    assertions.assert_call_count(
        Session.attach(), name, _parse_count(raw_count), msg=msg
    )
    return EXIT_OK


def _assert_never_called(argv: list[str]) -> int:
    msg, (name,) = _split_message(argv, 1)
    assertions.assert_never_called(Session.attach(), name, msg=msg)
    return EXIT_OK


def _called_with(check: t.Callable[..., None], *, with_message: bool) -> Handler:
    def handler(argv: list[str]) -> int:
        minimum = 2 if with_message else 1
        if len(argv) < minimum:
            raise UsageError()
        msg = argv.pop(0) if with_message else None
        name, *args = argv
        check(Session.attach(), name, *args, msg=msg)
        return EXIT_OK

    return handler


_COMMAND_LIST: tuple[Command, ...] = (
    Command(
        "initSession",
        "Usage: initSession\n"
        '  Start a session; use as: eval "$(python -m shpy initSession)"',
        _init_session,
        wrapper="eval",
    ),
    Command(
        "createSpy",
        "Usage: createSpy [-r status]... [-o output]... [-e error]... name\n"
        "  Define a spy named NAME with sequenced exit statuses and outputs.",
        _create_spy,
    ),
    Command(
        "createStub",
        "Usage: createStub [-r status]... [-o output]... [-e error]... name\n"
        "  Alias for createSpy.",
        _create_spy,
    ),
    Command(
        "getSpyCallCount",
        "Usage: getSpyCallCount name\n"
        "  Print how often the spy was called.",
        _get_spy_call_count,
    ),
    Command(
        "wasSpyCalledWith",
        "Usage: wasSpyCalledWith name [arg]...\n"
        "  Succeed if the examined call received exactly the given arguments.",
        _was_spy_called_with,
    ),
    Command(
        "getArgsForCall",
        "Usage: getArgsForCall name call\n"
        "  Print the arguments of the given call (numbered from 1).",
        _get_args_for_call,
    ),
    Command(
        "examineNextSpyCall",
        "Usage: examineNextSpyCall name\n"
        "  Make wasSpyCalledWith examine the spy's next call.",
        _examine_next_spy_call,
    ),
    Command(
        "cleanupSpies",
        "Usage: cleanupSpies\n"
        "  Remove all spies and restore PATH.",
        _cleanup_spies,
        wrapper="eval",
    ),
    Command(
        "assertCallCount",
        "Usage: assertCallCount [message] name count\n"
        "  Assert the spy was called COUNT times.",
        _assert_call_count,
    ),
    Command(
        "assertCalledWith",
        "Usage: assertCalledWith name [arg]...\n"
        "  Assert the examined call received the arguments, then examine the\n"
        "  next call.",
        _called_with(assertions.assert_called_with, with_message=False),
    ),
    Command(
        "assertCalledWith_",
        "Usage: assertCalledWith_ message name [arg]...\n"
        "  Like assertCalledWith, prefixing failures with MESSAGE.",
        _called_with(assertions.assert_called_with, with_message=True),
    ),
    Command(
        "assertCalledOnceWith",
        "Usage: assertCalledOnceWith name [arg]...\n"
        "  Assert the spy was called exactly once, with the arguments.",
        _called_with(assertions.assert_called_once_with, with_message=False),
    ),
    Command(
        "assertCalledOnceWith_",
        "Usage: assertCalledOnceWith_ message name [arg]...\n"
        "  Like assertCalledOnceWith, prefixing failures with MESSAGE.",
        _called_with(assertions.assert_called_once_with, with_message=True),
    ),
    Command(
        "assertNeverCalled",
        "Usage: assertNeverCalled [message] name\n"
        "  Assert the spy was never called.",
        _assert_never_called,
    ),
)

COMMANDS: dict[str, Command] = {command.name: command for command in _COMMAND_LIST}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shpy", description="Spy on shell commands from tests."
    )
    parser.add_argument("command", choices=list(COMMANDS))
    parser.add_argument("argv", nargs=argparse.REMAINDER)
    return parser


def run_command(name: str, argv: t.Sequence[str]) -> int:
    """Run command *name* with *argv* and return its exit status."""
    command = COMMANDS[name]
    try:
        return command.handler(list(argv))
    except UsageError:
        print(command.usage)
        return EXIT_FAILURE
    except AssertionError as exc:
        print(f"ASSERT:{exc}")
        return EXIT_FAILURE
    except SpyCallError as exc:
        print(f"{name}: {exc}", file=sys.stderr)
        return EXIT_CALL_ERROR
    except InvalidSpyNameError as exc:
        print(f"{name}: {exc}", file=sys.stderr)
        return EXIT_FAILURE
    except FatalError as exc:
        logger.debug("Fatal error in %s", name, exc_info=True)
        print(f"shpy: {exc}", file=sys.stderr)
        return EXIT_FATAL


def main(argv: t.Sequence[str] | None = None) -> int:
    """Entry point for ``python -m shpy``."""
    logging.basicConfig(
        level=os.environ.get(SHPY_LOG_LEVEL_ENV, "WARNING").upper(),
        stream=sys.stderr,
        format="%(name)s: %(levelname)s: %(message)s",
    )
    namespace = _build_parser().parse_args(argv)
    return run_command(namespace.command, namespace.argv)


__all__ = ["COMMANDS", "Command", "main", "parse_option_args", "run_command"]
