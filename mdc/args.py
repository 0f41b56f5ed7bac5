"""Parsing of mdc options and inspection of docker compose arguments."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Optional, Sequence

DEFAULT_DEPTH = 1

_INTEGER = re.compile(r"[+-]?[0-9]+")

_HELP_WORDS = frozenset({"help", "-h", "--help"})
_VERSION_WORDS = frozenset({"version", "--version"})

_VALUE_FLAGS = frozenset(
    {
        "--ansi",
        "--env-file",
        "-f",
        "--file",
        "--parallel",
        "-p",
        "--project-name",
        "--profile",
        "--progress",
        "--project-directory",
    }
)
_GLOBAL_FLAGS = _VALUE_FLAGS | {"--all-resources", "--compatibility", "--dry-run"}

_INTERACTIVE_COMMANDS = frozenset({"attach", "exec", "run"})
_INTERLEAVED_COMMANDS = frozenset(
    {"build", "create", "down", "events", "logs", "pull", "restart", "start", "stop", "up"}
)


class Action(enum.Enum):
    """What the command line asks mdc to do."""

    RUN = "run"
    HELP = "help"
    VERSION = "version"


class OutputMode(enum.Enum):
    """How output of the compose commands reaches the terminal."""

    BUFFERED = "buffered"
    INTERLEAVED = "interleaved"
    PASSTHROUGH = "passthrough"


@dataclass
class Options:
    """Options that belong to mdc itself."""

    depth: int = DEFAULT_DEPTH
    jobs: int = 0
    quiet_targets: bool = False


class UsageError(ValueError):
    """The command line cannot be used as given."""


def parse_non_negative_int(raw: str, name: str) -> int:
    """Parse a decimal integer that must not be negative."""
    if _INTEGER.fullmatch(raw) is None or int(raw) < 0:
        raise UsageError(f"{name} must be a non-negative integer")
    return int(raw)


def _flag_value(args: Sequence[str], index: int, name: str) -> int:
    if index + 1 >= len(args):
        raise UsageError(f"missing value for --{name}")
    return parse_non_negative_int(args[index + 1], name)


def parse_args(args: Sequence[str]) -> tuple[Options, list[str], Action]:
    """Split the command line into mdc options and docker compose arguments."""
    args = list(args)
    options = Options()
    if not args:
        return options, [], Action.HELP

    if len(args) == 1:
        if args[0] in _HELP_WORDS:
            return options, [], Action.HELP
        if args[0] in _VERSION_WORDS:
            return options, [], Action.VERSION

    i = 0
    while i < len(args):
        arg = args[i]
        if arg == "--":
            rest = args[i + 1 :]
            if not rest:
                raise UsageError("expected docker compose arguments after --")
            return options, rest, Action.RUN

        if arg == "--quiet-targets":
            options.quiet_targets = True
        elif arg.startswith("--depth="):
            options.depth = parse_non_negative_int(arg[len("--depth=") :], "depth")
        elif arg == "--depth":
            options.depth = _flag_value(args, i, "depth")
            i += 1
        elif arg.startswith("--jobs="):
            options.jobs = parse_non_negative_int(arg[len("--jobs=") :], "jobs")
        elif arg == "--jobs":
            options.jobs = _flag_value(args, i, "jobs")
            i += 1
        else:
            return options, args[i:], Action.RUN
        i += 1

    raise UsageError("expected docker compose arguments")


def compose_global_flag_name(arg: str) -> str:
    """Return the flag name without any ``=value`` part."""
    return arg.split("=", 1)[0]


def compose_global_flag_takes_value(arg: str) -> bool:
    """Whether a global compose flag consumes the following argument."""
    if "=" in arg:
        return False
    return compose_global_flag_name(arg) in _VALUE_FLAGS


def compose_global_flag(arg: str) -> bool:
    """Whether the argument is a known global docker compose flag."""
    return compose_global_flag_name(arg) in _GLOBAL_FLAGS


def compose_command(args: Sequence[str]) -> tuple[str, int]:
    """Find the compose subcommand and its index, or ``("", -1)``."""
    i = 0
    while i < len(args):
        arg = args[i]
        if compose_global_flag_takes_value(arg):
            i += 2
            continue
        if arg.startswith("-"):
            if compose_global_flag(arg):
                i += 1
                continue
            return "", -1
        return arg, i
    return "", -1


def ps_command_index(args: Sequence[str]) -> int:
    """Index of a top-level ``ps`` subcommand, or -1."""
    command, index = compose_command(args)
    return index if command == "ps" else -1


def ps_format(args: Sequence[str], ps_index: int) -> Optional[str]:
    """The ``--format`` value given to ps; ``None`` when no format is given."""
    rest = list(args[ps_index + 1 :])
    for position, arg in enumerate(rest):
        if arg == "--format":
            return rest[position + 1] if position + 1 < len(rest) else ""
        if arg.startswith("--format="):
            return arg[len("--format=") :]
    return None


def _is_json(fmt: str) -> bool:
    return fmt.casefold() == "json"


def should_merge_ps(args: Sequence[str]) -> bool:
    """Whether the arguments ask for a ps listing that mdc merges into one table."""
    index = ps_command_index(args)
    if index < 0:
        return False
    fmt = ps_format(args, index)
    return fmt is None or _is_json(fmt)


def ps_json_args(args: Sequence[str]) -> list[str]:
    """Return the arguments with ``--format json`` added to ps when needed."""
    args = list(args)
    index = ps_command_index(args)
    if index < 0:
        return args
    fmt = ps_format(args, index)
    if fmt is not None and _is_json(fmt):
        return args
    return [*args[: index + 1], "--format", "json", *args[index + 1 :]]


def parallel_target_count(jobs: int, target_count: int) -> int:
    """How many targets run at once for the given job limit."""
    if jobs <= 0 or jobs > target_count:
        return target_count
    return jobs


def is_interactive_compose_command(command: str) -> bool:
    """Whether the subcommand needs the terminal to itself."""
    return command in _INTERACTIVE_COMMANDS


def is_interleaved_compose_command(command: str) -> bool:
    """Whether the subcommand's output is streamed live."""
    return command in _INTERLEAVED_COMMANDS


def output_mode_for_args(args: Sequence[str], jobs: int, target_count: int) -> OutputMode:
    """Choose how output is handled; raise UsageError for parallel interactive commands."""
    command, _ = compose_command(args)
    parallel = parallel_target_count(jobs, target_count) > 1

    if is_interactive_compose_command(command):
        if parallel:
            raise UsageError(
                f"docker compose {command} is interactive; rerun with --jobs 1"
            )
        return OutputMode.PASSTHROUGH

    if is_interleaved_compose_command(command):
        return OutputMode.INTERLEAVED if parallel else OutputMode.PASSTHROUGH

    return OutputMode.BUFFERED