"""The mdc command: run docker compose across every project in a tree."""

from __future__ import annotations

import os
import signal
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, Optional, Sequence, TextIO, Tuple

from mdc.args import (
    DEFAULT_DEPTH,
    Action,
    Options,
    OutputMode,
    UsageError,
    output_mode_for_args,
    parallel_target_count,
    parse_args,
    ps_json_args,
    should_merge_ps,
)
from mdc.compose import CommandResult, LinePrefixWriter, exec_compose
from mdc.discovery import Target, discover_targets
from mdc.ps import merge_ps_rows, merge_ps_text, render_ps_table
from mdc.version import COMMAND_NAME, version_string

Runner = Callable[
    [Optional[threading.Event], Target, List[str], object, object], CommandResult
]
WriterFactory = Callable[[Target], Tuple[object, object]]


def print_usage(stream: TextIO) -> None:
    """Write the usage text."""
    name = COMMAND_NAME
    stream.write(
        f"{name} runs docker compose across multiple compose projects in the current tree.\n\n"
        "Usage:\n"
        f"  {name} [mdc flags] <docker-compose args...>\n"
        f"  {name} --help\n"
        f"  {name} --version\n\n"
        "mdc flags:\n"
        f"  --depth N          Discovery depth. 0 = current dir only, default {DEFAULT_DEPTH}\n"
        "  --jobs N           Max concurrent docker compose commands. 0 = all targets\n"
        "  --quiet-targets    Suppress per-target section labels for non-merged output\n"
        "\n"
        "Examples:\n"
        f"  {name} ps\n"
        f"  {name} up -d\n"
        f"  {name} --depth 2 pull\n"
        f"  {name} --ansi never ps\n"
    )


def output_writers(mode: OutputMode, stdout: object, stderr: object) -> WriterFactory:
    """Return a factory giving each target the streams its command writes to."""
    if mode is OutputMode.PASSTHROUGH:
        return lambda target: (stdout, stderr)

    if mode is OutputMode.INTERLEAVED:
        out_lock = threading.Lock()
        err_lock = threading.Lock()

        def interleaved(target: Target) -> Tuple[object, object]:
            prefix = f"[{target.label}] "
            return (
                LinePrefixWriter(stdout, prefix, out_lock),  # type: ignore[arg-type]
                LinePrefixWriter(stderr, prefix, err_lock),  # type: ignore[arg-type]
            )

        return interleaved

    return lambda target: (None, None)


def execute_targets(
    stop: Optional[threading.Event],
    targets: Iterable[Target],
    args: Sequence[str],
    jobs: int,
    runner: Runner,
    writers: WriterFactory,
) -> List[CommandResult]:
    """Run the command for every target, at most ``jobs`` at once; results keep target order."""
    targets = list(targets)
    if not targets:
        return []
    limit = parallel_target_count(jobs, len(targets))
    command_args = list(args)

    def run_one(stack: Target) -> CommandResult:
        out, err = writers(stack)
        return runner(stop, stack, list(command_args), out, err)

    with ThreadPoolExecutor(max_workers=limit) as pool:
        futures = [pool.submit(run_one, stack) for stack in targets]
        return [future.result() for future in futures]


def target_output(result: CommandResult, quiet: bool) -> str:
    """The labelled section shown for one target, or an empty string."""
    out = result.stdout.strip()
    err = result.stderr.strip()
    if not out and not err and (result.exit_code == 0 or result.streamed):
        return ""

    parts = []
    if not quiet:
        parts.append(f"[{result.target.label}]\n")
    if out:
        parts.append(out + "\n")
    if err:
        parts.append(err + "\n")
    if not out and not err and result.exit_code != 0:
        parts.append(f"command failed with exit code {result.exit_code}\n")
    return "".join(parts)


def write_standard_output(stdout: TextIO, results: Iterable[CommandResult], quiet: bool) -> None:
    """Write each target's section, separated by blank lines."""
    bodies = [body for body in (target_output(result, quiet) for result in results) if body]
    stdout.write("\n".join(bodies))


def failure_results(results: Iterable[CommandResult]) -> List[CommandResult]:
    """Results whose command exited with a non-zero code."""
    return [result for result in results if result.exit_code != 0]


def _first_line(text: str) -> str:
    return text.split("\n", 1)[0] if text else ""


def write_failure_summary(stderr: TextIO, failures: Sequence[CommandResult]) -> None:
    """Write a one-line summary naming each failed target."""
    parts = []
    for failure in failures:
        detail = (
            _first_line(failure.stderr.strip())
            or _first_line(failure.stdout.strip())
            or f"exit {failure.exit_code}"
        )
        parts.append(f"{failure.target.label} ({detail})")
    if parts:
        stderr.write(f"{len(parts)} target(s) failed: {', '.join(parts)}\n")


def run_ps(
    stop: Optional[threading.Event],
    stdout: TextIO,
    stderr: TextIO,
    targets: Sequence[Target],
    options: Options,
    compose_args: Sequence[str],
    runner: Runner,
) -> int:
    """Show one merged ps table, falling back to merged plain text."""
    json_results = execute_targets(
        stop, targets, ps_json_args(compose_args), options.jobs, runner,
        output_writers(OutputMode.BUFFERED, None, None),
    )
    try:
        rows = merge_ps_rows(json_results)
    except Exception:
        rows = None

    if rows is not None:
        if not rows:
            stdout.write("No containers found.\n")
        else:
            stdout.write(render_ps_table(rows))
        return 0

    fallback = execute_targets(
        stop, targets, compose_args, options.jobs, runner,
        output_writers(OutputMode.BUFFERED, None, None),
    )
    merged = merge_ps_text(fallback)
    if merged:
        stdout.write(merged)

    failures = failure_results(fallback)
    if failures:
        write_failure_summary(stderr, failures)
        return failures[0].exit_code
    return 0


def run_cli(
    stop: Optional[threading.Event],
    stdout: TextIO,
    stderr: TextIO,
    argv: Sequence[str],
    runner: Runner,
) -> int:
    """Run mdc with the given arguments and return its exit code."""
    try:
        options, compose_args, action = parse_args(argv)
    except UsageError as exc:
        stderr.write(f"{exc}\n")
        print_usage(stderr)
        return 2

    if action is Action.HELP:
        print_usage(stdout)
        return 0
    if action is Action.VERSION:
        stdout.write(f"{COMMAND_NAME} {version_string()}\n")
        return 0

    try:
        working_dir = os.getcwd()
    except OSError as exc:
        stderr.write(f"resolve working directory: {exc}\n")
        return 1

    try:
        targets = discover_targets(working_dir, options.depth)
    except (OSError, ValueError) as exc:
        stderr.write(f"discover compose files: {exc}\n")
        return 1
    if not targets:
        stderr.write("no compose files found in the current directory tree\n")
        return 1

    if should_merge_ps(compose_args):
        return run_ps(stop, stdout, stderr, targets, options, compose_args, runner)

    try:
        mode = output_mode_for_args(compose_args, options.jobs, len(targets))
    except UsageError as exc:
        stderr.write(f"{exc}\n")
        return 2

    results = execute_targets(
        stop, targets, compose_args, options.jobs, runner, output_writers(mode, stdout, stderr)
    )
    write_standard_output(stdout, results, options.quiet_targets)

    failures = failure_results(results)
    if failures:
        write_failure_summary(stderr, failures)
        return failures[0].exit_code
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point of the mdc command."""
    if argv is None:
        argv = sys.argv[1:]

    stop = threading.Event()
    previous = {}
    if threading.current_thread() is threading.main_thread():
        for signum in (signal.SIGINT, getattr(signal, "SIGTERM", None)):
            if signum is not None:
                previous[signum] = signal.signal(signum, lambda number, frame: stop.set())
    try:
        return run_cli(stop, sys.stdout, sys.stderr, argv, exec_compose)
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)


if __name__ == "__main__":
    raise SystemExit(main())