"""Running docker compose for one target and shaping its output."""

from __future__ import annotations

import codecs
import os
import re
import subprocess
import threading
from dataclasses import dataclass
from typing import IO, List, Optional, Sequence, TextIO

from mdc.discovery import Target

_FNV64_OFFSET = 0xCBF29CE484222325
_FNV64_PRIME = 0x100000001B3
_MASK64 = 0xFFFFFFFFFFFFFFFF

_LINE_BREAK = re.compile(r"[\r\n]")
_CHUNK_SIZE = 65536
_POLL_SECONDS = 0.05


@dataclass
class CommandResult:
    """Outcome of running docker compose for one target."""

    target: Target
    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0
    error: Optional[BaseException] = None
    streamed: bool = False


class LinePrefixWriter:
    """Text sink that writes each line to a shared stream behind a prefix."""

    def __init__(self, dest: TextIO, prefix: str, lock: Optional[threading.Lock] = None):
        self.dest = dest
        self.prefix = prefix
        self.lock = lock if lock is not None else threading.Lock()
        self.at_line_start = True

    def write(self, data: str) -> int:
        """Write text, prefixing every line and normalising line breaks to ``\\n``."""
        with self.lock:
            start = 0
            while start < len(data):
                if self.at_line_start:
                    self.dest.write(self.prefix)
                    self.at_line_start = False

                match = _LINE_BREAK.search(data, start)
                if match is None:
                    self.dest.write(data[start:])
                    break

                end = match.start()
                if end > start:
                    self.dest.write(data[start:end])
                self.dest.write("\n")
                self.at_line_start = True

                start = end + 1
                if data[end] == "\r" and data[start : start + 1] == "\n":
                    start += 1
        return len(data)

    def finish(self) -> None:
        """End a pending unterminated line."""
        with self.lock:
            if self.at_line_start:
                return
            self.dest.write("\n")
            self.at_line_start = True


def _fnv1a_64(data: bytes) -> int:
    value = _FNV64_OFFSET
    for byte in data:
        value ^= byte
        value = (value * _FNV64_PRIME) & _MASK64
    return value


def sanitize_compose_project_component(value: str) -> str:
    """Reduce a name to lower-case letters and digits joined by single dashes."""
    pieces: List[str] = []
    last_separator = False
    for char in value.lower():
        if ("a" <= char <= "z") or ("0" <= char <= "9"):
            pieces.append(char)
            last_separator = False
        elif pieces and not last_separator:
            pieces.append("-")
            last_separator = True
    return "".join(pieces).strip("-")


def compose_project_name(directory: str) -> str:
    """A compose project name that is stable for, and unique to, a directory."""
    cleaned = os.path.abspath(os.path.normpath(directory))
    base = sanitize_compose_project_component(os.path.basename(cleaned)) or "root"
    digest = _fnv1a_64(cleaned.replace(os.sep, "/").encode("utf-8"))
    return f"mdc-{base}-{digest:x}"


def compose_command_args(stack: Target, args: Sequence[str]) -> List[str]:
    """Arguments to docker that run compose for the given target."""
    return [
        "compose",
        "--project-name",
        compose_project_name(stack.directory),
        "-f",
        stack.file,
        "--project-directory",
        stack.directory,
        *args,
    ]


def _terminal_fd(stream: object) -> Optional[int]:
    if stream is None or isinstance(stream, LinePrefixWriter):
        return None
    try:
        fd = stream.fileno()  # type: ignore[attr-defined]
    except (AttributeError, OSError, ValueError):
        return None
    try:
        if not os.isatty(fd):
            return None
    except OSError:
        return None
    flush = getattr(stream, "flush", None)
    if flush is not None:
        flush()
    return fd


def _pump(pipe: IO[bytes], writer: Optional[LinePrefixWriter], chunks: List[bytes]) -> None:
    decoder = codecs.getincrementaldecoder("utf-8")("replace")
    with pipe:
        for chunk in iter(lambda: pipe.read1(_CHUNK_SIZE), b""):  # type: ignore[attr-defined]
            if writer is None:
                chunks.append(chunk)
            else:
                text = decoder.decode(chunk)
                if text:
                    writer.write(text)
    if writer is not None:
        tail = decoder.decode(b"", final=True)
        if tail:
            writer.write(tail)


class _Channel:
    """Where one output stream of the child process goes."""

    def __init__(self, stream: object):
        self.writer: Optional[LinePrefixWriter] = None
        self.chunks: List[bytes] = []
        fd = _terminal_fd(stream)
        if fd is not None:
            self.popen_arg: object = fd
            self.streamed = True
        elif isinstance(stream, LinePrefixWriter):
            self.popen_arg = subprocess.PIPE
            self.writer = stream
            self.streamed = True
        else:
            self.popen_arg = subprocess.PIPE
            self.streamed = False

    def start(self, pipe: Optional[IO[bytes]]) -> Optional[threading.Thread]:
        if pipe is None:
            return None
        thread = threading.Thread(target=_pump, args=(pipe, self.writer, self.chunks), daemon=True)
        thread.start()
        return thread

    def captured(self) -> str:
        return b"".join(self.chunks).decode("utf-8", "replace")

    def finish(self) -> None:
        if self.writer is not None:
            self.writer.finish()


def exec_compose(
    stop: Optional[threading.Event],
    stack: Target,
    args: Sequence[str],
    stdout: object = None,
    stderr: object = None,
) -> CommandResult:
    """Run docker compose for a target, killing it once ``stop`` is set.

    Output goes straight to a terminal or a LinePrefixWriter when one is given,
    and is captured into the result otherwise.
    """
    command = ["docker", *compose_command_args(stack, args)]
    out_channel = _Channel(stdout)
    err_channel = _Channel(stderr)
    streamed = out_channel.streamed or err_channel.streamed

    if stop is not None and stop.is_set():
        return CommandResult(
            target=stack,
            exit_code=1,
            error=InterruptedError("context canceled"),
            streamed=streamed,
        )

    try:
        process = subprocess.Popen(
            command,
            cwd=stack.directory,
            stdout=out_channel.popen_arg,
            stderr=err_channel.popen_arg,
        )
    except OSError as exc:
        return CommandResult(target=stack, exit_code=1, error=exc, streamed=streamed)

    threads = [
        thread
        for thread in (out_channel.start(process.stdout), err_channel.start(process.stderr))
        if thread is not None
    ]

    killed = False
    while True:
        try:
            returncode = process.wait(timeout=_POLL_SECONDS)
            break
        except subprocess.TimeoutExpired:
            if not killed and stop is not None and stop.is_set():
                process.kill()
                killed = True

    for thread in threads:
        thread.join()
    out_channel.finish()
    err_channel.finish()

    error: Optional[BaseException] = None
    exit_code = 0
    if returncode != 0:
        error = subprocess.CalledProcessError(returncode, command)
        exit_code = returncode if returncode > 0 else -1

    return CommandResult(
        target=stack,
        stdout=out_channel.captured(),
        stderr=err_channel.captured(),
        exit_code=exit_code,
        error=error,
        streamed=streamed,
    )