"""Merging of docker compose ps output from many projects."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List

from mdc.compose import CommandResult

_HEADERS = ("NAME", "SERVICE", "STATUS", "PORTS")


@dataclass(frozen=True)
class PsRow:
    """One container in the merged ps table."""

    name: str
    service: str
    status: str
    ports: str
    key: str = ""


def _parse_error(detail: object) -> ValueError:
    return ValueError(f"parse docker compose ps json: {detail}")


def parse_ps_json(raw: str) -> List[Dict[str, Any]]:
    """Parse ps JSON given as an array, a single object or one object per line."""
    trimmed = raw.strip()
    if not trimmed:
        return []

    try:
        document = json.loads(trimmed)
    except ValueError:
        pass
    else:
        if document is None:
            return []
        if isinstance(document, dict):
            return [document]
        if isinstance(document, list) and all(
            item is None or isinstance(item, dict) for item in document
        ):
            return [item if item is not None else {} for item in document]

    entries: List[Dict[str, Any]] = []
    for line in trimmed.split("\n"):
        line = line.strip()
        if not line:
            continue
        try:
            item = json.loads(line)
        except ValueError as exc:
            raise _parse_error(exc) from exc
        if item is None:
            item = {}
        if not isinstance(item, dict):
            raise _parse_error(f"expected an object, got {type(item).__name__}")
        entries.append(item)
    return entries


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if value.is_integer() and abs(value) < 1e21:
            return str(int(value))
        return repr(value)
    return str(value)


def first_non_empty(entry: Dict[str, Any], *keys: str) -> str:
    """The first of the keys whose value is present and not blank."""
    for key in keys:
        if key not in entry:
            continue
        text = _text(entry[key]).strip()
        if text and text != "<nil>":
            return text
    return ""


def status_text(entry: Dict[str, Any]) -> str:
    """Describe a container's state, health and exit code."""
    state = first_non_empty(entry, "State", "Status")
    health = first_non_empty(entry, "Health")
    exit_code = first_non_empty(entry, "ExitCode")

    if health and health.casefold() != "none":
        return f"{state} ({health})" if state else health
    if state:
        return state
    if exit_code:
        return f"exit {exit_code}"
    return "unknown"


def format_publishers(value: Any) -> str:
    """Format published ports as ``host:published->target/protocol`` items."""
    if not isinstance(value, list):
        return ""

    ports = []
    for publisher in value:
        if not isinstance(publisher, dict):
            continue
        host = first_non_empty(publisher, "URL", "IP")
        published = first_non_empty(publisher, "PublishedPort")
        target = first_non_empty(publisher, "TargetPort")
        protocol = first_non_empty(publisher, "Protocol").lower()

        if host and published and target and protocol:
            ports.append(f"{host}:{published}->{target}/{protocol}")
        elif published and target and protocol:
            ports.append(f"{published}->{target}/{protocol}")
        elif published:
            ports.append(published)
    return ", ".join(ports)


def ports_text(entry: Dict[str, Any]) -> str:
    """Ports of a container, from its publishers or its ports text."""
    if "Publishers" in entry:
        text = format_publishers(entry["Publishers"])
        if text:
            return text
    return first_non_empty(entry, "Ports")


def merge_ps_rows(results: Iterable[CommandResult]) -> List[PsRow]:
    """Combine ps JSON of all results into rows sorted by name.

    Raises the error of the first failed result, or ValueError for bad JSON.
    """
    merged: Dict[str, PsRow] = {}
    for result in results:
        if result.error is not None:
            raise result.error
        for entry in parse_ps_json(result.stdout):
            key = first_non_empty(entry, "ID", "Id", "Name")
            if not key:
                continue
            merged[key] = PsRow(
                name=first_non_empty(entry, "Name"),
                service=first_non_empty(entry, "Service"),
                status=status_text(entry),
                ports=ports_text(entry),
                key=key,
            )
    return sorted(merged.values(), key=lambda row: (row.name, row.key))


def render_ps_table(rows: Iterable[PsRow]) -> str:
    """Render rows as a table with padded columns."""
    rows = list(rows)
    cells = [_HEADERS] + [(row.name, row.service, row.status, row.ports) for row in rows]
    widths = [max(len(line[column]) for line in cells) for column in range(len(_HEADERS))]
    return "".join(
        "  ".join(cell.ljust(width) for cell, width in zip(line, widths)) + "\n"
        for line in cells
    )


def merge_ps_text(results: Iterable[CommandResult]) -> str:
    """Join plain-text ps outputs, keeping only the first header line."""
    lines: List[str] = []
    header = ""
    for result in results:
        trimmed = result.stdout.strip()
        if not trimmed:
            continue
        for position, line in enumerate(trimmed.split("\n")):
            if position == 0:
                if not header:
                    header = line
                elif line == header:
                    continue
            if not line.strip():
                continue
            lines.append(line)
    if not lines:
        return ""
    return "\n".join(lines) + "\n"