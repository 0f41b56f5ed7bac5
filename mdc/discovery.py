"""Discovery of docker compose projects below a directory."""

from __future__ import annotations

import os
from collections import deque
from dataclasses import dataclass
from typing import Optional

COMPOSE_FILENAMES = (
    "compose.yaml",
    "compose.yml",
    "docker-compose.yaml",
    "docker-compose.yml",
)


@dataclass(frozen=True)
class Target:
    """A directory holding a compose file, with the label it is shown under."""

    directory: str
    file: str
    label: str


def collect_directories(root: str, max_depth: int) -> list[str]:
    """List root and its non-hidden subdirectories up to max_depth levels, sorted."""
    if max_depth < 0:
        raise ValueError("depth must be a non-negative integer")

    queue = deque([(root, 0)])
    directories = [root]

    while queue:
        path, depth = queue.popleft()
        if depth >= max_depth:
            continue
        try:
            with os.scandir(path) as entries:
                children = sorted(
                    entry.name
                    for entry in entries
                    if entry.is_dir(follow_symlinks=False) and not entry.name.startswith(".")
                )
        except OSError as exc:
            raise OSError(exc.errno, f'read directory "{path}": {exc.strerror}') from exc

        for name in children:
            child = os.path.join(path, name)
            directories.append(child)
            queue.append((child, depth + 1))

    return sorted(directories)


def canonical_compose_file(directory: str) -> Optional[str]:
    """Return the preferred compose file in a directory, or None if there is none."""
    for name in COMPOSE_FILENAMES:
        candidate = os.path.join(directory, name)
        try:
            is_dir = os.path.isdir(candidate) if os.stat(candidate) else False
        except FileNotFoundError:
            continue
        except OSError as exc:
            raise OSError(exc.errno, f'stat compose file "{candidate}": {exc.strerror}') from exc
        if not is_dir:
            return candidate
    return None


def discover_targets(root: str, max_depth: int) -> list[Target]:
    """Find compose projects under root, sorted by label."""
    targets = []
    for directory in collect_directories(root, max_depth):
        compose_file = canonical_compose_file(directory)
        if compose_file is None:
            continue
        relative = os.path.relpath(directory, root)
        label = "." if relative == "." else relative.replace(os.sep, "/")
        targets.append(Target(directory=directory, file=compose_file, label=label))

    targets.sort(key=lambda target: target.label)
    return targets