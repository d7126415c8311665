"""Filesystem lookups used by rules that resolve names to files."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional, Set

logger = logging.getLogger(__name__)

ROOT_MARKER = "Application.cfc"
MAX_DEPTH = 256


def _contains_marker(directory: Path, marker: str) -> bool:
    try:
        with os.scandir(directory) as entries:
            return any(entry.name == marker for entry in entries)
    except OSError as exc:
        logger.debug("Cannot list %s while looking for %s: %s", directory, marker, exc)
        return False


def resolve_project_root(start: os.PathLike | str, marker: str = ROOT_MARKER) -> Optional[Path]:
    """Return the nearest directory at or above ``start`` containing ``marker``.

    A ``start`` that is itself named ``marker`` resolves to its directory. A
    directory is searched among its immediate children before moving to its
    parent. The walk ends with ``None`` at the filesystem root, when a parent
    does not exist, or when a directory is reached twice through symlinks.
    Filesystem errors are treated as "no match".
    """

    current = Path(os.path.abspath(start))
    if current.name == marker:
        return current.parent

    visited: Set[str] = set()
    for _ in range(MAX_DEPTH):
        try:
            key = os.path.realpath(current)
            is_dir = current.is_dir()
        except OSError:
            return None
        if key in visited:
            return None
        visited.add(key)

        if is_dir and _contains_marker(current, marker):
            return current

        parent = current.parent
        try:
            parent_exists = parent != current and parent.exists()
        except OSError:
            parent_exists = False
        if not parent_exists:
            return None
        current = parent
    return None


def find_ancestor_files(start: os.PathLike | str, filename: str) -> List[Path]:
    """Return every ``filename`` in the directories above ``start``, outermost first."""

    current = Path(os.path.abspath(start)).parent
    found: List[Path] = []
    visited: Set[str] = set()
    for _ in range(MAX_DEPTH):
        key = os.path.realpath(current)
        if key in visited:
            break
        visited.add(key)
        candidate = current / filename
        try:
            if candidate.is_file():
                found.append(candidate)
        except OSError as exc:
            logger.debug("Cannot inspect %s: %s", candidate, exc)
        if current.parent == current:
            break
        current = current.parent
    found.reverse()
    return found
