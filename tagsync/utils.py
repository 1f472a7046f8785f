"""Utility functions for tagsync.

Small helpers for path handling, date extraction and naming shared by the
scanner, the index builder and the synchronizer.

Key functions:
    extract_date_from_name: Extract date from a YYYY-MM-DD filename prefix.
    is_hidden_path: Check for dot-prefixed path components.
    has_extension: Check a path against a set of content extensions.
    artifact_dirname: Filesystem-safe directory name for a canonical tag.
    split_batches: Deal a sequence into interleaved batches for workers.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from datetime import date, datetime
from pathlib import Path
from typing import TypeVar

T = TypeVar("T")

# Characters rejected by common filesystems, plus path separators.
UNSAFE_NAME_RE = re.compile(r'[/\\<>:"|?*\x00-\x1f]')


def extract_date_from_name(name: str) -> datetime | None:
    """Extract a date from a filename with YYYY-MM-DD prefix.

    Args:
        name: Filename stem (without extension).

    Returns:
        datetime object if a valid date prefix is found, None otherwise.

    Examples:
        >>> extract_date_from_name("2023-12-12-lambda-calculus")
        datetime(2023, 12, 12, 0, 0)

        >>> extract_date_from_name("about")
        None
    """
    parts = name.split("-")
    if len(parts) >= 3 and all(p.isdigit() for p in parts[:3]):
        try:
            return datetime(int(parts[0]), int(parts[1]), int(parts[2]))
        except ValueError:
            return None
    return None


def coerce_date(value: object) -> datetime | None:
    """Turn a front matter ``date`` value into a datetime.

    PyYAML already parses unquoted ISO dates; quoted strings are parsed here.
    Jekyll style timestamps with a trailing zone offset are accepted.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        text = value.strip()
        for fmt in ("%Y-%m-%d %H:%M:%S %z", "%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M", "%Y-%m-%d"):
            try:
                return datetime.strptime(text, fmt)
            except ValueError:
                continue
    return None


def is_hidden_path(path: Path) -> bool:
    """Check if any component of a relative path starts with a dot.

    Args:
        path: Path relative to the content root.

    Returns:
        True if the path is inside a hidden directory or is a hidden file.
    """
    return any(part.startswith(".") for part in path.parts)


def has_extension(path: Path, extensions: Iterable[str]) -> bool:
    """Check if a path has one of the given extensions (case-insensitive)."""
    suffix = path.suffix.lower()
    return any(suffix == ext.lower() for ext in extensions)


def artifact_dirname(tag: str) -> str:
    """Convert a canonical tag to the directory name of its artifact.

    Tags are kept as they are wherever the filesystem allows it, so language
    tags like ``F#`` and ``C++`` keep their casing in the published URL.

    Args:
        tag: Canonical tag.

    Returns:
        A single path component.

    Examples:
        >>> artifact_dirname("F#")
        'F#'

        >>> artifact_dirname("ci/cd")
        'ci-cd'
    """
    name = UNSAFE_NAME_RE.sub("-", tag)
    if name.startswith("."):
        name = "-" + name[1:]
    return name or "-"


def split_batches(items: Sequence[T], count: int) -> list[list[T]]:
    """Deal items round-robin into at most ``count`` non-empty batches.

    Args:
        items: Items to distribute.
        count: Number of batches wanted (at least 1).

    Returns:
        List of batches; fewer than ``count`` when there are fewer items.
    """
    count = max(1, min(count, len(items)))
    return [list(items[i::count]) for i in range(count) if items[i::count]]
