"""Glob pattern filtering for repository paths.

Used to select files for snapshot downloads and folder uploads.
"""

from __future__ import annotations

import fnmatch
from collections.abc import Iterable, Sequence


def _normalize(pattern: str) -> str:
    # "dir/" means everything under dir
    if pattern.endswith("/"):
        return pattern + "*"
    return pattern


def matches_any(path: str, patterns: Sequence[str]) -> bool:
    """Check whether a "/"-separated path matches any glob pattern.

    A pattern matches either the full path or, when it has no "/", the file name.
    """
    name = path.rsplit("/", 1)[-1]
    for pattern in patterns:
        pattern = _normalize(pattern)
        if fnmatch.fnmatch(path, pattern):
            return True
        if "/" not in pattern and fnmatch.fnmatch(name, pattern):
            return True
    return False


def filter_paths(
    paths: Iterable[str],
    allow_patterns: Sequence[str] | None = None,
    ignore_patterns: Sequence[str] | None = None,
) -> list[str]:
    """Keep paths matching allow_patterns (if given) and no ignore_patterns."""
    selected = []
    for path in paths:
        if allow_patterns and not matches_any(path, allow_patterns):
            continue
        if ignore_patterns and matches_any(path, ignore_patterns):
            continue
        selected.append(path)
    return selected
