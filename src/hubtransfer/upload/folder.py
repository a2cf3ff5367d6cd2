"""Folder upload planning.

Splits a local folder into files that go through the large-object pipeline
and regular files left to the commit call.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from hubtransfer.core.config import DEFAULT_LFS_THRESHOLD, HubConfig
from hubtransfer.core.errors import InvalidPathError
from hubtransfer.core.patterns import filter_paths
from hubtransfer.core.types import validate_relative_path
from hubtransfer.upload.lfs import UploadUnit

logger = logging.getLogger(__name__)

DEFAULT_IGNORE_PATTERNS = (
    ".git/",
    "__pycache__/",
    "*.pyc",
    ".DS_Store",
    "*.swp",
    ".cache/",
)


@dataclass(frozen=True)
class RegularFile:
    """A file below the large-object threshold."""

    local_path: Path
    path_in_repo: str
    size: int


@dataclass
class FolderPlan:
    """Files of a folder, split by upload route.

    Attributes:
        lfs_units: Files at or above the threshold (hashed, ready for LfsUploader).
        regular_files: Files below the threshold.
    """

    lfs_units: list[UploadUnit] = field(default_factory=list)
    regular_files: list[RegularFile] = field(default_factory=list)

    @property
    def total_size(self) -> int:
        """Bytes across both routes."""
        return sum(u.size for u in self.lfs_units) + sum(f.size for f in self.regular_files)


def plan_folder(
    folder: Path,
    path_in_repo: str = "",
    allow_patterns: Sequence[str] | None = None,
    ignore_patterns: Sequence[str] | None = None,
    threshold: int | None = None,
    config: HubConfig | None = None,
) -> FolderPlan:
    """Plan the upload of a folder.

    Args:
        folder: Local folder.
        path_in_repo: Destination prefix in the repository.
        allow_patterns: Glob patterns a relative path must match (all if None).
        ignore_patterns: Glob patterns excluding paths (common junk if None).
        threshold: Size at or above which a file is a large object; defaults
            to config.lfs_threshold, or 10 MiB without a config.
        config: Hub configuration supplying the threshold.

    Returns:
        FolderPlan with files in sorted relative-path order.

    Raises:
        InvalidPathError: If folder is not a directory.
    """
    folder = Path(folder)
    if not folder.is_dir():
        raise InvalidPathError(f"Not a directory: {folder}")
    prefix = validate_relative_path(path_in_repo.strip("/")) + "/" if path_in_repo.strip("/") else ""
    if ignore_patterns is None:
        ignore_patterns = DEFAULT_IGNORE_PATTERNS
    if threshold is None:
        threshold = config.lfs_threshold if config is not None else DEFAULT_LFS_THRESHOLD

    relative_paths = sorted(p.relative_to(folder).as_posix() for p in folder.rglob("*") if p.is_file())
    selected = filter_paths(relative_paths, allow_patterns, ignore_patterns)

    plan = FolderPlan()
    for relative in selected:
        local_path = folder / relative
        size = local_path.stat().st_size
        if size >= threshold:
            plan.lfs_units.append(UploadUnit.from_path(local_path, prefix + relative))
        else:
            plan.regular_files.append(RegularFile(local_path, prefix + relative, size))

    logger.info(
        f"Planned {folder}: {len(plan.lfs_units)} large object(s), "
        f"{len(plan.regular_files)} regular file(s)"
    )
    return plan
