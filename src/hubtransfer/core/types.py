"""Shared types for hubtransfer.

This module defines repository identifiers used by the cache, download
and upload layers.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from hubtransfer.core.errors import InvalidPathError

DEFAULT_REVISION = "main"

# Separator used between kind, owner and name in cache folder names
REPO_ID_SEPARATOR = "--"


class RepoType(str, Enum):
    """Kind of repository hosted on the hub."""

    MODEL = "model"
    DATASET = "dataset"
    SPACE = "space"

    @property
    def url_prefix(self) -> str:
        """URL prefix for this repository type (models have none)."""
        if self is RepoType.MODEL:
            return ""
        return f"{self.value}s/"

    @property
    def folder_kind(self) -> str:
        """Plural kind used in cache folder names."""
        return f"{self.value}s"


@dataclass(frozen=True)
class RepoScope:
    """A repository on the hub, the unit that owns cached files.

    Attributes:
        repo_id: Repository id, "owner/name" or just "name".
        repo_type: Kind of repository.
    """

    repo_id: str
    repo_type: RepoType = RepoType.MODEL

    def __post_init__(self) -> None:
        """Validate the repository id."""
        if not self.repo_id or self.repo_id.startswith("/") or self.repo_id.endswith("/"):
            raise InvalidPathError(f"Invalid repository id: {self.repo_id!r}")
        if ".." in self.repo_id.split("/") or self.repo_id.count("/") > 1:
            raise InvalidPathError(f"Invalid repository id: {self.repo_id!r}")

    @property
    def folder_name(self) -> str:
        """Cache folder name, e.g. "models--owner--name"."""
        parts = [self.repo_type.folder_kind, *self.repo_id.split("/")]
        return REPO_ID_SEPARATOR.join(parts)

    @classmethod
    def parse_folder_name(cls, name: str) -> RepoScope | None:
        """Inverse of folder_name; None if name is not a scope folder."""
        parts = name.split(REPO_ID_SEPARATOR)
        if len(parts) not in (2, 3):
            return None
        kind, *repo_parts = parts
        for repo_type in RepoType:
            if repo_type.folder_kind == kind:
                try:
                    return cls("/".join(repo_parts), repo_type)
                except InvalidPathError:
                    return None
        return None

    def __str__(self) -> str:
        return f"{self.repo_type.value}:{self.repo_id}"


def validate_relative_path(path: str) -> str:
    """Validate and normalize a repository-relative file path.

    Args:
        path: Path inside the repository.

    Returns:
        Normalized path using "/" separators.

    Raises:
        InvalidPathError: If the path is empty, absolute or escapes the root.
    """
    if not path:
        raise InvalidPathError("Path cannot be empty")

    parts: list[str] = []
    for part in path.replace("\\", "/").split("/"):
        if not part or part == ".":
            continue
        if part == "..":
            raise InvalidPathError(f"Path traversal not allowed: {path!r}")
        if len(part) == 2 and part[1] == ":" and part[0].isalpha():
            raise InvalidPathError(f"Absolute paths not allowed: {path!r}")
        parts.append(part)

    if not parts:
        raise InvalidPathError(f"Path resolves to empty: {path!r}")
    return "/".join(parts)
