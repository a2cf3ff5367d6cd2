"""Types returned by the content store.

This module provides:
- CacheEntry: One cached file and its metadata
- Located, Missing: Result of a cache lookup
- IntegrityStatus, IntegrityReport: Result of checksum verification
- CacheStats: Aggregate size and usage information
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path

from hubtransfer.core.types import RepoScope

EntryKey = tuple[RepoScope, str, str]


@dataclass(frozen=True)
class CacheEntry:
    """A promoted, immutable file in the content store.

    Attributes:
        scope: Repository owning the file.
        revision: Revision the file was fetched at.
        relative_path: Path inside the repository.
        path: Absolute location on disk.
        size: Size in bytes.
        accessed_at: Last access time (POSIX seconds).
        sha256: Digest from the checksum sidecar, if present.
        etag: Source ETag recorded at promotion, if present.
    """

    scope: RepoScope
    revision: str
    relative_path: str
    path: Path
    size: int
    accessed_at: float
    sha256: str | None = None
    etag: str | None = None

    @property
    def key(self) -> EntryKey:
        """Identity of the entry: (scope, revision, relative path)."""
        return (self.scope, self.revision, self.relative_path)


@dataclass(frozen=True)
class Located:
    """Lookup result: the file is cached."""

    entry: CacheEntry

    found = True

    @property
    def path(self) -> Path:
        """Absolute location of the cached file."""
        return self.entry.path


@dataclass(frozen=True)
class Missing:
    """Lookup result: the file is not cached (a recoverable condition)."""

    scope: RepoScope
    revision: str
    relative_path: str
    path: Path

    found = False


class IntegrityStatus(str, Enum):
    """Checksum verification outcome for one entry."""

    VALID = "valid"
    CORRUPTED = "corrupted"
    UNCHECKED = "unchecked"


@dataclass
class IntegrityReport:
    """Result of verifying every entry that has a checksum sidecar."""

    details: list[tuple[CacheEntry, IntegrityStatus]] = field(default_factory=list)

    def _count(self, status: IntegrityStatus) -> int:
        return sum(1 for _, s in self.details if s is status)

    @property
    def total_files(self) -> int:
        return len(self.details)

    @property
    def valid(self) -> int:
        return self._count(IntegrityStatus.VALID)

    @property
    def corrupted(self) -> int:
        return self._count(IntegrityStatus.CORRUPTED)

    @property
    def unchecked(self) -> int:
        return self._count(IntegrityStatus.UNCHECKED)

    @property
    def corrupted_entries(self) -> list[CacheEntry]:
        """Entries whose bytes no longer match their sidecar."""
        return [e for e, s in self.details if s is IntegrityStatus.CORRUPTED]


@dataclass
class CacheStats:
    """Aggregate information about the content store."""

    total_size: int
    file_count: int
    repos: list[str]
    last_accessed: datetime | None

    @classmethod
    def from_entries(cls, entries: list[CacheEntry]) -> CacheStats:
        """Summarize a list of entries."""
        last = max((e.accessed_at for e in entries), default=None)
        return cls(
            total_size=sum(e.size for e in entries),
            file_count=len(entries),
            repos=sorted({str(e.scope) for e in entries}),
            last_accessed=datetime.fromtimestamp(last, tz=UTC) if last is not None else None,
        )
