"""Shared types for download operations.

This module provides:
- RemoteFile: One entry of a repository file listing
- DownloadRequest: What to fetch and how
- DownloadStatus, DownloadResult: Outcome of a download
- ProgressCallback: (bytes_done, bytes_total) callback type
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from hubtransfer.core.types import DEFAULT_REVISION, RepoScope

if TYPE_CHECKING:
    from hubtransfer.cache.types import CacheEntry
    from hubtransfer.transfer.extract import ExtractionResult, UnsupportedArchive

# Type alias for progress callback (bytes_done, bytes_total)
ProgressCallback = Callable[[int, int | None], None]


@dataclass(frozen=True)
class RemoteFile:
    """A file listed in a repository, as reported by the hub.

    Attributes:
        path: Path inside the repository.
        size: Size in bytes, if known.
        etag: ETag or content hash, if known.
    """

    path: str
    size: int | None = None
    etag: str | None = None


@dataclass
class DownloadRequest:
    """A request to make one repository file available locally.

    Attributes:
        scope: Repository owning the file.
        path: Path inside the repository.
        revision: Branch, tag or commit.
        force_download: Fetch even if a matching entry is cached.
        extract: Extract the file after promotion if it is an archive.
        expected_size: Size from a file listing (skips the metadata probe with expected_etag).
        expected_etag: ETag from a file listing.
    """

    scope: RepoScope
    path: str
    revision: str = DEFAULT_REVISION
    force_download: bool = False
    extract: bool = False
    expected_size: int | None = None
    expected_etag: str | None = None

    @classmethod
    def from_remote_file(
        cls,
        scope: RepoScope,
        remote: RemoteFile,
        revision: str = DEFAULT_REVISION,
        extract: bool = False,
    ) -> DownloadRequest:
        """Create a request from a file listing entry."""
        return cls(
            scope=scope,
            path=remote.path,
            revision=revision,
            extract=extract,
            expected_size=remote.size,
            expected_etag=remote.etag,
        )


class DownloadStatus(str, Enum):
    """Outcome of a download request."""

    CACHE_HIT = "cache_hit"
    DOWNLOADED = "downloaded"
    NOT_CACHED = "not_cached"
    FAILED = "failed"


@dataclass
class DownloadResult:
    """Result of a download request.

    Attributes:
        status: Outcome.
        request: The originating request.
        path: Local path of the cached file (on success).
        entry: Cache entry (on success).
        error: Error for NOT_CACHED and FAILED outcomes.
        bytes_fetched: Bytes received by the final attempt.
        resumed_from: Byte offset the final attempt resumed at.
        attempts: Number of fetch attempts made.
        extraction: Extraction outcome when requested.
    """

    status: DownloadStatus
    request: DownloadRequest
    path: Path | None = None
    entry: CacheEntry | None = None
    error: Exception | None = None
    bytes_fetched: int = 0
    resumed_from: int = 0
    attempts: int = 0
    extraction: ExtractionResult | UnsupportedArchive | None = None

    @property
    def ok(self) -> bool:
        """Check if the file is available locally."""
        return self.status in (DownloadStatus.CACHE_HIT, DownloadStatus.DOWNLOADED)
