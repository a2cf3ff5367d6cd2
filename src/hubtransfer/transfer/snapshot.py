"""Download every file of a repository revision.

This module provides:
- SnapshotDownloader: Concurrent downloads of a file listing
- SnapshotResult: Aggregated per-file outcomes
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from hubtransfer.cache import layout
from hubtransfer.core.errors import NetworkFailure, PartialBatchFailure
from hubtransfer.core.patterns import filter_paths
from hubtransfer.core.types import DEFAULT_REVISION, RepoScope
from hubtransfer.transfer.download import FileDownloader
from hubtransfer.transfer.pool import WorkerPool
from hubtransfer.transfer.types import (
    DownloadRequest,
    DownloadResult,
    DownloadStatus,
    RemoteFile,
)

logger = logging.getLogger(__name__)


@dataclass
class SnapshotResult:
    """Outcome of a snapshot download.

    Attributes:
        snapshot_path: Local directory holding the revision's files.
        results: One result per selected file, in listing order.
    """

    snapshot_path: Path
    results: list[DownloadResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """Check if every selected file is available locally."""
        return all(r.ok for r in self.results)

    @property
    def failed(self) -> list[DownloadResult]:
        """Results of files that are not available locally."""
        return [r for r in self.results if not r.ok]

    @property
    def first_failure(self) -> DownloadResult | None:
        """First failed result in listing order."""
        failed = self.failed
        return failed[0] if failed else None

    def as_error(self) -> PartialBatchFailure | None:
        """Aggregate failures into one exception, or None if all succeeded."""
        failures = {
            r.request.path: r.error or NetworkFailure(f"{r.request.path}: {r.status.value}")
            for r in self.failed
        }
        return PartialBatchFailure(failures) if failures else None


class SnapshotDownloader:
    """Downloads a repository file listing with bounded concurrency.

    One file's failure never cancels the others; the result aggregates all
    outcomes.
    """

    def __init__(self, downloader: FileDownloader, max_workers: int | None = None) -> None:
        """Initialize the snapshot downloader.

        Args:
            downloader: Per-file download engine.
            max_workers: Concurrent downloads (defaults to config.max_workers).
        """
        self._downloader = downloader
        self._max_workers = max_workers or downloader.config.max_workers

    def download(
        self,
        scope: RepoScope,
        files: Sequence[RemoteFile],
        revision: str = DEFAULT_REVISION,
        allow_patterns: Sequence[str] | None = None,
        ignore_patterns: Sequence[str] | None = None,
        extract: bool = False,
    ) -> SnapshotResult:
        """Download the selected files of a listing.

        Args:
            scope: Repository to download from.
            files: File listing (path, size, etag) from the hub.
            revision: Branch, tag or commit.
            allow_patterns: Glob patterns a path must match (all if None).
            ignore_patterns: Glob patterns excluding paths.
            extract: Extract archives after download.

        Returns:
            SnapshotResult with one result per selected file.
        """
        by_path = {f.path: f for f in files}
        selected = filter_paths(by_path, allow_patterns, ignore_patterns)
        requests = [
            DownloadRequest.from_remote_file(scope, by_path[path], revision=revision, extract=extract)
            for path in selected
        ]
        snapshot_path = (
            layout.scope_dir(self._downloader.store.root, scope) / layout.revision_folder(revision)
        )

        logger.info(f"Snapshot {scope}@{revision}: {len(requests)} of {len(files)} files selected")

        pool = WorkerPool(max_workers=self._max_workers, name="SnapshotDownload")
        outcomes = pool.run([self._task(request) for request in requests])

        results = []
        for request, outcome in zip(requests, outcomes, strict=True):
            if outcome.ok and outcome.value is not None:
                results.append(outcome.value)
            else:
                results.append(
                    DownloadResult(status=DownloadStatus.FAILED, request=request, error=outcome.error)
                )

        snapshot = SnapshotResult(snapshot_path=snapshot_path, results=results)
        if snapshot.ok:
            logger.info(f"Snapshot {scope}@{revision} complete")
        else:
            logger.warning(f"Snapshot {scope}@{revision}: {len(snapshot.failed)} file(s) failed")
        return snapshot

    def _task(self, request: DownloadRequest) -> Callable[[], DownloadResult]:
        return lambda: self._downloader.download(request)
