"""Content store for downloaded hub files.

This module provides:
- ContentStore: maps (scope, revision, path) to disk, promotes validated
  downloads atomically, evicts by size/age and verifies checksums

Architecture:
    The filesystem is the source of truth. An in-memory index, guarded by
    one lock per store, caches the last scan and is updated on promotion,
    lookup and eviction. Structural changes use rename/unlink only, so
    readers never observe a partially written file.
"""

from __future__ import annotations

import contextlib
import logging
import os
import shutil
import tempfile
import threading
import time
from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from hubtransfer.cache import layout
from hubtransfer.cache.lock import file_lock
from hubtransfer.cache.types import (
    CacheEntry,
    CacheStats,
    EntryKey,
    IntegrityReport,
    IntegrityStatus,
    Located,
    Missing,
)
from hubtransfer.core.config import HubConfig, RetentionPolicy
from hubtransfer.core.hashing import (
    read_checksum_sidecar,
    sha256_file,
    write_checksum_sidecar,
    write_text_atomic,
)
from hubtransfer.core.types import RepoScope, validate_relative_path

logger = logging.getLogger(__name__)

DEFAULT_VERIFY_WORKERS = 4


def _read_etag(sidecar: Path) -> str | None:
    try:
        return sidecar.read_text(encoding="utf-8").strip() or None
    except OSError:
        return None


class ContentStore:
    """Bounded local cache of repository files.

    Usage:
        store = ContentStore(config.cache_dir)
        result = store.locate(scope, "main", "config.json")
        if result.found:
            print(result.path)
    """

    def __init__(self, root: Path, retention: RetentionPolicy | None = None) -> None:
        """Initialize the store.

        Args:
            root: Cache root directory (created lazily).
            retention: Default bounds applied by evict().
        """
        self._root = Path(root)
        self._retention = retention if retention is not None else RetentionPolicy()
        self._lock = threading.RLock()
        self._index: dict[EntryKey, CacheEntry] = {}

    @classmethod
    def from_config(cls, config: HubConfig) -> ContentStore:
        """Create a store at the configured cache directory and retention."""
        return cls(config.cache_dir, retention=config.retention)

    @property
    def root(self) -> Path:
        """Cache root directory."""
        return self._root

    @property
    def retention(self) -> RetentionPolicy:
        """Bounds applied by evict() when none are given."""
        return self._retention

    # === Paths ===

    def entry_path(self, scope: RepoScope, revision: str, path: str) -> Path:
        """Absolute location a file is (or would be) cached at."""
        return layout.entry_path(self._root, scope, revision, path)

    def incomplete_path(self, scope: RepoScope, revision: str, path: str) -> Path:
        """Temporary file a download of path streams into."""
        return layout.incomplete_path(self._root, scope, revision, path)

    def progress_path(self, scope: RepoScope, revision: str, path: str) -> Path:
        """Resume record of an in-flight download of path."""
        return layout.progress_path(self._root, scope, revision, path)

    @contextlib.contextmanager
    def lock(self, scope: RepoScope, revision: str, path: str) -> Iterator[None]:
        """Advisory lock serializing downloads of one file across processes."""
        key = f"{revision}/{validate_relative_path(path)}"
        with file_lock(layout.lock_path(self._root, scope, key)):
            yield

    # === Lookup ===

    def _build_entry(
        self,
        scope: RepoScope,
        revision: str,
        relative_path: str,
        path: Path,
        stat: os.stat_result,
    ) -> CacheEntry:
        return CacheEntry(
            scope=scope,
            revision=revision,
            relative_path=relative_path,
            path=path,
            size=stat.st_size,
            accessed_at=stat.st_atime,
            sha256=read_checksum_sidecar(layout.checksum_path(self._root, scope, revision, relative_path)),
            etag=_read_etag(layout.etag_path(self._root, scope, revision, relative_path)),
        )

    def locate(
        self,
        scope: RepoScope,
        revision: str,
        path: str,
        touch: bool = True,
    ) -> Located | Missing:
        """Look up a cached file. Never touches the network.

        Args:
            scope: Repository owning the file.
            revision: Revision the file was fetched at.
            path: Path inside the repository.
            touch: Bump the access time on a hit.

        Returns:
            Located with the entry, or Missing.
        """
        relative_path = validate_relative_path(path)
        target = self.entry_path(scope, revision, relative_path)
        key = (scope, revision, relative_path)

        try:
            stat = target.stat()
        except OSError:
            stat = None
        if stat is None or not target.is_file():
            with self._lock:
                self._index.pop(key, None)
            return Missing(scope=scope, revision=revision, relative_path=relative_path, path=target)

        if touch:
            with contextlib.suppress(OSError):
                os.utime(target, (time.time(), stat.st_mtime))
                stat = target.stat()

        entry = self._build_entry(scope, revision, relative_path, target, stat)
        with self._lock:
            self._index[key] = entry
        return Located(entry)

    def is_cached(self, scope: RepoScope, revision: str, path: str) -> bool:
        """Check whether a file is cached without bumping its access time."""
        return self.entry_path(scope, revision, path).is_file()

    # === Promotion ===

    def promote(
        self,
        temp_path: Path,
        scope: RepoScope,
        revision: str,
        path: str,
        sha256: str,
        etag: str | None = None,
    ) -> CacheEntry:
        """Atomically move a validated file into the store.

        Promoting content identical to the current entry is a no-op: the
        temporary file is discarded and the existing entry returned.
        Otherwise the last writer wins via atomic rename.

        Args:
            temp_path: Fully written and validated file.
            scope: Repository owning the file.
            revision: Revision the file was fetched at.
            path: Path inside the repository.
            sha256: Hex digest of the file content.
            etag: Source ETag to record.

        Returns:
            The promoted (or already present) entry.
        """
        relative_path = validate_relative_path(path)
        target = self.entry_path(scope, revision, relative_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        digest = sha256.lower()
        checksum_sidecar = layout.checksum_path(self._root, scope, revision, relative_path)
        etag_sidecar = layout.etag_path(self._root, scope, revision, relative_path)

        with self._lock:
            if target.is_file() and read_checksum_sidecar(checksum_sidecar) == digest:
                temp_path.unlink(missing_ok=True)
                logger.debug(f"Already cached, discarding duplicate: {relative_path}")
            else:
                self._move_into_place(temp_path, target, layout.staging_dir(self._root, scope))
                write_checksum_sidecar(checksum_sidecar, digest)
                logger.info(f"Promoted {scope}@{revision}/{relative_path}")

            if etag:
                if _read_etag(etag_sidecar) != etag:
                    write_text_atomic(etag_sidecar, etag + "\n")
            else:
                etag_sidecar.unlink(missing_ok=True)

            entry = self._build_entry(scope, revision, relative_path, target, target.stat())
            self._index[entry.key] = entry
            return entry

    @staticmethod
    def _move_into_place(source: Path, target: Path, staging_root: Path) -> None:
        try:
            os.replace(source, target)
        except OSError:
            # Different filesystem: copy into the scope's staging area, then rename
            staging_root.mkdir(parents=True, exist_ok=True)
            fd, staging = tempfile.mkstemp(dir=staging_root, prefix=".promote-")
            os.close(fd)
            try:
                shutil.copyfile(source, staging)
                os.replace(staging, target)
            except BaseException:
                Path(staging).unlink(missing_ok=True)
                raise
            source.unlink(missing_ok=True)

    # === Scanning ===

    def refresh(self) -> list[CacheEntry]:
        """Rebuild the in-memory index from a filesystem scan.

        Returns:
            Every entry currently in the store.
        """
        entries: list[CacheEntry] = []
        if self._root.is_dir():
            for scope_path in sorted(self._root.iterdir()):
                scope = RepoScope.parse_folder_name(scope_path.name)
                if scope is None or not scope_path.is_dir():
                    continue
                for revision_path in sorted(scope_path.iterdir()):
                    if revision_path.is_dir() and not layout.is_reserved(revision_path.name):
                        entries.extend(self._scan_revision(scope, revision_path))

        with self._lock:
            self._index = {e.key: e for e in entries}
        return entries

    def _scan_revision(self, scope: RepoScope, revision_path: Path) -> Iterator[CacheEntry]:
        revision = layout.revision_from_folder(revision_path.name)
        for dirpath, dirnames, filenames in os.walk(revision_path):
            dirnames[:] = [d for d in dirnames if not layout.is_extraction_dir(Path(dirpath) / d)]
            for name in filenames:
                file_path = Path(dirpath) / name
                try:
                    stat = file_path.stat()
                except OSError:
                    continue
                relative_path = file_path.relative_to(revision_path).as_posix()
                yield self._build_entry(scope, revision, relative_path, file_path, stat)

    def entries(self, scope: RepoScope | None = None) -> list[CacheEntry]:
        """List cached entries, optionally for one repository."""
        found = self.refresh()
        if scope is None:
            return found
        return [e for e in found if e.scope == scope]

    def stats(self) -> CacheStats:
        """Aggregate size, file count and repositories."""
        return CacheStats.from_entries(self.refresh())

    # === Eviction ===

    def evict(self, policy: RetentionPolicy | None = None, now: float | None = None) -> list[CacheEntry]:
        """Remove entries to satisfy the retention policy.

        Entries older than max_age are removed, then least recently accessed
        entries (ties: largest first) until the total is within max_size.

        Args:
            policy: Size and age bounds (defaults to the store's retention).
            now: Reference time (defaults to the current time).

        Returns:
            Entries that were removed.
        """
        if policy is None:
            policy = self._retention
        now = time.time() if now is None else now

        with self._lock:
            entries = self.refresh()
            order = sorted(entries, key=lambda e: (e.accessed_at, -e.size))

            selected: dict[EntryKey, CacheEntry] = {}
            if policy.max_age is not None:
                for entry in order:
                    if now - entry.accessed_at > policy.max_age:
                        selected[entry.key] = entry

            if policy.max_size is not None:
                current = sum(e.size for e in entries if e.key not in selected)
                for entry in order:
                    if current <= policy.max_size:
                        break
                    if entry.key not in selected:
                        selected[entry.key] = entry
                        current -= entry.size

            removed: list[CacheEntry] = []
            for entry in order:
                if entry.key in selected and self._remove_entry(entry):
                    removed.append(entry)
            self._prune_empty_dirs()

        if removed:
            freed = sum(e.size for e in removed)
            logger.info(f"Evicted {len(removed)} cached files ({freed} bytes)")
        return removed

    def _remove_entry(self, entry: CacheEntry) -> bool:
        try:
            entry.path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not evict {entry.path}: {e}")
            return False

        sidecars = (
            layout.checksum_path(self._root, entry.scope, entry.revision, entry.relative_path),
            layout.etag_path(self._root, entry.scope, entry.revision, entry.relative_path),
        )
        for sidecar in sidecars:
            with contextlib.suppress(OSError):
                sidecar.unlink(missing_ok=True)
        if entry.sha256:
            shutil.rmtree(layout.extraction_dir(entry.path, entry.sha256), ignore_errors=True)
        self._index.pop(entry.key, None)
        return True

    def _prune_empty_dirs(self) -> None:
        if not self._root.is_dir():
            return
        for dirpath, _, _ in sorted(os.walk(self._root), key=lambda w: len(w[0]), reverse=True):
            path = Path(dirpath)
            if path == self._root or layout.LOCKS_DIR in path.relative_to(self._root).parts:
                continue
            with contextlib.suppress(OSError):
                path.rmdir()

    def clear(self, scope: RepoScope | None = None) -> list[Path]:
        """Remove one repository's files, or every repository.

        Returns:
            Scope directories that were removed.
        """
        with self._lock:
            if scope is not None:
                targets = [layout.scope_dir(self._root, scope)]
            elif self._root.is_dir():
                targets = [
                    p for p in self._root.iterdir()
                    if p.is_dir() and RepoScope.parse_folder_name(p.name) is not None
                ]
            else:
                targets = []

            removed = []
            for target in targets:
                if target.exists():
                    shutil.rmtree(target)
                    removed.append(target)
            self._index = {
                k: e for k, e in self._index.items() if scope is not None and e.scope != scope
            }

        logger.info(f"Cleared {len(removed)} repositories from cache")
        return removed

    # === Integrity ===

    def verify_all(self, max_workers: int = DEFAULT_VERIFY_WORKERS) -> IntegrityReport:
        """Recompute checksums of entries that have a recorded digest.

        Read-only: corrupted entries are reported, never deleted.

        Args:
            max_workers: Number of files hashed concurrently.

        Returns:
            Per-entry status report.
        """
        entries = self.refresh()
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            statuses = list(executor.map(self._verify_entry, entries))
        report = IntegrityReport(details=list(zip(entries, statuses, strict=True)))
        logger.info(
            f"Verified {report.total_files} files: {report.valid} valid, "
            f"{report.corrupted} corrupted, {report.unchecked} unchecked"
        )
        return report

    @staticmethod
    def _verify_entry(entry: CacheEntry) -> IntegrityStatus:
        expected = entry.sha256
        if expected is None:
            return IntegrityStatus.UNCHECKED
        try:
            actual = sha256_file(entry.path)
        except OSError as e:
            logger.warning(f"Could not read {entry.path}: {e}")
            return IntegrityStatus.CORRUPTED
        if actual != expected:
            logger.warning(f"Corrupted cache entry: {entry.path}")
            return IntegrityStatus.CORRUPTED
        return IntegrityStatus.VALID
