"""Resumable, validated file downloads into the content store.

This module provides:
- FileDownloader: Plans, fetches, validates and promotes one file

States:
    Planning -> CacheHit
             -> Fetching -> Validating -> Promoted
             -> Failed (checksum mismatch, authorization, retries exhausted)
"""

from __future__ import annotations

import contextlib
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from hubtransfer.client.retry import retry_with_backoff
from hubtransfer.core.errors import (
    ChecksumMismatch,
    HubTransferError,
    NetworkFailure,
    StorageError,
)
from hubtransfer.core.hashing import is_sha256_hex, sha256_file
from hubtransfer.transfer.extract import extract_cached
from hubtransfer.transfer.planner import PlanKind, TransferPlan, TransferPlanner
from hubtransfer.transfer.state import TransferState, delete_state, save_state
from hubtransfer.transfer.types import (
    DownloadRequest,
    DownloadResult,
    DownloadStatus,
    ProgressCallback,
)

if TYPE_CHECKING:
    from hubtransfer.cache.store import ContentStore
    from hubtransfer.cache.types import CacheEntry
    from hubtransfer.client.api import HTTPClient
    from hubtransfer.core.config import HubConfig

logger = logging.getLogger(__name__)


@dataclass
class _Fetched:
    """Bytes written by the last fetch attempt."""

    temp_path: Path
    bytes_fetched: int
    resumed_from: int


class FileDownloader:
    """Downloads repository files into a content store.

    A download streams into a temporary file in the store's staging area,
    checkpointing a JSON resume record every config.checkpoint_bytes. Transient network errors
    are retried with backoff and resume from the last written byte; the
    file only becomes visible in the store once its checksum is verified.

    Usage:
        downloader = FileDownloader(store, client, config)
        result = downloader.download(DownloadRequest(scope, "model.safetensors"))
        if result.ok:
            print(result.path)
    """

    def __init__(
        self,
        store: ContentStore,
        client: HTTPClient,
        config: HubConfig,
        planner: TransferPlanner | None = None,
        progress_callback: ProgressCallback | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the downloader.

        Args:
            store: Content store receiving promoted files.
            client: HTTP client for probes and downloads.
            config: Hub configuration (retries, checkpoint window).
            planner: Transfer planner (built from store/client/config if omitted).
            progress_callback: Optional (bytes_done, bytes_total) callback.
            sleep: Sleep function between retries (injectable for tests).
        """
        self._store = store
        self._client = client
        self._config = config
        self._planner = planner or TransferPlanner(store, client, config)
        self._progress_callback = progress_callback
        self._sleep = sleep

    @property
    def store(self) -> ContentStore:
        """Content store receiving promoted files."""
        return self._store

    @property
    def config(self) -> HubConfig:
        """Hub configuration."""
        return self._config

    def download(self, request: DownloadRequest) -> DownloadResult:
        """Make one file available in the content store.

        Never raises for expected conditions: cache misses in offline mode,
        network failures, checksum mismatches, authorization errors and local
        disk failures are reported through the result.

        Args:
            request: What to fetch.

        Returns:
            DownloadResult describing the outcome.
        """
        try:
            with self._store.lock(request.scope, request.revision, request.path):
                return self._download_locked(request)
        except HubTransferError as e:
            logger.error(f"Download of {request.path} failed: {e}")
            return DownloadResult(status=DownloadStatus.FAILED, request=request, error=e)
        except OSError as e:
            error = StorageError(f"Cannot lock {request.path}: {e}")
            logger.error(f"Download of {request.path} failed: {error}")
            return DownloadResult(status=DownloadStatus.FAILED, request=request, error=error)

    def _download_locked(self, request: DownloadRequest) -> DownloadResult:
        attempts = 0
        fetched: _Fetched | None = None
        promoted: CacheEntry | None = None

        def attempt() -> TransferPlan:
            nonlocal attempts, fetched, promoted
            attempts += 1
            plan = self._planner.plan(request)
            if plan.kind in (PlanKind.FULL, PlanKind.RESUME):
                try:
                    fetched = self._fetch(plan)
                    promoted = self._validate_and_promote(plan, fetched.temp_path)
                except OSError as e:
                    raise StorageError(f"Local storage failure for {request.path}: {e}") from e
            return plan

        try:
            plan = retry_with_backoff(
                attempt,
                max_retries=self._config.max_retries,
                sleep=self._sleep,
            )
        except HubTransferError as e:
            logger.error(f"Download of {request.path} failed after {attempts} attempt(s): {e}")
            return DownloadResult(
                status=DownloadStatus.FAILED,
                request=request,
                error=e,
                attempts=attempts,
            )

        if plan.kind is PlanKind.NOT_CACHED:
            logger.info(f"{request.path} is not cached and the hub is unreachable")
            return DownloadResult(
                status=DownloadStatus.NOT_CACHED,
                request=request,
                path=plan.target,
                error=plan.error,
                attempts=attempts,
            )

        if plan.kind is PlanKind.CACHE_HIT:
            assert plan.entry is not None
            logger.debug(f"Cache hit for {request.path}")
            result = DownloadResult(
                status=DownloadStatus.CACHE_HIT,
                request=request,
                path=plan.entry.path,
                entry=plan.entry,
                attempts=attempts,
            )
        else:
            assert fetched is not None and promoted is not None
            result = DownloadResult(
                status=DownloadStatus.DOWNLOADED,
                request=request,
                path=promoted.path,
                entry=promoted,
                bytes_fetched=fetched.bytes_fetched,
                resumed_from=fetched.resumed_from,
                attempts=attempts,
            )

        if request.extract and result.entry is not None:
            self._extract(result, result.entry)
        return result

    # === Fetching ===

    def _fetch(self, plan: TransferPlan) -> _Fetched:
        """Stream the remote file into the temporary file.

        Raises:
            NetworkFailure: On transport errors (resume record preserved).
            ChecksumMismatch: If the server sends more bytes than announced.
            OSError: If the temporary file cannot be written (resume record
                preserved when possible).
        """
        assert plan.url is not None and plan.download_url is not None
        request = plan.request
        temp_path = self._store.incomplete_path(request.scope, request.revision, request.path)
        sidecar = self._store.progress_path(request.scope, request.revision, request.path)
        temp_path.parent.mkdir(parents=True, exist_ok=True)

        if plan.kind is PlanKind.RESUME and plan.state is not None:
            state = plan.state
            state.temp_path = temp_path
        else:
            delete_state(sidecar)
            state = TransferState(
                url=plan.url,
                temp_path=temp_path,
                expected_size=plan.size,
                etag=plan.etag,
                expected_hash=plan.etag.lower() if plan.etag and is_sha256_hex(plan.etag) else None,
            )

        resumed_from = state.bytes_transferred
        bytes_fetched = 0
        logger.info(
            f"Downloading {request.path} ({plan.size if plan.size is not None else '?'} bytes)"
            + (f" from byte {resumed_from}" if resumed_from else "")
        )

        try:
            with self._client.open_download(plan.download_url, resumed_from) as response:
                if resumed_from and response.status_code != 206:
                    logger.warning(
                        f"Server ignored range request for {request.path}; restarting from byte 0"
                    )
                    state.reset()
                    resumed_from = 0

                since_checkpoint = 0
                with temp_path.open("r+b" if resumed_from else "wb") as f:
                    f.seek(resumed_from)
                    f.truncate()
                    for chunk in response.iter_bytes():
                        if not chunk:
                            continue
                        self._check_overflow(plan, state, len(chunk))
                        f.write(chunk)
                        state.advance(len(chunk))
                        bytes_fetched += len(chunk)
                        since_checkpoint += len(chunk)

                        if since_checkpoint >= self._config.checkpoint_bytes:
                            f.flush()
                            save_state(sidecar, state)
                            since_checkpoint = 0
                            logger.debug(
                                f"Checkpoint {request.path} at byte {state.bytes_transferred}"
                            )

                        if self._progress_callback:
                            self._progress_callback(state.bytes_transferred, state.expected_size)
        except NetworkFailure:
            save_state(sidecar, state)
            raise
        except ChecksumMismatch:
            self._discard(temp_path, sidecar)
            raise
        except OSError:
            with contextlib.suppress(OSError):
                save_state(sidecar, state)
            raise

        if state.expected_size is not None and state.bytes_transferred < state.expected_size:
            save_state(sidecar, state)
            raise NetworkFailure(
                f"Connection closed after {state.bytes_transferred} of "
                f"{state.expected_size} bytes for {request.path}"
            )

        return _Fetched(temp_path=temp_path, bytes_fetched=bytes_fetched, resumed_from=resumed_from)

    @staticmethod
    def _check_overflow(plan: TransferPlan, state: TransferState, incoming: int) -> None:
        if state.expected_size is None:
            return
        received = state.bytes_transferred + incoming
        if received > state.expected_size:
            raise ChecksumMismatch(
                plan.request.path,
                expected=f"{state.expected_size} bytes",
                actual=f"at least {received} bytes",
            )

    # === Validation and promotion ===

    def _validate_and_promote(self, plan: TransferPlan, temp_path: Path) -> CacheEntry:
        """Hash the temporary file and promote it if it matches.

        Raises:
            ChecksumMismatch: If the content does not match the hash-shaped ETag.
        """
        request = plan.request
        sidecar = self._store.progress_path(request.scope, request.revision, request.path)
        actual = sha256_file(temp_path)

        if plan.etag and is_sha256_hex(plan.etag) and actual != plan.etag.lower():
            self._discard(temp_path, sidecar)
            raise ChecksumMismatch(request.path, expected=plan.etag.lower(), actual=actual)

        entry = self._store.promote(
            temp_path,
            request.scope,
            request.revision,
            request.path,
            actual,
            etag=plan.etag,
        )
        delete_state(sidecar)
        logger.info(f"Downloaded {request.path} ({entry.size} bytes)")
        return entry

    @staticmethod
    def _discard(temp_path: Path, sidecar: Path) -> None:
        temp_path.unlink(missing_ok=True)
        delete_state(sidecar)

    # === Extraction ===

    def _extract(self, result: DownloadResult, entry: CacheEntry) -> None:
        try:
            digest = entry.sha256 or sha256_file(entry.path)
            result.extraction = extract_cached(entry.path, digest)
        except OSError as e:
            error = StorageError(f"Cannot extract {entry.relative_path}: {e}")
            logger.error(f"Extraction of {entry.relative_path} failed: {error}")
            result.status = DownloadStatus.FAILED
            result.error = error
        except HubTransferError as e:
            logger.error(f"Extraction of {entry.relative_path} failed: {e}")
            result.status = DownloadStatus.FAILED
            result.error = e
