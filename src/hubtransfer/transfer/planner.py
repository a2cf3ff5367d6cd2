"""Transfer planning: cache hit, full download or resumed download.

States:
    request -> CACHE_HIT            (matching entry already promoted)
            -> RESUME               (resume record for the same URL/ETag)
            -> FULL                 (nothing usable on disk)
            -> NOT_CACHED           (offline and nothing cached)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from typing import TYPE_CHECKING

from hubtransfer.client.api import RemoteMetadata, normalize_etag
from hubtransfer.core.errors import NetworkFailure, NotCached
from hubtransfer.core.hashing import is_sha256_hex
from hubtransfer.transfer.state import TransferState, load_state

if TYPE_CHECKING:
    from hubtransfer.cache.store import ContentStore
    from hubtransfer.cache.types import CacheEntry
    from hubtransfer.client.api import HTTPClient
    from hubtransfer.core.config import HubConfig
    from hubtransfer.transfer.types import DownloadRequest

logger = logging.getLogger(__name__)


class PlanKind(Enum):
    """Decision taken by the planner."""

    CACHE_HIT = auto()
    FULL = auto()
    RESUME = auto()
    NOT_CACHED = auto()


@dataclass
class TransferPlan:
    """How a download request will be satisfied.

    Attributes:
        kind: Decision.
        request: The request being planned.
        target: Final location in the content store.
        url: Resolve URL (identity of the remote file).
        download_url: URL to fetch bytes from (redirect target when probed).
        etag: Remote ETag.
        size: Remote size.
        commit: Commit the revision resolved to.
        entry: Matching cache entry for CACHE_HIT.
        state: Resume record for RESUME.
        error: NotCached error for NOT_CACHED.
    """

    kind: PlanKind
    request: DownloadRequest
    target: Path
    url: str | None = None
    download_url: str | None = None
    etag: str | None = None
    size: int | None = None
    commit: str | None = None
    entry: CacheEntry | None = None
    state: TransferState | None = None
    error: NotCached | None = None

    @property
    def resume_offset(self) -> int:
        """First byte to request."""
        if self.kind is PlanKind.RESUME and self.state is not None:
            return self.state.bytes_transferred
        return 0


def entry_matches(entry: CacheEntry, etag: str | None, size: int | None) -> bool:
    """Check whether a cached entry is the remote file described by etag/size."""
    if size is not None and entry.size != size:
        return False
    if etag is None:
        return True
    if is_sha256_hex(etag):
        return entry.sha256 == etag.lower() or entry.etag == etag
    return entry.etag == etag


class TransferPlanner:
    """Decides between cache hit, full download and resumed download."""

    def __init__(self, store: ContentStore, client: HTTPClient, config: HubConfig) -> None:
        """Initialize the planner.

        Args:
            store: Content store to consult.
            client: HTTP client for metadata probes.
            config: Hub configuration (offline mode).
        """
        self._store = store
        self._client = client
        self._config = config

    def plan(self, request: DownloadRequest) -> TransferPlan:
        """Plan a download request.

        Args:
            request: The request to plan.

        Returns:
            The plan.

        Raises:
            NetworkFailure: If the probe failed and nothing is cached.
            AuthorizationFailure, RemoteNotFound: From the probe.
        """
        scope, revision, path = request.scope, request.revision, request.path
        target = self._store.entry_path(scope, revision, path)
        located = self._store.locate(scope, revision, path, touch=False)

        if self._config.offline:
            if located.found:
                return self._hit(request, target)
            return TransferPlan(
                kind=PlanKind.NOT_CACHED,
                request=request,
                target=target,
                error=NotCached(scope, revision, path),
            )

        url = self._client.resolve_url(scope, revision, path)
        if request.expected_etag is not None:
            metadata = RemoteMetadata(
                url=url,
                etag=normalize_etag(request.expected_etag),
                size=request.expected_size,
            )
        else:
            try:
                metadata = self._client.probe(url)
            except NetworkFailure as e:
                if located.found and not request.force_download:
                    logger.warning(f"Metadata probe failed ({e}); using cached {path}")
                    return self._hit(request, target)
                raise

        if located.found and not request.force_download:
            if entry_matches(located.entry, metadata.etag, metadata.size):
                return self._hit(request, target)
            logger.info(f"Cached {path} is stale (etag {located.entry.etag} != {metadata.etag})")

        plan = TransferPlan(
            kind=PlanKind.FULL,
            request=request,
            target=target,
            url=url,
            download_url=metadata.location or url,
            etag=metadata.etag,
            size=metadata.size,
            commit=metadata.commit,
        )

        state = load_state(self._store.progress_path(scope, revision, path))
        if state is not None and self._resumable(state, plan):
            plan.kind = PlanKind.RESUME
            plan.state = state
            logger.info(f"Resuming {path} at byte {state.bytes_transferred}")
        return plan

    def _hit(self, request: DownloadRequest, target: Path) -> TransferPlan:
        located = self._store.locate(request.scope, request.revision, request.path, touch=True)
        if not located.found:
            # Evicted between the two lookups
            return TransferPlan(
                kind=PlanKind.NOT_CACHED,
                request=request,
                target=target,
                error=NotCached(request.scope, request.revision, request.path),
            )
        return TransferPlan(kind=PlanKind.CACHE_HIT, request=request, target=target, entry=located.entry)

    @staticmethod
    def _resumable(state: TransferState, plan: TransferPlan) -> bool:
        if plan.url is None or not state.matches(plan.url, plan.etag):
            return False
        if state.is_complete or state.bytes_transferred == 0:
            return False
        if plan.size is not None and state.expected_size != plan.size:
            return False
        try:
            on_disk = state.temp_path.stat().st_size
        except OSError:
            return False
        return on_disk >= state.bytes_transferred
