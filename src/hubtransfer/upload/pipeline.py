"""Large-object upload pipeline.

This module provides:
- LfsUploader: Batch negotiation, single/multipart transfer and verification
- UploadBatchResult: Per-object outcomes of one batch

Architecture:
    One batch request negotiates every distinct OID. Objects that need
    uploading run on a bounded WorkerPool; a multipart object uploads its
    parts on a second pool and finishes with an ordered completion call.
    Every PUT of the batch, single-part or part, takes a slot from one
    semaphore, so in-flight transfers never exceed max_workers.
    Each object fails independently; nothing is retried within a batch.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from hubtransfer.client.api import LFS_HEADERS
from hubtransfer.core.errors import (
    APIError,
    AuthorizationFailure,
    HubTransferError,
    PartialBatchFailure,
)
from hubtransfer.core.types import RepoScope
from hubtransfer.transfer.pool import WorkerPool
from hubtransfer.upload.lfs import (
    ObjectActions,
    PartState,
    UploadAction,
    UploadMode,
    UploadStatus,
    UploadUnit,
)

if TYPE_CHECKING:
    from hubtransfer.client.api import HTTPClient

logger = logging.getLogger(__name__)

_SUCCESS_STATUSES = (UploadStatus.VERIFIED, UploadStatus.ALREADY_PRESENT)


@dataclass
class UploadBatchResult:
    """Outcome of uploading one batch of units.

    Attributes:
        units: Every unit of the batch, in submission order.
    """

    units: list[UploadUnit] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """Check if every unit is on the remote."""
        return all(u.status in _SUCCESS_STATUSES for u in self.units)

    @property
    def uploaded(self) -> list[UploadUnit]:
        """Units whose bytes were transferred."""
        return [u for u in self.units if u.status is UploadStatus.VERIFIED]

    @property
    def skipped(self) -> list[UploadUnit]:
        """Units the remote already had."""
        return [u for u in self.units if u.status is UploadStatus.ALREADY_PRESENT]

    @property
    def failed(self) -> list[UploadUnit]:
        """Units that failed."""
        return [u for u in self.units if u.status not in _SUCCESS_STATUSES]

    @property
    def first_failure(self) -> UploadUnit | None:
        """First failed unit in submission order."""
        failed = self.failed
        return failed[0] if failed else None

    def as_error(self) -> PartialBatchFailure | None:
        """Aggregate failures into one exception, or None if all succeeded."""
        failures = {
            u.path_in_repo: u.error or APIError(f"{u.path_in_repo}: {u.status.value}")
            for u in self.failed
        }
        return PartialBatchFailure(failures) if failures else None


class LfsUploader:
    """Uploads large objects through the hub's batch protocol.

    Usage:
        uploader = LfsUploader(client)
        units = [UploadUnit.from_path(p, "weights/model.bin")]
        result = uploader.upload(scope, units)
        if not result.ok:
            raise result.as_error()
    """

    def __init__(self, client: HTTPClient, max_workers: int | None = None) -> None:
        """Initialize the uploader.

        Args:
            client: HTTP client for batch, upload and verify calls.
            max_workers: Concurrent objects, and concurrent PUTs across the
                whole batch; defaults to the client's config.max_workers.
        """
        self._client = client
        self._max_workers = max_workers or client.config.max_workers
        self._transfer_slots = threading.BoundedSemaphore(self._max_workers)

    def upload(self, scope: RepoScope, units: Sequence[UploadUnit]) -> UploadBatchResult:
        """Upload a batch of units.

        Never raises for remote failures: they are recorded on the units.

        Args:
            scope: Target repository.
            units: Units to upload.

        Returns:
            UploadBatchResult aggregating every unit.
        """
        result = UploadBatchResult(units=list(units))
        if not units:
            return result

        primaries: dict[str, UploadUnit] = {}
        duplicates: list[UploadUnit] = []
        for unit in units:
            unit.reset()
            if unit.oid in primaries:
                duplicates.append(unit)
            else:
                primaries[unit.oid] = unit

        logger.info(
            f"Negotiating {len(primaries)} object(s) for {scope}"
            + (f" ({len(duplicates)} duplicate(s))" if duplicates else "")
        )
        try:
            response = self._client.lfs_batch(
                scope, [u.info.to_batch_object() for u in primaries.values()]
            )
        except HubTransferError as e:
            # Authorization and transport failures apply to the whole batch
            logger.error(f"Batch negotiation failed for {scope}: {e}")
            for unit in units:
                unit.fail(e)
            return result

        negotiated = self._apply_negotiation(primaries, response)

        pool = WorkerPool(max_workers=self._max_workers, name="LfsUpload")
        outcomes = pool.run([self._object_task(unit, actions) for unit, actions in negotiated])
        for (unit, _), outcome in zip(negotiated, outcomes, strict=True):
            if not outcome.ok:
                assert outcome.error is not None
                logger.error(f"Upload of {unit.path_in_repo} failed: {outcome.error}")
                unit.fail(outcome.error)

        for unit in duplicates:
            primary = primaries[unit.oid]
            if primary.status in _SUCCESS_STATUSES:
                unit.status = UploadStatus.ALREADY_PRESENT
            else:
                unit.fail(primary.error or APIError(f"Duplicate of failed {primary.path_in_repo}"))

        logger.info(
            f"Upload batch for {scope}: {len(result.uploaded)} uploaded, "
            f"{len(result.skipped)} already present, {len(result.failed)} failed"
        )
        return result

    def _apply_negotiation(
        self,
        primaries: dict[str, UploadUnit],
        response: dict[str, Any],
    ) -> list[tuple[UploadUnit, ObjectActions]]:
        """Record the batch response on each unit; return those needing transfer."""
        by_oid: dict[str, ObjectActions] = {}
        malformed: dict[str, str] = {}
        for raw in response.get("objects") or []:
            try:
                actions = ObjectActions.from_dict(raw)
            except ValueError as e:
                oid = raw.get("oid") if isinstance(raw, dict) else None
                logger.warning(f"Malformed batch response entry for {oid or 'unknown object'}: {e}")
                if isinstance(oid, str):
                    malformed[oid.lower()] = str(e)
                continue
            by_oid[actions.oid] = actions

        pending = []
        for oid, unit in primaries.items():
            actions = by_oid.get(oid)
            if oid in malformed:
                unit.fail(APIError(f"{unit.path_in_repo}: malformed batch response ({malformed[oid]})"))
            elif actions is None:
                unit.fail(APIError(f"{unit.path_in_repo}: object {oid} missing from batch response"))
            elif actions.rejected:
                error_cls = AuthorizationFailure if actions.error_code in (401, 403) else APIError
                unit.fail(
                    error_cls(
                        f"{unit.path_in_repo}: {actions.error_message or 'rejected'}",
                        actions.error_code,
                    )
                )
            elif actions.upload is None:
                unit.status = UploadStatus.ALREADY_PRESENT
                logger.debug(f"{unit.path_in_repo} already present remotely")
            else:
                unit.status = UploadStatus.NEGOTIATED
                unit.mode = actions.upload.mode
                pending.append((unit, actions))
        return pending

    def _object_task(self, unit: UploadUnit, actions: ObjectActions) -> Callable[[], None]:
        return lambda: self._transfer(unit, actions)

    # === Transfer ===

    def _transfer(self, unit: UploadUnit, actions: ObjectActions) -> None:
        """Upload one object and run its verify action."""
        assert actions.upload is not None
        unit.status = UploadStatus.UPLOADING
        logger.info(f"Uploading {unit.path_in_repo} ({unit.size} bytes, {unit.mode.value})")

        if unit.mode is UploadMode.MULTIPART:
            self._upload_multipart(unit, actions.upload)
        else:
            with self._transfer_slots:
                self._client.put_content(
                    actions.upload.href, unit.read(), headers=actions.upload.upload_headers()
                )

        if actions.verify is not None:
            self._client.post_json(
                actions.verify.href,
                {"oid": unit.oid, "size": unit.size},
                headers=actions.verify.header,
            )
        unit.status = UploadStatus.VERIFIED
        logger.debug(f"Verified {unit.path_in_repo}")

    def _upload_multipart(self, unit: UploadUnit, action: UploadAction) -> None:
        """Upload parts concurrently, then send the completion call.

        Raises:
            APIError: If parts are missing, a part has no ETag, or completion fails.
        """
        try:
            parts = unit.plan_parts(action)
        except ValueError as e:
            raise APIError(str(e)) from e

        pool = WorkerPool(max_workers=self._max_workers, name="LfsPart")
        outcomes = pool.run([self._part_task(unit, part) for part in parts])
        errors = [o.error for o in outcomes if o.error is not None]
        if errors:
            raise errors[0]

        body = {
            "oid": unit.oid,
            "parts": [
                {"partNumber": p.part_number, "etag": p.etag}
                for p in sorted(parts, key=lambda p: p.part_number)
            ],
        }
        self._client.post_json(action.href, body, headers=LFS_HEADERS)
        logger.debug(f"Completed multipart upload of {unit.path_in_repo} ({len(parts)} parts)")

    def _part_task(self, unit: UploadUnit, part: PartState) -> Callable[[], None]:
        return lambda: self._upload_part(unit, part)

    def _upload_part(self, unit: UploadUnit, part: PartState) -> None:
        with self._transfer_slots:
            response = self._client.put_content(part.url, unit.read(part.offset, part.length))
        etag = response.headers.get("etag")
        if not etag:
            raise APIError(f"{unit.path_in_repo}: part {part.part_number} returned no ETag")
        part.etag = etag
        logger.debug(f"Uploaded part {part.part_number} of {unit.path_in_repo}")
