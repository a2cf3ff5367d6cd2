"""Large-object (LFS) upload data model.

This module provides:
- UploadInfo: sha256 + size (the OID) of outbound content
- UploadUnit: One file queued for the upload pipeline
- UploadAction, ObjectActions: Parsed batch negotiation response

A unit moves through:
    PLANNED -> NEGOTIATED -> UPLOADING -> VERIFIED
            -> ALREADY_PRESENT (server has the OID, or duplicate in batch)
            -> FAILED
"""

from __future__ import annotations

import hashlib
import math
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from hubtransfer.core.hashing import HASH_BLOCK_SIZE

SAMPLE_SIZE = 512

# Used when the chunk-size header is present but not a number
DEFAULT_CHUNK_SIZE = 64 * 1024 * 1024

CHUNK_SIZE_HEADER = "x-amz-meta-chunk-size"
PART_URL_HEADER = re.compile(r"^x-amz-meta-part-(\d+)-url$", re.IGNORECASE)


@dataclass(frozen=True)
class UploadInfo:
    """Content identity of an outbound file.

    Attributes:
        sha256: Hex SHA-256 of the content.
        size: Size in bytes.
        sample: First 512 bytes (content sniffing by the commit call).
    """

    sha256: str
    size: int
    sample: bytes = b""

    @property
    def oid(self) -> str:
        """Large-object identifier (lowercase hex SHA-256)."""
        return self.sha256.lower()

    @classmethod
    def from_path(cls, path: Path) -> UploadInfo:
        """Hash a file in one streaming pass."""
        hasher = hashlib.sha256()
        size = 0
        sample = b""
        with open(path, "rb") as f:
            while block := f.read(HASH_BLOCK_SIZE):
                if len(sample) < SAMPLE_SIZE:
                    sample += block[: SAMPLE_SIZE - len(sample)]
                hasher.update(block)
                size += len(block)
        return cls(sha256=hasher.hexdigest(), size=size, sample=sample)

    @classmethod
    def from_bytes(cls, data: bytes) -> UploadInfo:
        """Hash in-memory content."""
        return cls(
            sha256=hashlib.sha256(data).hexdigest(),
            size=len(data),
            sample=data[:SAMPLE_SIZE],
        )

    def to_batch_object(self) -> dict[str, Any]:
        """Entry of the batch negotiation request."""
        return {"oid": self.oid, "size": self.size}


class UploadMode(Enum):
    """Transfer mode selected by the batch response."""

    SINGLE_PART = "single"
    MULTIPART = "multipart"


class UploadStatus(str, Enum):
    """Lifecycle state of an upload unit."""

    PLANNED = "planned"
    NEGOTIATED = "negotiated"
    UPLOADING = "uploading"
    VERIFIED = "verified"
    ALREADY_PRESENT = "already_present"
    FAILED = "failed"


@dataclass
class PartState:
    """One chunk of a multipart upload.

    Attributes:
        part_number: 1-based part number.
        url: Pre-signed URL the part is PUT to.
        offset: First byte of the part in the content.
        length: Size of the part in bytes.
        etag: ETag returned for the uploaded part.
    """

    part_number: int
    url: str
    offset: int
    length: int
    etag: str | None = None


def _as_object(value: Any, what: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{what} must be an object, not {type(value).__name__}")
    return value


@dataclass(frozen=True)
class UploadAction:
    """An "upload" or "verify" action of the batch response."""

    href: str
    header: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> UploadAction:
        """Create from a batch response action.

        Raises:
            ValueError: If the action is not an object or has no href.
        """
        data = _as_object(data, "action")
        href = data.get("href")
        if not isinstance(href, str) or not href:
            raise ValueError("action has no href")
        header = _as_object(data.get("header"), "action header")
        return cls(href=href, header={str(k): str(v) for k, v in header.items()})

    def _header(self, name: str) -> str | None:
        for key, value in self.header.items():
            if key.lower() == name:
                return value
        return None

    @property
    def mode(self) -> UploadMode:
        """Multipart when the action carries a chunk size."""
        if self._header(CHUNK_SIZE_HEADER) is not None:
            return UploadMode.MULTIPART
        return UploadMode.SINGLE_PART

    @property
    def chunk_size(self) -> int:
        """Part size for multipart uploads."""
        raw = self._header(CHUNK_SIZE_HEADER)
        if raw is None or not raw.strip().isdigit() or int(raw) <= 0:
            return DEFAULT_CHUNK_SIZE
        return int(raw)

    def part_urls(self) -> list[tuple[int, str]]:
        """Part URLs as (part_number, url), ascending."""
        parts = []
        for key, value in self.header.items():
            match = PART_URL_HEADER.match(key)
            if match:
                parts.append((int(match.group(1)), value))
        return sorted(parts)

    def upload_headers(self) -> dict[str, str]:
        """Headers to send with a single-part PUT (part URL headers excluded)."""
        return {
            k: v for k, v in self.header.items()
            if not PART_URL_HEADER.match(k) and k.lower() != CHUNK_SIZE_HEADER
        }


@dataclass(frozen=True)
class ObjectActions:
    """Negotiated instructions for one object.

    Attributes:
        oid: Object identifier.
        size: Object size.
        upload: Upload action, or None if the server already has the object.
        verify: Optional verify action.
        error_code: Per-object error code, if the server rejected the object.
        error_message: Per-object error message.
    """

    oid: str
    size: int | None = None
    upload: UploadAction | None = None
    verify: UploadAction | None = None
    error_code: int | None = None
    error_message: str | None = None

    @property
    def rejected(self) -> bool:
        """Check if the server returned a per-object error."""
        return self.error_code is not None or self.error_message is not None

    @classmethod
    def from_dict(cls, data: Any) -> ObjectActions:
        """Create from one entry of the batch response "objects" list.

        Raises:
            ValueError: If the entry or one of its parts has the wrong shape.
        """
        data = _as_object(data, "batch object")
        oid = data.get("oid")
        if not isinstance(oid, str) or not oid:
            raise ValueError("batch object has no oid")
        actions = _as_object(data.get("actions"), "actions")
        error = _as_object(data.get("error"), "error")
        code = error.get("code")
        if code is not None and not isinstance(code, int):
            raise ValueError(f"error code {code!r} is not an integer")
        return cls(
            oid=oid.lower(),
            size=data.get("size"),
            upload=UploadAction.from_dict(actions["upload"]) if actions.get("upload") else None,
            verify=UploadAction.from_dict(actions["verify"]) if actions.get("verify") else None,
            error_code=code,
            error_message=error.get("message"),
        )


@dataclass
class UploadUnit:
    """One file queued for the large-object pipeline.

    Attributes:
        path_in_repo: Destination path in the repository.
        source: Local file, or in-memory content.
        info: OID and size of the content.
        mode: Transfer mode chosen after negotiation.
        status: Lifecycle state.
        error: Failure cause when status is FAILED.
        parts: Per-chunk state of a multipart upload.
    """

    path_in_repo: str
    source: Path | bytes
    info: UploadInfo
    mode: UploadMode | None = None
    status: UploadStatus = UploadStatus.PLANNED
    error: Exception | None = None
    parts: list[PartState] = field(default_factory=list)

    @classmethod
    def from_path(cls, path: Path, path_in_repo: str) -> UploadUnit:
        """Create a unit for a local file."""
        return cls(path_in_repo=path_in_repo, source=Path(path), info=UploadInfo.from_path(path))

    @classmethod
    def from_bytes(cls, data: bytes, path_in_repo: str) -> UploadUnit:
        """Create a unit for in-memory content."""
        return cls(path_in_repo=path_in_repo, source=data, info=UploadInfo.from_bytes(data))

    @property
    def oid(self) -> str:
        """Large-object identifier."""
        return self.info.oid

    @property
    def size(self) -> int:
        """Content size in bytes."""
        return self.info.size

    def read(self, offset: int = 0, length: int | None = None) -> bytes:
        """Read a slice of the content (all of it by default)."""
        if isinstance(self.source, bytes):
            end = None if length is None else offset + length
            return self.source[offset:end]
        with open(self.source, "rb") as f:
            f.seek(offset)
            return f.read() if length is None else f.read(length)

    def plan_parts(self, action: UploadAction) -> list[PartState]:
        """Split the content into parts matching the action's part URLs.

        Raises:
            ValueError: If the server issued fewer part URLs than needed.
        """
        chunk_size = action.chunk_size
        urls = action.part_urls()
        needed = max(1, math.ceil(self.size / chunk_size))
        if len(urls) < needed:
            raise ValueError(
                f"{self.path_in_repo}: {needed} parts needed, server issued {len(urls)} URLs"
            )
        self.parts = [
            PartState(
                part_number=number,
                url=url,
                offset=index * chunk_size,
                length=min(chunk_size, self.size - index * chunk_size),
            )
            for index, (number, url) in enumerate(urls[:needed])
        ]
        return self.parts

    def reset(self) -> None:
        """Return to PLANNED before (re)submitting the unit."""
        self.status = UploadStatus.PLANNED
        self.mode = None
        self.error = None
        self.parts = []

    def fail(self, error: Exception) -> None:
        """Mark the unit failed."""
        self.status = UploadStatus.FAILED
        self.error = error
