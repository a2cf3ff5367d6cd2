"""Resumable download records.

A TransferState is persisted as a small JSON record in the store's metadata
area so an interrupted download can continue after a process restart.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from hubtransfer.core.hashing import write_text_atomic

logger = logging.getLogger(__name__)


@dataclass
class TransferState:
    """Progress of a download that may span several requests.

    Attributes:
        url: Resolve URL the bytes come from.
        temp_path: Temporary file receiving the bytes.
        expected_size: Total size, if known.
        etag: Remote ETag the partial bytes belong to.
        expected_hash: SHA-256 the complete file must match, if known.
        bytes_transferred: Bytes safely written to temp_path.
        started_at: When the download started.
        updated_at: When progress was last recorded.
    """

    url: str
    temp_path: Path
    expected_size: int | None
    etag: str | None
    expected_hash: str | None = None
    bytes_transferred: int = 0
    started_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        """Enforce bytes_transferred <= expected_size."""
        if self.bytes_transferred < 0:
            raise ValueError("bytes_transferred must be >= 0")
        if self.expected_size is not None and self.bytes_transferred > self.expected_size:
            raise ValueError(
                f"bytes_transferred ({self.bytes_transferred}) exceeds "
                f"expected_size ({self.expected_size})"
            )

    @property
    def is_complete(self) -> bool:
        """Check if every expected byte has been written."""
        return self.expected_size is not None and self.bytes_transferred == self.expected_size

    def matches(self, url: str, etag: str | None) -> bool:
        """Check if partial bytes are valid for resuming this URL/ETag."""
        return etag is not None and self.etag == etag and self.url == url

    def advance(self, byte_count: int) -> None:
        """Record newly written bytes."""
        self.bytes_transferred += byte_count
        self.updated_at = time.time()

    def reset(self) -> None:
        """Forget progress (server ignored the range request)."""
        self.bytes_transferred = 0
        self.updated_at = time.time()

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the JSON sidecar."""
        return {
            "url": self.url,
            "temp_path": str(self.temp_path),
            "expected_size": self.expected_size,
            "etag": self.etag,
            "expected_hash": self.expected_hash,
            "bytes_transferred": self.bytes_transferred,
            "started_at": self.started_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TransferState:
        """Create from a JSON sidecar dictionary."""
        return cls(
            url=data["url"],
            temp_path=Path(data["temp_path"]),
            expected_size=data.get("expected_size"),
            etag=data.get("etag"),
            expected_hash=data.get("expected_hash"),
            bytes_transferred=int(data.get("bytes_transferred", 0)),
            started_at=float(data.get("started_at", time.time())),
            updated_at=float(data.get("updated_at", time.time())),
        )


def load_state(sidecar: Path) -> TransferState | None:
    """Load a resume record; unreadable records are discarded.

    Returns:
        The state, or None if there is no usable record.
    """
    if not sidecar.exists():
        return None
    try:
        return TransferState.from_dict(json.loads(sidecar.read_text(encoding="utf-8")))
    except (OSError, ValueError, KeyError, TypeError) as e:
        logger.warning(f"Discarding unreadable resume record {sidecar}: {e}")
        sidecar.unlink(missing_ok=True)
        return None


def save_state(sidecar: Path, state: TransferState) -> None:
    """Atomically persist a resume record."""
    write_text_atomic(sidecar, json.dumps(state.to_dict()))


def delete_state(sidecar: Path) -> None:
    """Remove a resume record."""
    sidecar.unlink(missing_ok=True)
