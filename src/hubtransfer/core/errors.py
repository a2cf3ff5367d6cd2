"""Error taxonomy for hubtransfer.

Exceptions are raised inside the engine and converted to result objects at
the public operation boundary. Each class carries the context needed to
decide whether the condition is recoverable, retryable or terminal.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping


class HubTransferError(Exception):
    """Base exception for hubtransfer errors."""

    retryable = False


class InvalidPathError(HubTransferError):
    """A repository id, revision or file path is malformed."""


class NotCached(HubTransferError):
    """The requested file is not in the local cache (recoverable)."""

    def __init__(self, scope: object, revision: str, path: str) -> None:
        self.scope = scope
        self.revision = revision
        self.path = path
        super().__init__(f"{path} at {revision} is not cached for {scope}")


class NetworkFailure(HubTransferError):
    """A request failed at the transport level or with a transient status."""

    retryable = True

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        timed_out: bool = False,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.timed_out = timed_out


class ChecksumMismatch(HubTransferError):
    """Downloaded content does not match the expected hash or size."""

    def __init__(self, path: str, expected: str, actual: str) -> None:
        self.path = path
        self.expected = expected
        self.actual = actual
        super().__init__(f"Checksum mismatch for {path}: expected {expected}, got {actual}")


class APIError(HubTransferError):
    """The hub answered with an error status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthorizationFailure(APIError):
    """Missing, invalid or insufficient credentials (never retried)."""


class RemoteNotFound(APIError):
    """The repository, revision or file does not exist remotely."""


class PartialBatchFailure(HubTransferError):
    """Some objects of an otherwise processed batch failed.

    Attributes:
        failures: Mapping of object key (path or OID) to its error.
    """

    def __init__(self, failures: Mapping[str, Exception]) -> None:
        self.failures = dict(failures)
        first_key = next(iter(self.failures), None)
        detail = f"; first: {first_key}: {self.failures[first_key]}" if first_key else ""
        super().__init__(f"{len(self.failures)} object(s) failed{detail}")


class ExtractionError(HubTransferError):
    """An archive is corrupt or contains unsafe members."""


class StorageError(HubTransferError):
    """A local filesystem operation failed (disk full, permissions, path clash)."""
