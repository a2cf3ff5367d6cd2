"""Core module - Shared configuration, errors, hashing and identifiers."""

from hubtransfer.core.config import HubConfig, RetentionPolicy
from hubtransfer.core.errors import (
    APIError,
    AuthorizationFailure,
    ChecksumMismatch,
    ExtractionError,
    HubTransferError,
    InvalidPathError,
    NetworkFailure,
    NotCached,
    PartialBatchFailure,
    RemoteNotFound,
    StorageError,
)
from hubtransfer.core.hashing import (
    is_sha256_hex,
    read_checksum_sidecar,
    sha256_bytes,
    sha256_file,
    short_hash,
    write_checksum_sidecar,
)
from hubtransfer.core.types import (
    DEFAULT_REVISION,
    RepoScope,
    RepoType,
    validate_relative_path,
)

__all__ = [
    # Config
    "HubConfig",
    "RetentionPolicy",
    # Errors
    "APIError",
    "AuthorizationFailure",
    "ChecksumMismatch",
    "ExtractionError",
    "HubTransferError",
    "InvalidPathError",
    "NetworkFailure",
    "NotCached",
    "PartialBatchFailure",
    "RemoteNotFound",
    "StorageError",
    # Hashing
    "is_sha256_hex",
    "read_checksum_sidecar",
    "sha256_bytes",
    "sha256_file",
    "short_hash",
    "write_checksum_sidecar",
    # Types
    "DEFAULT_REVISION",
    "RepoScope",
    "RepoType",
    "validate_relative_path",
]
