"""Client module - HTTP access to the hub, credentials and retry."""

from hubtransfer.client.api import LFS_HEADERS, HTTPClient, RemoteMetadata, normalize_etag
from hubtransfer.client.auth import clear_token, resolve_token, store_token
from hubtransfer.client.retry import (
    DEFAULT_BACKOFF_MULTIPLIER,
    DEFAULT_INITIAL_BACKOFF,
    DEFAULT_MAX_BACKOFF,
    DEFAULT_MAX_RETRIES,
    retry_with_backoff,
)

__all__ = [
    "DEFAULT_BACKOFF_MULTIPLIER",
    "DEFAULT_INITIAL_BACKOFF",
    "DEFAULT_MAX_BACKOFF",
    "DEFAULT_MAX_RETRIES",
    "HTTPClient",
    "LFS_HEADERS",
    "RemoteMetadata",
    "clear_token",
    "normalize_etag",
    "resolve_token",
    "retry_with_backoff",
    "store_token",
]
