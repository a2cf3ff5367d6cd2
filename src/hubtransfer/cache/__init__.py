"""Cache module - Content store, layout and advisory locks."""

from hubtransfer.cache.store import ContentStore
from hubtransfer.cache.types import (
    CacheEntry,
    CacheStats,
    IntegrityReport,
    IntegrityStatus,
    Located,
    Missing,
)

__all__ = [
    "CacheEntry",
    "CacheStats",
    "ContentStore",
    "IntegrityReport",
    "IntegrityStatus",
    "Located",
    "Missing",
]
