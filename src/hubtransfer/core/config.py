"""Configuration classes for hubtransfer.

This module defines the process-wide settings consulted by the HTTP client,
the content store and the transfer engines, plus helpers to load them from
a JSON config file and the environment.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

DEFAULT_ENDPOINT = "https://huggingface.co"

# Sizes (in bytes)
DEFAULT_MAX_CACHE_SIZE = 10 * 1024 * 1024 * 1024  # 10 GB
DEFAULT_LFS_THRESHOLD = 10 * 1024 * 1024  # 10 MB
DEFAULT_CHECKPOINT_BYTES = 10 * 1024 * 1024  # 10 MB

# Timeouts (in seconds)
DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_ETAG_TIMEOUT = 10.0

DEFAULT_MAX_RETRIES = 5
DEFAULT_MAX_WORKERS = 4

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass
class RetentionPolicy:
    """Bounds enforced by cache eviction.

    Attributes:
        max_size: Target total cache size in bytes (None for unbounded).
        max_age: Maximum seconds since last access (None for unbounded).
    """

    max_size: int | None = DEFAULT_MAX_CACHE_SIZE
    max_age: float | None = None

    def __post_init__(self) -> None:
        """Reject negative bounds."""
        if self.max_size is not None and self.max_size < 0:
            raise ValueError("max_size must be >= 0")
        if self.max_age is not None and self.max_age < 0:
            raise ValueError("max_age must be >= 0")


def get_config_dir() -> Path:
    """Get the configuration directory for hubtransfer.

    Returns:
        Path to ~/.hubtransfer.
    """
    return Path.home() / ".hubtransfer"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def load_config(config_file: Path | None = None) -> dict[str, Any]:
    """Load configuration from a JSON config file."""
    config_file = config_file or get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def save_config(config: dict[str, Any], config_file: Path | None = None) -> None:
    """Save configuration to a JSON config file."""
    config_file = config_file or get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))


def default_cache_dir() -> Path:
    """Resolve the cache root from HF_HUB_CACHE, HF_HOME or the default."""
    if os.environ.get("HF_HUB_CACHE"):
        return Path(os.environ["HF_HUB_CACHE"]).expanduser()
    if os.environ.get("HF_HOME"):
        return Path(os.environ["HF_HOME"]).expanduser() / "hub"
    return Path.home() / ".cache" / "huggingface" / "hub"


@dataclass
class HubConfig:
    """Settings for talking to the hub and managing the local cache.

    Attributes:
        endpoint: Base URL of the hub.
        token: Bearer credential (None for anonymous access).
        cache_dir: Root of the content store.
        timeout: Per-request timeout in seconds.
        etag_timeout: Timeout for metadata probes in seconds.
        max_retries: Retry budget for network failures during downloads.
        max_workers: Width of the worker pool for uploads, parts and snapshots.
        lfs_threshold: Files at or above this size use the large-object pipeline.
        checkpoint_bytes: Bytes between resume sidecar checkpoints.
        offline: Never touch the network; serve from cache only.
        retention: Eviction bounds for the content store.
    """

    endpoint: str = DEFAULT_ENDPOINT
    token: str | None = None
    cache_dir: Path = field(default_factory=default_cache_dir)
    timeout: float = DEFAULT_REQUEST_TIMEOUT
    etag_timeout: float = DEFAULT_ETAG_TIMEOUT
    max_retries: int = DEFAULT_MAX_RETRIES
    max_workers: int = DEFAULT_MAX_WORKERS
    lfs_threshold: int = DEFAULT_LFS_THRESHOLD
    checkpoint_bytes: int = DEFAULT_CHECKPOINT_BYTES
    offline: bool = False
    retention: RetentionPolicy = field(default_factory=RetentionPolicy)

    def __post_init__(self) -> None:
        """Normalize endpoint URL and cache path."""
        self.endpoint = self.endpoint.rstrip("/")
        self.cache_dir = Path(self.cache_dir).expanduser()
        if self.max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        if self.checkpoint_bytes < 1:
            raise ValueError("checkpoint_bytes must be >= 1")

    @classmethod
    def from_env(cls, config_file: Path | None = None, **overrides: Any) -> HubConfig:
        """Build a config from defaults, the config file and the environment.

        Later layers win: defaults < config file < environment < overrides.

        Args:
            config_file: JSON config file (defaults to ~/.hubtransfer/config.json).
            **overrides: Explicit field values.

        Returns:
            A new HubConfig.
        """
        values: dict[str, Any] = {}
        stored = load_config(config_file)
        for key in (
            "endpoint",
            "cache_dir",
            "timeout",
            "etag_timeout",
            "max_retries",
            "max_workers",
            "lfs_threshold",
            "checkpoint_bytes",
            "offline",
        ):
            if key in stored:
                values[key] = stored[key]
        if "retention" in stored:
            values["retention"] = RetentionPolicy(**stored["retention"])

        if os.environ.get("HF_ENDPOINT"):
            values["endpoint"] = os.environ["HF_ENDPOINT"]
        if os.environ.get("HF_HUB_CACHE") or os.environ.get("HF_HOME"):
            values["cache_dir"] = default_cache_dir()
        if os.environ.get("HF_HUB_OFFLINE"):
            values["offline"] = os.environ["HF_HUB_OFFLINE"].strip().lower() in _TRUE_VALUES
        if os.environ.get("HF_HUB_LFS_THRESHOLD"):
            values["lfs_threshold"] = int(os.environ["HF_HUB_LFS_THRESHOLD"])

        values.update(overrides)
        if "cache_dir" in values:
            values["cache_dir"] = Path(values["cache_dir"])
        return cls(**values)
