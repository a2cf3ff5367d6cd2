"""Shared fixtures for hubtransfer tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from hubtransfer.cache.store import ContentStore
from hubtransfer.core.config import HubConfig
from hubtransfer.core.types import RepoScope

ENDPOINT = "https://hub.test"


@pytest.fixture
def scope() -> RepoScope:
    """Model repository used across tests."""
    return RepoScope("acme/widget")


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    """Empty cache root."""
    return tmp_path / "cache"


@pytest.fixture
def config(cache_dir: Path) -> HubConfig:
    """Config pointing at the test endpoint with a private cache."""
    return HubConfig(
        endpoint=ENDPOINT,
        token="hf_test_token",
        cache_dir=cache_dir,
        max_retries=3,
        max_workers=2,
        checkpoint_bytes=1024,
    )


@pytest.fixture
def store(cache_dir: Path) -> ContentStore:
    """Content store over the private cache root."""
    return ContentStore(cache_dir)


@pytest.fixture
def no_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove hub environment variables."""
    for name in (
        "HF_ENDPOINT",
        "HF_HUB_CACHE",
        "HF_HOME",
        "HF_HUB_OFFLINE",
        "HF_HUB_LFS_THRESHOLD",
        "HF_TOKEN",
    ):
        monkeypatch.delenv(name, raising=False)
