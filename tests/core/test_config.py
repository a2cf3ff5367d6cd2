"""Tests for configuration classes."""

from __future__ import annotations

from pathlib import Path

import pytest

from hubtransfer.core.config import (
    DEFAULT_LFS_THRESHOLD,
    DEFAULT_MAX_CACHE_SIZE,
    HubConfig,
    RetentionPolicy,
    default_cache_dir,
    load_config,
    save_config,
)


@pytest.mark.usefixtures("no_env")
class TestHubConfig:
    """Tests for HubConfig class."""

    def test_defaults(self, tmp_path: Path) -> None:
        """Should initialize with documented defaults."""
        config = HubConfig(cache_dir=tmp_path)
        assert config.endpoint == "https://huggingface.co"
        assert config.token is None
        assert config.timeout == 10.0
        assert config.max_retries == 5
        assert config.max_workers == 4
        assert config.lfs_threshold == DEFAULT_LFS_THRESHOLD == 10 * 1024 * 1024
        assert config.offline is False
        assert config.retention.max_size == DEFAULT_MAX_CACHE_SIZE

    def test_url_trailing_slash_removed(self, tmp_path: Path) -> None:
        """Should strip trailing slash from the endpoint."""
        config = HubConfig(endpoint="https://hub.example/", cache_dir=tmp_path)
        assert config.endpoint == "https://hub.example"

    def test_rejects_zero_workers(self, tmp_path: Path) -> None:
        """Should reject an empty worker pool."""
        with pytest.raises(ValueError):
            HubConfig(cache_dir=tmp_path, max_workers=0)

    def test_default_cache_dir(self) -> None:
        """Should fall back to ~/.cache/huggingface/hub."""
        assert default_cache_dir() == Path.home() / ".cache" / "huggingface" / "hub"

    def test_hf_home_cache_dir(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """HF_HOME should place the cache under its hub directory."""
        monkeypatch.setenv("HF_HOME", str(tmp_path))
        assert default_cache_dir() == tmp_path / "hub"

    def test_hf_hub_cache_wins(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """HF_HUB_CACHE should take precedence over HF_HOME."""
        monkeypatch.setenv("HF_HOME", str(tmp_path / "home"))
        monkeypatch.setenv("HF_HUB_CACHE", str(tmp_path / "cache"))
        assert default_cache_dir() == tmp_path / "cache"

    def test_from_env_layers(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Environment should override the config file, overrides win last."""
        config_file = tmp_path / "config.json"
        save_config(
            {
                "endpoint": "https://file.example",
                "max_workers": 8,
                "retention": {"max_size": 1000, "max_age": 60},
            },
            config_file,
        )
        monkeypatch.setenv("HF_ENDPOINT", "https://env.example/")
        monkeypatch.setenv("HF_HUB_OFFLINE", "1")
        monkeypatch.setenv("HF_HUB_CACHE", str(tmp_path / "hub"))

        config = HubConfig.from_env(config_file, max_retries=1)

        assert config.endpoint == "https://env.example"
        assert config.max_workers == 8
        assert config.offline is True
        assert config.cache_dir == tmp_path / "hub"
        assert config.max_retries == 1
        assert config.retention == RetentionPolicy(max_size=1000, max_age=60)

    def test_from_env_lfs_threshold(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """HF_HUB_LFS_THRESHOLD should configure the large-object threshold."""
        monkeypatch.setenv("HF_HUB_LFS_THRESHOLD", "2048")
        config = HubConfig.from_env(tmp_path / "missing.json", cache_dir=tmp_path)
        assert config.lfs_threshold == 2048


class TestRetentionPolicy:
    """Tests for RetentionPolicy."""

    def test_defaults(self) -> None:
        """Should bound size to 10 GB with no age limit."""
        policy = RetentionPolicy()
        assert policy.max_size == 10 * 1024 * 1024 * 1024
        assert policy.max_age is None

    def test_rejects_negative(self) -> None:
        """Should reject negative bounds."""
        with pytest.raises(ValueError):
            RetentionPolicy(max_size=-1)
        with pytest.raises(ValueError):
            RetentionPolicy(max_age=-5)


class TestConfigFile:
    """Tests for load_config / save_config."""

    def test_roundtrip(self, tmp_path: Path) -> None:
        """Should write and read JSON config."""
        config_file = tmp_path / "sub" / "config.json"
        save_config({"endpoint": "https://x"}, config_file)
        assert load_config(config_file) == {"endpoint": "https://x"}

    def test_missing_file(self, tmp_path: Path) -> None:
        """Should return an empty dict when the file does not exist."""
        assert load_config(tmp_path / "nope.json") == {}
