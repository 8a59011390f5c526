"""Tests for configuration models and load/save behavior."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest
from pydantic import ValidationError

from abac_gate.config import AppConfig, CacheConfig, LoggingConfig, SessionConfig, StoreConfig
from abac_gate.constants import DEFAULT_SESSION_TTL_SECONDS


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def valid_config_dict(tmp_path: Path) -> dict:
    """Configuration touching every section."""
    return {
        "session": {"ttl_seconds": 900, "extend_on_access": False, "max_extensions": 3},
        "store": {"database_url": f"sqlite:///{tmp_path / 'store.db'}"},
        "cache": {"backend": "redis", "redis_url": "redis://cache:6379/2"},
        "logging": {"log_dir": str(tmp_path / "logs"), "log_level": "DEBUG"},
    }


@pytest.fixture
def config_file(tmp_path: Path, valid_config_dict: dict) -> Path:
    """Write valid config to temp file and return path."""
    path = tmp_path / "config.json"
    path.write_text(json.dumps(valid_config_dict))
    return path


# ============================================================================
# Section Validation
# ============================================================================


class TestSessionConfig:
    """SessionConfig validation tests."""

    def test_defaults(self) -> None:
        config = SessionConfig()

        assert config.ttl_seconds == DEFAULT_SESSION_TTL_SECONDS
        assert config.extend_on_access is True
        assert config.max_extensions is None

    @pytest.mark.parametrize("ttl", [0, -5])
    def test_rejects_non_positive_ttl(self, ttl: int) -> None:
        with pytest.raises(ValidationError):
            SessionConfig(ttl_seconds=ttl)

    def test_rejects_negative_max_extensions(self) -> None:
        with pytest.raises(ValidationError):
            SessionConfig(max_extensions=-1)

    def test_is_frozen(self) -> None:
        config = SessionConfig()

        with pytest.raises(ValidationError):
            config.ttl_seconds = 5  # type: ignore[misc]


class TestCacheConfig:
    """CacheConfig validation tests."""

    def test_rejects_unknown_backend(self) -> None:
        with pytest.raises(ValidationError):
            CacheConfig(backend="memcached")

    @pytest.mark.parametrize("url", ["redis://localhost:6379/0", "rediss://secure:6380/1"])
    def test_accepts_redis_urls(self, url: str) -> None:
        assert CacheConfig(redis_url=url).redis_url == url

    def test_rejects_non_redis_url(self) -> None:
        with pytest.raises(ValidationError):
            CacheConfig(redis_url="http://localhost:6379")

    def test_rejects_empty_prefix(self) -> None:
        with pytest.raises(ValidationError):
            CacheConfig(key_prefix="")


class TestStoreConfig:
    """StoreConfig validation tests."""

    def test_rejects_empty_url(self) -> None:
        with pytest.raises(ValidationError):
            StoreConfig(database_url="")


class TestLoggingConfig:
    """LoggingConfig validation tests."""

    def test_log_paths_derive_from_log_dir(self, tmp_path: Path) -> None:
        config = LoggingConfig(log_dir=str(tmp_path))

        assert config.decisions_log_path == tmp_path / "audit" / "decisions.jsonl"
        assert config.system_log_path == tmp_path / "system" / "system.jsonl"

    def test_rejects_unknown_level(self) -> None:
        with pytest.raises(ValidationError):
            LoggingConfig(log_level="TRACE")


# ============================================================================
# Load / Save
# ============================================================================


class TestAppConfigFile:
    """Tests for AppConfig.load_from_file and save_to_file."""

    def test_load_valid_file(self, config_file: Path) -> None:
        # Act
        config = AppConfig.load_from_file(config_file)

        # Assert
        assert config.session.ttl_seconds == 900
        assert config.session.max_extensions == 3
        assert config.cache.backend == "redis"
        assert config.logging.log_level == "DEBUG"

    def test_empty_object_is_all_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text("{}")

        assert AppConfig.load_from_file(path) == AppConfig()

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError, match="config init"):
            AppConfig.load_from_file(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text("{not json")

        with pytest.raises(ValueError, match="Invalid JSON"):
            AppConfig.load_from_file(path)

    def test_validation_errors_name_the_field(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"session": {"ttl_seconds": 0}}))

        with pytest.raises(ValueError, match="session.ttl_seconds") as exc_info:
            AppConfig.load_from_file(path)
        assert "config init --force" in str(exc_info.value)

    def test_save_then_load(self, tmp_path: Path, valid_config_dict: dict) -> None:
        # Arrange
        original = AppConfig.model_validate(valid_config_dict)
        path = tmp_path / "nested" / "config.json"

        # Act
        original.save_to_file(path)

        # Assert
        assert AppConfig.load_from_file(path) == original

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_save_sets_owner_only_permissions(self, tmp_path: Path) -> None:
        path = tmp_path / "conf" / "config.json"

        AppConfig().save_to_file(path)

        assert path.stat().st_mode & 0o777 == 0o600
        assert path.parent.stat().st_mode & 0o777 == 0o700
