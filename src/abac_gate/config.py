"""Application configuration for abac-gate.

Defines configuration models for sessions, the persistent store, the
session cache, and logging. Config is stored as JSON at the OS-appropriate
location (via click.get_app_dir); every field has a working default so an
empty file is a valid configuration.

Example usage:
    # Load from config file
    config = AppConfig.load_from_file(config_path)

    # Save new configuration
    config.save_to_file(config_path)
"""

from __future__ import annotations

__all__ = [
    "AppConfig",
    "CacheConfig",
    "LoggingConfig",
    "SessionConfig",
    "StoreConfig",
    "get_config_path",
]

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from abac_gate.constants import (
    CONFIG_FILENAME,
    DECISIONS_LOG_RELATIVE_PATH,
    DEFAULT_DATABASE_URL,
    DEFAULT_LOG_DIR,
    DEFAULT_REDIS_URL,
    DEFAULT_SESSION_TTL_SECONDS,
    MIN_SESSION_TTL_SECONDS,
    SESSION_KEY_PREFIX,
    SUBJECT_INDEX_PREFIX,
    SYSTEM_LOG_RELATIVE_PATH,
)
from abac_gate.utils.file_helpers import get_app_dir, read_model_json, write_private_json


def get_config_path() -> Path:
    """Get the default config file path (<app_dir>/config.json)."""
    return get_app_dir() / CONFIG_FILENAME


# =============================================================================
# Session Configuration
# =============================================================================


class SessionConfig(BaseModel):
    """Session Snapshot lifecycle settings.

    Attributes:
        ttl_seconds: Snapshot lifetime; also the cache TTL of each entry.
        extend_on_access: Slide expiry forward on every successful read.
        max_extensions: Cap on sliding extensions per session. None = unlimited.
            Once reached, the session expires at its current expiry.
    """

    ttl_seconds: int = Field(default=DEFAULT_SESSION_TTL_SECONDS, ge=MIN_SESSION_TTL_SECONDS)
    extend_on_access: bool = True
    max_extensions: int | None = Field(default=None, ge=0)

    model_config = ConfigDict(frozen=True)


# =============================================================================
# Store Configuration
# =============================================================================


class StoreConfig(BaseModel):
    """Persistent relational store settings.

    Attributes:
        database_url: SQLAlchemy database URL.
        echo: Log emitted SQL (debugging only).
    """

    database_url: str = Field(default=DEFAULT_DATABASE_URL, min_length=1)
    echo: bool = False

    model_config = ConfigDict(frozen=True)


# =============================================================================
# Cache Configuration
# =============================================================================


class CacheConfig(BaseModel):
    """Session cache settings.

    Attributes:
        backend: "memory" (single process) or "redis" (shared).
        redis_url: Redis connection URL (backend="redis" only).
        key_prefix: Prefix for Session Snapshot keys.
        index_prefix: Prefix for subject -> session-id index keys.
    """

    backend: Literal["memory", "redis"] = "memory"
    redis_url: str = Field(default=DEFAULT_REDIS_URL, pattern=r"^rediss?://")
    key_prefix: str = Field(default=SESSION_KEY_PREFIX, min_length=1)
    index_prefix: str = Field(default=SUBJECT_INDEX_PREFIX, min_length=1)

    model_config = ConfigDict(frozen=True)


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging configuration settings.

    Logs are stored under log_dir with this structure:
        <log_dir>/
        ├── system/
        │   └── system.jsonl        # WARNING and above (INFO when log_level=DEBUG)
        └── audit/
            └── decisions.jsonl     # One entry per gate evaluation

    Attributes:
        log_dir: Base directory for logs (platform-specific default).
        log_level: DEBUG or INFO.
        audit_decisions: Write the decision audit log.
    """

    log_dir: str = Field(default=DEFAULT_LOG_DIR, min_length=1)
    log_level: Literal["DEBUG", "INFO"] = "INFO"
    audit_decisions: bool = True

    model_config = ConfigDict(frozen=True)

    @property
    def decisions_log_path(self) -> Path:
        """Path to the decision audit log."""
        return Path(self.log_dir).expanduser() / DECISIONS_LOG_RELATIVE_PATH

    @property
    def system_log_path(self) -> Path:
        """Path to the system log."""
        return Path(self.log_dir).expanduser() / SYSTEM_LOG_RELATIVE_PATH


# =============================================================================
# Application Configuration
# =============================================================================


class AppConfig(BaseModel):
    """Complete abac-gate configuration.

    Attributes:
        session: Session Snapshot lifecycle.
        store: Persistent store connection.
        cache: Session cache backend.
        logging: Log locations and levels.
    """

    session: SessionConfig = Field(default_factory=SessionConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = ConfigDict(frozen=True)

    def save_to_file(self, config_path: Path) -> None:
        """Save configuration as JSON with owner-only permissions.

        Args:
            config_path: Destination; parent directories are created.
        """
        write_private_json(config_path, self.model_dump(mode="json"))

    @classmethod
    def load_from_file(cls, config_path: Path) -> "AppConfig":
        """Load configuration from a JSON file.

        Args:
            config_path: Path to the config JSON file.

        Returns:
            AppConfig instance with loaded configuration.

        Raises:
            FileNotFoundError: If config file doesn't exist.
            ValueError: If config file is invalid.
        """
        return read_model_json(
            config_path,
            cls,
            what="config",
            recovery_hint="Run 'abac-gate config init --force' to rewrite defaults.",
        )
