"""
Configuration management for patchlog.

All configuration can be loaded from environment variables. This module
provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Invalid enum values fail fast with the offending variable named
    - Field names used for bookkeeping are never empty

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Renaming version_key on an existing deployment orphans history;
      migrate stored records before changing it
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Configuration is missing or invalid."""

    pass


class RollbackStrategy(Enum):
    """How a rollback restores the previous snapshot.

    REPLAY rebuilds Snapshot(V-1) from the log and overwrites the record.
    FORWARD_PATCH re-applies the forward operations of change-set V-1 onto
    the live record; only exact for add/replace-only histories.
    """

    REPLAY = "replay"
    FORWARD_PATCH = "forward_patch"


class StorageBackend(Enum):
    """Supported change-set log and record store backends."""

    MEMORY = "memory"
    SQLITE = "sqlite"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_enum(enum_cls: type[Enum], name: str, default: str) -> Enum:
    raw = os.getenv(name, default).lower()
    try:
        return enum_cls(raw)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ConfigError(f"Invalid {name} '{raw}'. Must be one of: {allowed}")


@dataclass(frozen=True)
class VersioningConfig:
    """Record versioning configuration.

    Attributes:
        id_key: Record field holding the record identifier
        version_key: Record field holding the current version number
        version_date_key: Record field holding the last version timestamp
        track_date: Stamp every change-set with created_at_ms
        add_date_to_document: Also copy the timestamp onto the record
            (only effective when track_date is on)
        history_suffix: Suffix appended to a collection name to name its log
        history_collection: Explicit log name, overrides the suffix rule
        rollback_strategy: How rollback restores the previous snapshot
    """

    id_key: str = "id"
    version_key: str = "documentVersion"
    version_date_key: str = "documentVersionDate"
    track_date: bool = False
    add_date_to_document: bool = False
    history_suffix: str = "_h"
    history_collection: str | None = None
    rollback_strategy: RollbackStrategy = RollbackStrategy.REPLAY

    @property
    def bookkeeping_keys(self) -> frozenset[str]:
        """Record fields excluded from snapshots."""
        return frozenset({self.version_key, self.version_date_key})

    def history_name(self, collection: str) -> str:
        """Name of the change-set log backing `collection`."""
        return self.history_collection or f"{collection}{self.history_suffix}"

    @classmethod
    def from_env(cls) -> VersioningConfig:
        """Load configuration from environment variables."""
        return cls(
            id_key=os.getenv("PATCHLOG_ID_KEY", "id"),
            version_key=os.getenv("PATCHLOG_VERSION_KEY", "documentVersion"),
            version_date_key=os.getenv("PATCHLOG_VERSION_DATE_KEY", "documentVersionDate"),
            track_date=_env_bool("PATCHLOG_TRACK_DATE", "false"),
            add_date_to_document=_env_bool("PATCHLOG_ADD_DATE_TO_DOCUMENT", "false"),
            history_suffix=os.getenv("PATCHLOG_HISTORY_SUFFIX", "_h"),
            history_collection=os.getenv("PATCHLOG_HISTORY_COLLECTION") or None,
            rollback_strategy=_env_enum(
                RollbackStrategy, "PATCHLOG_ROLLBACK_STRATEGY", "replay"
            ),
        )


@dataclass(frozen=True)
class StorageConfig:
    """Storage configuration for change-set logs and record stores.

    Attributes:
        backend: Which backend to use (memory, sqlite)
        data_dir: Directory for SQLite database files
        wal_mode: SQLite WAL journal mode enabled
        busy_timeout_ms: SQLite busy timeout in milliseconds
    """

    backend: StorageBackend = StorageBackend.MEMORY
    data_dir: str = "./patchlog-data"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables."""
        return cls(
            backend=_env_enum(StorageBackend, "PATCHLOG_STORAGE_BACKEND", "memory"),
            data_dir=os.getenv("PATCHLOG_DATA_DIR", "./patchlog-data"),
            wal_mode=_env_bool("PATCHLOG_SQLITE_WAL_MODE", "true"),
            busy_timeout_ms=int(os.getenv("PATCHLOG_SQLITE_BUSY_TIMEOUT_MS", "5000")),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
        )


@dataclass
class PatchlogConfig:
    """Complete patchlog configuration.

    Attributes:
        versioning: Record versioning configuration
        storage: Storage backend configuration
        observability: Logging configuration
    """

    versioning: VersioningConfig = field(default_factory=VersioningConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> PatchlogConfig:
        """Load complete configuration from environment variables.

        Raises:
            ConfigError: If configuration is missing or invalid.
        """
        config = cls(
            versioning=VersioningConfig.from_env(),
            storage=StorageConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ConfigError: If configuration is invalid.
        """
        versioning = self.versioning
        for name in ("id_key", "version_key", "version_date_key"):
            if not getattr(versioning, name):
                raise ConfigError(f"{name} must not be empty")

        if len({versioning.id_key, versioning.version_key, versioning.version_date_key}) != 3:
            raise ConfigError("id_key, version_key and version_date_key must be distinct")

        if not versioning.history_collection and not versioning.history_suffix:
            raise ConfigError("history_suffix must not be empty without history_collection")

        if versioning.add_date_to_document and not versioning.track_date:
            logger.warning("add_date_to_document has no effect while track_date is disabled")

        if self.storage.backend == StorageBackend.SQLITE:
            if not self.storage.data_dir:
                raise ConfigError("PATCHLOG_DATA_DIR is required when backend=sqlite")
            if not os.path.exists(self.storage.data_dir):
                logger.warning(
                    f"Data directory does not exist: {self.storage.data_dir}. "
                    "It will be created on first write."
                )

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "patchlog configuration loaded",
            extra={
                "backend": self.storage.backend.value,
                "data_dir": self.storage.data_dir
                if self.storage.backend == StorageBackend.SQLITE
                else None,
                "version_key": self.versioning.version_key,
                "track_date": self.versioning.track_date,
                "rollback_strategy": self.versioning.rollback_strategy.value,
                "log_level": self.observability.log_level,
            },
        )
