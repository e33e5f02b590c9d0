"""
Record store protocol.

The record store holds the live, current state of each record. It is the
persistence collaborator the versioning core writes through; history lives
in the change-set log, not here.

Invariants:
    - Records are JSON-like dicts keyed by record id
    - put is an upsert and returns what was stored
    - get returns a copy; mutating it does not touch the store
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Any, Protocol, TYPE_CHECKING, runtime_checkable

if TYPE_CHECKING:
    from ..config import StorageConfig


@runtime_checkable
class RecordStore(Protocol):
    """Protocol for live record persistence."""

    name: str

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare backing storage."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release backend resources."""
        ...

    @abstractmethod
    async def get(self, record_id: str) -> dict[str, Any] | None:
        """Load a record's full state, or None if it does not exist."""
        ...

    @abstractmethod
    async def put(self, record_id: str, record: dict[str, Any]) -> dict[str, Any]:
        """Create or replace a record's full state."""
        ...

    @abstractmethod
    async def delete(self, record_id: str) -> bool:
        """Delete a record. Returns False if it did not exist."""
        ...


def create_record_store(config: StorageConfig, name: str) -> RecordStore:
    """Factory function to create a record store from configuration.

    Args:
        config: Storage configuration
        name: Collection name

    Raises:
        ValueError: If backend is not supported
    """
    from ..config import StorageBackend
    from .memory import InMemoryRecordStore
    from .sqlite import SqliteRecordStore

    if config.backend == StorageBackend.MEMORY:
        return InMemoryRecordStore(name)
    elif config.backend == StorageBackend.SQLITE:
        return SqliteRecordStore(
            config.data_dir,
            name,
            wal_mode=config.wal_mode,
            busy_timeout_ms=config.busy_timeout_ms,
        )
    else:
        raise ValueError(f"Unsupported storage backend: {config.backend}")
