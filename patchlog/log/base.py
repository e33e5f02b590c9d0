"""
Base protocol and types for the change-set log.

This module defines the ChangeSetLog protocol that all backends must
implement, along with the ChangeSet record they store.

Invariants:
    - (parent_id, version) is unique within a log
    - list_change_sets returns change-sets in ascending version order
    - append never overwrites; a duplicate raises VersionConflictError

How to change safely:
    - Protocol changes require updating every backend
    - Keep ChangeSet.to_dict/from_dict stable, stored history depends on it
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass, field
from typing import Any, Protocol, TYPE_CHECKING, runtime_checkable

from ..patch.model import PatchOp, ops_from_dicts, ops_to_dicts

if TYPE_CHECKING:
    from ..config import StorageConfig


@dataclass(frozen=True)
class ChangeSet:
    """One stored step of a record's history.

    Attributes:
        parent_id: Identifier of the record this change-set belongs to
        version: Version produced by applying operations to version - 1
        operations: Ordered patch operations
        metadata: Opaque caller-supplied value, stored verbatim
        created_at_ms: Creation timestamp (Unix ms) when date tracking is on
    """

    parent_id: str
    version: int
    operations: tuple[PatchOp, ...] = field(default_factory=tuple)
    metadata: Any = None
    created_at_ms: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "parent_id": self.parent_id,
            "version": self.version,
            "operations": ops_to_dicts(list(self.operations)),
            "metadata": self.metadata,
            "created_at_ms": self.created_at_ms,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChangeSet:
        """Create from dictionary."""
        return cls(
            parent_id=data["parent_id"],
            version=data["version"],
            operations=tuple(ops_from_dicts(data.get("operations", []))),
            metadata=data.get("metadata"),
            created_at_ms=data.get("created_at_ms"),
        )

    def __str__(self) -> str:
        return f"ChangeSet({self.parent_id}@v{self.version}, {len(self.operations)} ops)"


@runtime_checkable
class ChangeSetLog(Protocol):
    """Protocol for change-set log backends.

    The log is the authoritative history of every record it tracks.
    Replaying a record's change-sets 1..V in order from {} reconstructs
    the record's snapshot at version V.

    Example:
        >>> log = InMemoryChangeSetLog("tasks_h")
        >>> await log.append("rec-1", 1, compute_diff({}, {"name": "A"}))
        >>> [cs.version for cs in await log.list_change_sets("rec-1")]
        [1]
    """

    name: str

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare backing storage (create tables, files)."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release backend resources."""
        ...

    @abstractmethod
    async def append(
        self,
        parent_id: str,
        version: int,
        operations: list[PatchOp],
        metadata: Any = None,
        created_at_ms: int | None = None,
    ) -> ChangeSet:
        """Append a change-set.

        Args:
            parent_id: Record identifier
            version: Version the change-set produces (>= 1)
            operations: Ordered patch operations
            metadata: Opaque caller metadata
            created_at_ms: Optional timestamp

        Returns:
            The stored ChangeSet

        Raises:
            VersionConflictError: If (parent_id, version) already exists
        """
        ...

    @abstractmethod
    async def list_change_sets(
        self,
        parent_id: str,
        max_version: int | None = None,
    ) -> list[ChangeSet]:
        """List change-sets for a record in ascending version order.

        Args:
            parent_id: Record identifier
            max_version: Optional inclusive upper bound on version

        Returns:
            Change-sets with version <= max_version (all when None)
        """
        ...

    @abstractmethod
    async def delete_one(self, parent_id: str, version: int) -> bool:
        """Delete a single change-set.

        Returns:
            True if a change-set was deleted, False if none matched
        """
        ...


def create_change_set_log(config: StorageConfig, name: str) -> ChangeSetLog:
    """Factory function to create a change-set log from configuration.

    Args:
        config: Storage configuration
        name: Log name (typically "<collection>_h")

    Returns:
        Appropriate ChangeSetLog implementation

    Raises:
        ValueError: If backend is not supported
    """
    from ..config import StorageBackend
    from .memory import InMemoryChangeSetLog
    from .sqlite import SqliteChangeSetLog

    if config.backend == StorageBackend.MEMORY:
        return InMemoryChangeSetLog(name)
    elif config.backend == StorageBackend.SQLITE:
        return SqliteChangeSetLog(
            config.data_dir,
            name,
            wal_mode=config.wal_mode,
            busy_timeout_ms=config.busy_timeout_ms,
        )
    else:
        raise ValueError(f"Unsupported storage backend: {config.backend}")
