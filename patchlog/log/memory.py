"""
In-memory change-set log for testing.

This module provides a simple in-memory backend for:
- Unit tests
- Integration tests
- Local development without a data directory

Invariants:
    - All data is lost on process exit
    - Same uniqueness and ordering guarantees as the SQLite backend
    - Safe to use from multiple coroutines
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any

from ..errors import VersionConflictError
from ..patch.model import PatchOp
from .base import ChangeSet

logger = logging.getLogger(__name__)


class InMemoryChangeSetLog:
    """In-memory implementation of ChangeSetLog.

    Change-sets are kept per parent in a dict keyed by version, so
    appends and deletes are O(1) and listing sorts the versions.

    Example:
        >>> log = InMemoryChangeSetLog("tasks_h")
        >>> await log.append("rec-1", 1, [PatchOp.add("/name", "A")])
        >>> log.count("rec-1")
        1
    """

    def __init__(self, name: str = "memory_h") -> None:
        """Initialize an empty log.

        Args:
            name: Log name
        """
        self.name = name
        self._change_sets: dict[str, dict[int, ChangeSet]] = defaultdict(dict)
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        """No-op for in-memory."""
        pass

    async def close(self) -> None:
        """Clear all data."""
        self._change_sets.clear()
        logger.debug("InMemoryChangeSetLog closed", extra={"log_name": self.name})

    async def append(
        self,
        parent_id: str,
        version: int,
        operations: list[PatchOp],
        metadata: Any = None,
        created_at_ms: int | None = None,
    ) -> ChangeSet:
        """Append a change-set, rejecting duplicates."""
        change_set = ChangeSet(
            parent_id=parent_id,
            version=version,
            operations=tuple(operations),
            metadata=metadata,
            created_at_ms=created_at_ms,
        )

        async with self._lock:
            versions = self._change_sets[parent_id]
            if version in versions:
                raise VersionConflictError(parent_id, version)
            versions[version] = change_set

        logger.debug(
            "Change-set appended to in-memory log",
            extra={"log_name": self.name, "parent_id": parent_id, "version": version},
        )
        return change_set

    async def list_change_sets(
        self,
        parent_id: str,
        max_version: int | None = None,
    ) -> list[ChangeSet]:
        """List change-sets in ascending version order."""
        versions = self._change_sets.get(parent_id, {})
        return [
            versions[v]
            for v in sorted(versions)
            if max_version is None or v <= max_version
        ]

    async def delete_one(self, parent_id: str, version: int) -> bool:
        """Delete a single change-set."""
        async with self._lock:
            versions = self._change_sets.get(parent_id)
            if not versions or version not in versions:
                return False
            del versions[version]
            if not versions:
                del self._change_sets[parent_id]
        return True

    # Testing helpers

    def count(self, parent_id: str | None = None) -> int:
        """Number of change-sets for a parent, or in the whole log."""
        if parent_id is not None:
            return len(self._change_sets.get(parent_id, {}))
        return sum(len(v) for v in self._change_sets.values())

    def all_change_sets(self) -> list[ChangeSet]:
        """Every change-set, grouped by parent then version."""
        result = []
        for parent_id in sorted(self._change_sets):
            versions = self._change_sets[parent_id]
            result.extend(versions[v] for v in sorted(versions))
        return result
