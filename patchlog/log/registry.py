"""
Change-set log registry.

Maps log names to log handles. The registry is constructed once by the
caller (usually through HistoryEngine) and passed to whatever needs a log;
there is no module-level instance.

Invariants:
    - A name maps to at most one handle for the registry's lifetime
    - get_or_create initializes a handle before handing it out

Example:
    >>> registry = ChangeSetLogRegistry(StorageConfig())
    >>> log = await registry.get_or_create("tasks_h")
    >>> log is await registry.get_or_create("tasks_h")
    True
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from ..config import StorageConfig
from .base import ChangeSetLog, create_change_set_log

logger = logging.getLogger(__name__)


class DuplicateLogError(Exception):
    """Raised when registering a name that already has a handle."""

    pass


class ChangeSetLogRegistry:
    """Caller-owned registry of change-set logs.

    Attributes:
        storage: Storage configuration used by the default factory
    """

    def __init__(
        self,
        storage: StorageConfig | None = None,
        factory: Callable[[str], ChangeSetLog] | None = None,
    ) -> None:
        """Initialize an empty registry.

        Args:
            storage: Storage configuration for the default factory
            factory: Optional override that builds a log for a name
        """
        self.storage = storage or StorageConfig()
        self._factory = factory or (lambda name: create_change_set_log(self.storage, name))
        self._logs: dict[str, ChangeSetLog] = {}
        self._lock = asyncio.Lock()

    def register(self, name: str, log: ChangeSetLog) -> None:
        """Register an existing handle under `name`.

        Raises:
            DuplicateLogError: If `name` is already registered
        """
        if name in self._logs:
            raise DuplicateLogError(f"Change-set log '{name}' already registered")
        self._logs[name] = log

    def get(self, name: str) -> ChangeSetLog | None:
        """Return the handle for `name`, if registered."""
        return self._logs.get(name)

    async def get_or_create(self, name: str) -> ChangeSetLog:
        """Return the handle for `name`, creating and initializing it once."""
        async with self._lock:
            log = self._logs.get(name)
            if log is None:
                log = self._factory(name)
                await log.initialize()
                self._logs[name] = log
                logger.info("Registered change-set log", extra={"log_name": name})
            return log

    def names(self) -> list[str]:
        """Registered log names, sorted."""
        return sorted(self._logs)

    def __contains__(self, name: object) -> bool:
        return name in self._logs

    def __len__(self) -> int:
        return len(self._logs)

    async def close_all(self) -> None:
        """Close every handle and empty the registry."""
        async with self._lock:
            for name, log in self._logs.items():
                await log.close()
                logger.debug("Closed change-set log", extra={"log_name": name})
            self._logs.clear()
