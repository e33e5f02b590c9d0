"""
Versioned collections - the caller-facing facade.

A VersionedCollection binds one record store to one change-set log and
wires the save orchestrator, version reader and rollback controller
around them. HistoryEngine owns the log registry and hands out one
VersionedCollection per collection name.

Invariants:
    - Every non-suppressed save appends to the log before the store write
    - A collection's log is named by VersioningConfig.history_name
    - One VersionedCollection (and one store) per name per engine

Example:
    >>> engine = HistoryEngine(PatchlogConfig())
    >>> tasks = await engine.collection("tasks")
    >>> record = await tasks.save({"name": "A"})
    >>> record["documentVersion"]
    1
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Callable
from typing import Any

from ..config import PatchlogConfig, VersioningConfig
from ..errors import RecordNotFoundError
from ..log.base import ChangeSet, ChangeSetLog
from ..log.registry import ChangeSetLogRegistry
from ..store.base import RecordStore, create_record_store
from .audit import HistoryReport, verify_history
from .orchestrator import SaveOrchestrator
from .reader import VersionReader
from .records import ensure_id
from .rollback import RollbackController, RollbackResult

logger = logging.getLogger(__name__)


class VersionedCollection:
    """Record store plus change-set history for one collection.

    Attributes:
        name: Collection name
        store: Live record store
        config: Versioning configuration
    """

    def __init__(
        self,
        name: str,
        store: RecordStore,
        log: ChangeSetLog,
        config: VersioningConfig | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.name = name
        self.store = store
        self.config = config or VersioningConfig()
        self._log = log
        self.orchestrator = SaveOrchestrator(log, self.config, clock=clock)
        self.reader = VersionReader(log, self.config)
        self.rollback_controller = RollbackController(
            log, store, self.config, orchestrator=self.orchestrator
        )

    @property
    def history_log(self) -> ChangeSetLog:
        """The change-set log backing this collection."""
        return self._log

    async def get(self, record_id: str) -> dict[str, Any] | None:
        """Load the live record, or None."""
        return await self.store.get(str(record_id))

    async def save(
        self,
        state: dict[str, Any],
        metadata: Any = None,
        suppress_versioning: bool = False,
    ) -> dict[str, Any]:
        """Version and persist a full record state.

        Args:
            state: Full record state; an id is generated when missing
            metadata: Opaque value stored on the change-set
            suppress_versioning: Persist without touching history

        Returns:
            The persisted record, carrying its new version

        Raises:
            VersionConflictError: If the version was taken concurrently
        """
        record = copy.deepcopy(state)
        record_id = ensure_id(record, self.config)
        prior = await self.store.get(record_id)
        outcome = await self.orchestrator.prepare(
            record,
            prior,
            metadata=metadata,
            suppress_versioning=suppress_versioning,
        )
        return await self.store.put(record_id, outcome.record)

    async def update_one(
        self,
        record_id: str,
        changes: dict[str, Any],
        metadata: Any = None,
    ) -> dict[str, Any]:
        """Merge top-level fields into a stored record and save it.

        Raises:
            RecordNotFoundError: If no record has this id
        """
        prior = await self.get(record_id)
        if prior is None:
            raise RecordNotFoundError(str(record_id), collection=self.name)

        excluded = self.config.bookkeeping_keys | {self.config.id_key}
        merged = dict(prior)
        merged.update({k: v for k, v in changes.items() if k not in excluded})
        return await self.save(merged, metadata=metadata)

    async def get_version(self, record: dict[str, Any], version: int) -> dict[str, Any]:
        """Reconstruct the record's snapshot at `version`."""
        return await self.reader.get_version(record, version)

    async def rollback(self, record: dict[str, Any]) -> RollbackResult:
        """Undo the record's current version."""
        return await self.rollback_controller.rollback(record)

    async def list_change_sets(self, record_id: str) -> list[ChangeSet]:
        """Every change-set of a record, ascending."""
        return await self._log.list_change_sets(str(record_id))

    async def verify(self, record_id: str) -> HistoryReport:
        """Audit a record's history against its live state."""
        record = await self.get(record_id)
        return await verify_history(self._log, str(record_id), record, self.config)


class HistoryEngine:
    """Owns change-set logs and record stores for a set of collections.

    Example:
        >>> engine = HistoryEngine(PatchlogConfig.from_env())
        >>> await engine.initialize()
        >>> users = await engine.collection("users")
        >>> await engine.close()
    """

    def __init__(
        self,
        config: PatchlogConfig | None = None,
        registry: ChangeSetLogRegistry | None = None,
        store_factory: Callable[[str], RecordStore] | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            config: Complete configuration (defaults to in-memory)
            registry: Log registry override
            store_factory: Builds a record store for a collection name
            clock: Clock passed to every collection's orchestrator
        """
        self.config = config or PatchlogConfig()
        self.registry = registry or ChangeSetLogRegistry(self.config.storage)
        self._store_factory = store_factory or (
            lambda name: create_record_store(self.config.storage, name)
        )
        self._clock = clock
        self._collections: dict[str, VersionedCollection] = {}
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Validate configuration and log it."""
        self.config.validate()
        self.config.log_config()

    async def collection(self, name: str) -> VersionedCollection:
        """Return the VersionedCollection for `name`, creating it once."""
        async with self._lock:
            existing = self._collections.get(name)
            if existing is not None:
                return existing

            versioning = self.config.versioning
            log = await self.registry.get_or_create(versioning.history_name(name))
            store = self._store_factory(name)
            await store.initialize()
            collection = VersionedCollection(name, store, log, versioning, clock=self._clock)
            self._collections[name] = collection
            logger.info(
                "Opened versioned collection",
                extra={"collection": name, "log_name": log.name},
            )
            return collection

    def names(self) -> list[str]:
        return sorted(self._collections)

    async def close(self) -> None:
        """Close every store and log."""
        async with self._lock:
            for collection in self._collections.values():
                await collection.store.close()
            self._collections.clear()
        await self.registry.close_all()
