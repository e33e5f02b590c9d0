"""
Rollback controller - undoes the most recent version of a record.

Rolling back version V restores the snapshot of the greatest change-set
below V, persists it with versioning suppressed and then drops change-set
V from the log. Rolling back version 1 deletes the record and its only
change-set.

Restore strategies (RollbackStrategy):
    REPLAY         Rebuild Snapshot(V-1) by replaying change-sets 1..V-1
                   and overwrite the record with it. Always exact.
    FORWARD_PATCH  Apply the forward operations of change-set V-1 onto the
                   current record. Kept for compatibility with histories
                   written by older clients that rolled back this way. It
                   is exact only when change-sets V-1 and V touch the same
                   paths with add/replace operations; a field added in V
                   survives the rollback.

Invariants:
    - V must be both the stored version and the highest change-set;
      a stale record is rejected before anything is written
    - The restored record goes through SaveOrchestrator with versioning
      suppressed, so no change-set is appended for it
    - Only change-set V (the highest) is ever deleted
    - The restored record is persisted before change-set V is deleted
    - After a rollback the record's version equals the greatest
      remaining change-set version

How to change safely:
    - Keep persist-then-delete ordering; the reverse loses history on a
      failed write
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ..config import RollbackStrategy, VersioningConfig
from ..errors import NoPreviousVersionError, RecordNotFoundError, VersionConflictError
from ..log.base import ChangeSetLog
from ..patch.apply import apply_patch, compose
from ..store.base import RecordStore
from .orchestrator import SaveOrchestrator
from .records import record_id_of, version_of

logger = logging.getLogger(__name__)

RECORD_DELETED_MESSAGE = "Record deleted as it had no previous versions."


@dataclass
class RollbackResult:
    """Outcome of a rollback.

    Attributes:
        record: Restored record, None when the record was deleted
        deleted: True when rolling back version 1 deleted the record
        version: Version the record now carries (None when deleted)
        message: Human-readable note for the terminal case
    """

    record: dict[str, Any] | None
    deleted: bool = False
    version: int | None = None
    message: str | None = None


class RollbackController:
    """Rolls a record back by exactly one version."""

    def __init__(
        self,
        log: ChangeSetLog,
        store: RecordStore,
        config: VersioningConfig,
        strategy: RollbackStrategy | None = None,
        orchestrator: SaveOrchestrator | None = None,
    ) -> None:
        self.log = log
        self.store = store
        self.config = config
        self.strategy = strategy or config.rollback_strategy
        self.orchestrator = orchestrator or SaveOrchestrator(log, config)

    async def rollback(self, record: dict[str, Any]) -> RollbackResult:
        """Undo the record's current version.

        Args:
            record: Live record carrying its id and current version

        Returns:
            RollbackResult with the restored record, or the deletion note

        Raises:
            NoPreviousVersionError: If the record is unversioned or no
                change-set exists below its version
            RecordNotFoundError: If the record is no longer in the store
            VersionConflictError: If the record's version is not the stored
                version or not the highest change-set in the log
        """
        record_id = record_id_of(record, self.config)
        version = version_of(record, self.config)
        if version is None:
            raise NoPreviousVersionError(record_id, record.get(self.config.version_key))

        stored = await self.store.get(record_id)
        if stored is None:
            raise RecordNotFoundError(record_id, collection=self.store.name)

        change_sets = await self.log.list_change_sets(record_id)
        latest = change_sets[-1].version if change_sets else None
        stored_version = version_of(stored, self.config)
        if stored_version != version or latest != version:
            raise VersionConflictError(
                record_id,
                version,
                latest=latest,
                message=(
                    f"Cannot roll back version {version} of record {record_id}: "
                    f"stored version is {stored_version}, latest change-set is {latest}"
                ),
            )

        if version == 1:
            return await self._delete(record_id)

        previous = [cs for cs in change_sets if cs.version < version]
        if not previous:
            raise NoPreviousVersionError(record_id, version)
        target = previous[-1]

        if self.strategy == RollbackStrategy.FORWARD_PATCH:
            restored = apply_patch(stored, target.operations)
        else:
            restored = apply_patch({}, compose(previous))
            date_key = self.config.version_date_key
            if date_key in stored:
                restored[date_key] = stored[date_key]
        restored[self.config.version_key] = target.version

        outcome = await self.orchestrator.prepare(restored, stored, suppress_versioning=True)
        persisted = await self.store.put(record_id, outcome.record)
        await self.log.delete_one(record_id, version)

        logger.info(
            "Rolled back record",
            extra={
                "parent_id": record_id,
                "from_version": version,
                "to_version": target.version,
                "strategy": self.strategy.value,
            },
        )
        return RollbackResult(record=persisted, version=target.version)

    async def _delete(self, record_id: str) -> RollbackResult:
        if not await self.store.delete(record_id):
            raise RecordNotFoundError(record_id, collection=self.store.name)
        await self.log.delete_one(record_id, 1)
        logger.info(
            "Rolled back record to nothing, deleted",
            extra={"parent_id": record_id},
        )
        return RollbackResult(record=None, deleted=True, message=RECORD_DELETED_MESSAGE)
