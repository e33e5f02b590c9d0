"""
Save orchestrator - turns a proposed record state into change-sets.

The persistence layer calls prepare() right before it writes a record.
prepare() decides which transition applies, appends the resulting
change-set(s) to the log and returns the record to persist, stamped with
its new version.

State machine:
    SUPPRESSED  suppress_versioning is set; nothing is diffed or logged
    NEW         no persisted counterpart; version 1 = diff({}, new)
    BACKFILL    persisted counterpart exists but neither side carries a
                version; version 1 = diff({}, prior) without metadata,
                version 2 = diff(prior, new) with metadata
    VERSIONED   current version V is known; V+1 = diff(Snapshot(V), new)

Invariants:
    - The log is appended before the caller writes the record
    - Bookkeeping fields (version, version date) never enter a diff
    - VERSIONED requires V to be the highest change-set in the log, so
      versions stay contiguous
    - VersionConflictError propagates unretried

How to change safely:
    - A new transition needs its own change-set contiguity argument
    - Changing what counts as bookkeeping changes every future diff
"""

from __future__ import annotations

import copy
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..config import VersioningConfig
from ..errors import InvalidVersionError, VersionConflictError
from ..log.base import ChangeSet, ChangeSetLog
from ..patch.diff import compute_diff
from .reader import VersionReader
from .records import ensure_id, snapshot_of, version_of

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class SaveTransition(Enum):
    """Which branch of the save state machine a call took."""

    SUPPRESSED = "suppressed"
    NEW = "new"
    BACKFILL = "backfill"
    VERSIONED = "versioned"


@dataclass
class SaveOutcome:
    """Result of preparing a save.

    Attributes:
        record: Record to persist, with version (and date) fields set
        transition: Branch taken
        change_sets: Change-sets appended, in version order
    """

    record: dict[str, Any]
    transition: SaveTransition
    change_sets: list[ChangeSet] = field(default_factory=list)

    @property
    def version(self) -> int | None:
        return self.change_sets[-1].version if self.change_sets else None


class SaveOrchestrator:
    """Produces change-sets for a record about to be persisted.

    Example:
        >>> orchestrator = SaveOrchestrator(log, VersioningConfig())
        >>> outcome = await orchestrator.prepare({"id": "rec-1", "name": "A"})
        >>> outcome.transition, outcome.record["documentVersion"]
        (<SaveTransition.NEW: 'new'>, 1)
    """

    def __init__(
        self,
        log: ChangeSetLog,
        config: VersioningConfig,
        clock: Callable[[], int] | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            log: Change-set log of the collection
            config: Versioning configuration
            clock: Returns the current Unix time in ms (defaults to time.time)
        """
        self.log = log
        self.config = config
        self.clock = clock or _now_ms
        self.reader = VersionReader(log, config)

    def classify(
        self,
        proposed: dict[str, Any],
        prior: dict[str, Any] | None,
        suppress_versioning: bool = False,
    ) -> SaveTransition:
        """Pick the transition for a save without touching the log."""
        if suppress_versioning:
            return SaveTransition.SUPPRESSED
        if prior is None:
            return SaveTransition.NEW
        if version_of(prior, self.config) is None and version_of(proposed, self.config) is None:
            return SaveTransition.BACKFILL
        return SaveTransition.VERSIONED

    async def prepare(
        self,
        proposed: dict[str, Any],
        prior: dict[str, Any] | None = None,
        *,
        metadata: Any = None,
        suppress_versioning: bool = False,
    ) -> SaveOutcome:
        """Append the change-set(s) for a save and stamp the record.

        Args:
            proposed: Full proposed record state
            prior: Currently persisted state of the record, None if new
            metadata: Opaque value stored on the (last) appended change-set
            suppress_versioning: Skip versioning entirely for this save

        Returns:
            SaveOutcome with the record to persist

        Raises:
            InvalidVersionError: If the record carries a malformed version
            VersionConflictError: If another writer appended the version first,
                or the record's version is not the latest in the log
        """
        record = copy.deepcopy(proposed)
        transition = self.classify(record, prior, suppress_versioning)
        if transition == SaveTransition.SUPPRESSED:
            return SaveOutcome(record=record, transition=transition)

        parent_id = ensure_id(record, self.config)
        created_at_ms = self.clock() if self.config.track_date else None
        after = snapshot_of(record, self.config)

        if transition == SaveTransition.NEW:
            change_sets = [
                await self.log.append(
                    parent_id, 1, compute_diff({}, after), metadata, created_at_ms
                )
            ]
        elif transition == SaveTransition.BACKFILL:
            assert prior is not None
            before = snapshot_of(prior, self.config)
            change_sets = [
                await self.log.append(
                    parent_id, 1, compute_diff({}, before), None, created_at_ms
                ),
                await self.log.append(
                    parent_id, 2, compute_diff(before, after), metadata, created_at_ms
                ),
            ]
        else:
            current = self._current_version(record, prior)
            await self._check_latest(parent_id, current)
            before = await self.reader.replay(parent_id, max_version=current)
            change_sets = [
                await self.log.append(
                    parent_id,
                    current + 1,
                    compute_diff(before, after),
                    metadata,
                    created_at_ms,
                )
            ]

        record[self.config.version_key] = change_sets[-1].version
        if created_at_ms is not None and self.config.add_date_to_document:
            record[self.config.version_date_key] = created_at_ms

        logger.info(
            "Versioned save prepared",
            extra={
                "parent_id": parent_id,
                "transition": transition.value,
                "version": change_sets[-1].version,
                "ops": sum(len(cs.operations) for cs in change_sets),
            },
        )
        return SaveOutcome(record=record, transition=transition, change_sets=change_sets)

    def _current_version(self, proposed: dict[str, Any], prior: dict[str, Any] | None) -> int:
        raw = proposed.get(self.config.version_key)
        if raw is None and prior is not None:
            raw = prior.get(self.config.version_key)
        if isinstance(raw, bool) or not isinstance(raw, int) or raw < 1:
            raise InvalidVersionError(
                f"Record carries an invalid version: {raw!r}",
                requested=raw,
            )
        return raw

    async def _check_latest(self, parent_id: str, current: int) -> None:
        change_sets = await self.log.list_change_sets(parent_id)
        latest = change_sets[-1].version if change_sets else None
        if latest != current:
            raise VersionConflictError(
                parent_id,
                current + 1,
                latest=latest,
                message=(
                    f"Record {parent_id} is at version {current} "
                    f"but its latest change-set is {latest}"
                ),
            )
