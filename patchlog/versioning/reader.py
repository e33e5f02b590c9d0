"""
Version reader - reconstructs historical snapshots from the log.

Invariants:
    - Reads never mutate the log or the record
    - get_version(record, V) == replay of change-sets 1..V from {}
"""

from __future__ import annotations

import logging
from typing import Any

from ..config import VersioningConfig
from ..errors import InvalidVersionError
from ..log.base import ChangeSetLog
from ..patch.apply import apply_patch, compose
from .records import record_id_of, version_of

logger = logging.getLogger(__name__)


class VersionReader:
    """Reconstructs any historical snapshot of a record.

    There is no cache: every call re-reads and re-applies the full prefix
    of change-sets up to the requested version.

    Example:
        >>> reader = VersionReader(log, VersioningConfig())
        >>> await reader.get_version(record, 1)
        {'id': 'rec-1', 'name': 'A'}
    """

    def __init__(self, log: ChangeSetLog, config: VersioningConfig) -> None:
        self.log = log
        self.config = config

    async def replay(self, parent_id: str, max_version: int | None = None) -> dict[str, Any]:
        """Apply change-sets 1..max_version (all when None) to {}."""
        change_sets = await self.log.list_change_sets(parent_id, max_version=max_version)
        logger.debug(
            "Replaying change-sets",
            extra={
                "parent_id": parent_id,
                "max_version": max_version,
                "change_sets": len(change_sets),
            },
        )
        return apply_patch({}, compose(change_sets))

    async def get_version(self, record: dict[str, Any], target_version: int) -> dict[str, Any]:
        """Reconstruct the record's snapshot at `target_version`.

        Args:
            record: Live record carrying its id and current version
            target_version: Version to reconstruct, in [1, current]

        Returns:
            The reconstructed snapshot (bookkeeping fields excluded)

        Raises:
            InvalidVersionError: If target_version is outside [1, current]
        """
        current = version_of(record, self.config)
        if (
            current is None
            or isinstance(target_version, bool)
            or not isinstance(target_version, int)
            or target_version < 1
            or target_version > current
        ):
            raise InvalidVersionError(
                f"The version number cannot be smaller than 1 or larger than {current}",
                requested=target_version,
                current=current,
            )

        return await self.replay(record_id_of(record, self.config), max_version=target_version)
