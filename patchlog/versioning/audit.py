"""
History audit - checks a record's change-set log against its invariants.

Two checks are made:
    1. Contiguity: stored versions are exactly 1..N with no gaps
    2. Replay: replaying 1..N from {} equals the live record's snapshot,
       and N equals the live record's version

Both are read-only. They back the `verify` CLI command and the HTTP
verify route.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from ..config import VersioningConfig
from ..errors import ApplyFailureError
from ..log.base import ChangeSetLog
from ..patch.apply import apply_patch, compose
from .records import snapshot_of, version_of

logger = logging.getLogger(__name__)


@dataclass
class HistoryReport:
    """Result of auditing one record's history.

    Attributes:
        record_id: Audited record
        versions: Stored change-set versions, ascending
        record_version: Version carried by the live record (None if absent)
        contiguous: Versions are exactly 1..N
        replay_matches: Replay equals the live snapshot (None without a record)
        problems: Human-readable description of every failed check
    """

    record_id: str
    versions: list[int] = field(default_factory=list)
    record_version: int | None = None
    contiguous: bool = True
    replay_matches: bool | None = None
    problems: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.problems

    def to_dict(self) -> dict[str, Any]:
        return {
            "record_id": self.record_id,
            "versions": self.versions,
            "record_version": self.record_version,
            "contiguous": self.contiguous,
            "replay_matches": self.replay_matches,
            "ok": self.ok,
            "problems": self.problems,
        }


async def verify_history(
    log: ChangeSetLog,
    record_id: str,
    record: dict[str, Any] | None,
    config: VersioningConfig,
) -> HistoryReport:
    """Audit the change-set history of a record.

    Args:
        log: Change-set log holding the record's history
        record_id: Record identifier
        record: Live record, or None to only check contiguity
        config: Versioning configuration

    Returns:
        HistoryReport; report.ok is False when any check failed
    """
    change_sets = await log.list_change_sets(record_id)
    versions = [cs.version for cs in change_sets]
    report = HistoryReport(record_id=record_id, versions=versions)

    expected = list(range(1, len(versions) + 1))
    if versions != expected:
        report.contiguous = False
        report.problems.append(f"Versions are not contiguous from 1: {versions}")

    if record is None:
        if versions:
            report.problems.append("Record is missing but history exists")
        return report

    report.record_version = version_of(record, config)
    if versions and report.record_version != versions[-1]:
        report.problems.append(
            f"Record version {report.record_version} != latest change-set {versions[-1]}"
        )

    try:
        replayed = apply_patch({}, compose(change_sets))
    except ApplyFailureError as e:
        report.replay_matches = False
        report.problems.append(f"History does not replay: {e.message}")
    else:
        report.replay_matches = replayed == snapshot_of(record, config)
        if versions and not report.replay_matches:
            report.problems.append("Replayed history differs from the live record")

    if not report.ok:
        logger.warning(
            "History audit failed",
            extra={"parent_id": record_id, "problems": report.problems},
        )
    return report
