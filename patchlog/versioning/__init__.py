"""
Record versioning: save orchestration, version reads and rollback.

The modules here sit between a record store and a change-set log:
- orchestrator: decides NEW / BACKFILL / VERSIONED and appends change-sets
- reader: reconstructs historical snapshots by replay
- rollback: undoes the most recent version
- audit: checks history contiguity and replay against live state
- collection: VersionedCollection and HistoryEngine facades
"""

from .audit import HistoryReport, verify_history
from .collection import HistoryEngine, VersionedCollection
from .orchestrator import SaveOrchestrator, SaveOutcome, SaveTransition
from .reader import VersionReader
from .rollback import RECORD_DELETED_MESSAGE, RollbackController, RollbackResult

__all__ = [
    "HistoryEngine",
    "VersionedCollection",
    "SaveOrchestrator",
    "SaveOutcome",
    "SaveTransition",
    "VersionReader",
    "RollbackController",
    "RollbackResult",
    "RECORD_DELETED_MESSAGE",
    "HistoryReport",
    "verify_history",
]
