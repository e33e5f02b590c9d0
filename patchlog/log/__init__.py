"""
Change-set log abstraction for patchlog.

This module provides a pluggable log backend interface supporting:
- SQLite (one file per log)
- In-memory (for testing)

The change-set log is the source of truth for record history. Live
records are a cache of the latest snapshot and can be checked against a
replay of the log at any time.

Invariants:
    - append rejects a duplicate (parent_id, version) with VersionConflictError
    - list_change_sets is ascending by version
    - Only the highest version of a parent is ever deleted (by rollback)
"""

from .base import ChangeSet, ChangeSetLog, create_change_set_log
from .memory import InMemoryChangeSetLog
from .registry import ChangeSetLogRegistry, DuplicateLogError
from .sqlite import SqliteChangeSetLog

__all__ = [
    # Protocol and types
    "ChangeSetLog",
    "ChangeSet",
    # Factory and registry
    "create_change_set_log",
    "ChangeSetLogRegistry",
    "DuplicateLogError",
    # Implementations
    "InMemoryChangeSetLog",
    "SqliteChangeSetLog",
]
