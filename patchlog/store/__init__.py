"""
Record store module for patchlog - live record persistence.

The stores here stand in for the surrounding persistence layer: they hold
the current state of each record, while history lives in the change-set log.
"""

from .base import RecordStore, create_record_store
from .memory import InMemoryRecordStore
from .sqlite import SqliteRecordStore

__all__ = [
    "RecordStore",
    "create_record_store",
    "InMemoryRecordStore",
    "SqliteRecordStore",
]
