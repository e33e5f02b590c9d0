"""Helpers for reading bookkeeping fields off live records."""

from __future__ import annotations

import copy
import uuid
from typing import Any

from ..config import VersioningConfig


def record_id_of(record: dict[str, Any], config: VersioningConfig) -> str:
    """Return the record's id as a string.

    Raises:
        ValueError: If the record has no id field
    """
    record_id = record.get(config.id_key)
    if record_id is None or record_id == "":
        raise ValueError(f"Record has no '{config.id_key}' field")
    return str(record_id)


def version_of(record: dict[str, Any] | None, config: VersioningConfig) -> int | None:
    """Return the record's version, or None when it is not versioned yet."""
    if record is None:
        return None
    version = record.get(config.version_key)
    if isinstance(version, bool) or not isinstance(version, int) or version < 1:
        return None
    return version


def snapshot_of(record: dict[str, Any], config: VersioningConfig) -> dict[str, Any]:
    """Domain state of a record: a deep copy without bookkeeping fields."""
    excluded = config.bookkeeping_keys
    return {k: copy.deepcopy(v) for k, v in record.items() if k not in excluded}


def ensure_id(record: dict[str, Any], config: VersioningConfig) -> str:
    """Give the record a fresh uuid4 hex id if it has none; return the id."""
    record_id = record.get(config.id_key)
    if record_id is None or record_id == "":
        record_id = uuid.uuid4().hex
        record[config.id_key] = record_id
    return str(record_id)
