"""In-memory record store for tests and local development."""

from __future__ import annotations

import copy
import logging
from typing import Any

logger = logging.getLogger(__name__)


class InMemoryRecordStore:
    """Dict-backed RecordStore. Stores and returns deep copies."""

    def __init__(self, name: str = "records") -> None:
        self.name = name
        self._records: dict[str, dict[str, Any]] = {}

    async def initialize(self) -> None:
        pass

    async def close(self) -> None:
        self._records.clear()

    async def get(self, record_id: str) -> dict[str, Any] | None:
        record = self._records.get(record_id)
        return copy.deepcopy(record) if record is not None else None

    async def put(self, record_id: str, record: dict[str, Any]) -> dict[str, Any]:
        self._records[record_id] = copy.deepcopy(record)
        return copy.deepcopy(record)

    async def delete(self, record_id: str) -> bool:
        return self._records.pop(record_id, None) is not None

    def __len__(self) -> int:
        return len(self._records)
