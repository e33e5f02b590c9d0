"""
SQLite record store for patchlog.

One SQLite file per collection holds the live state of every record.

Table schema:
    records:
        - record_id TEXT PRIMARY KEY
        - state_json TEXT
        - updated_at INTEGER (Unix ms)
"""

from __future__ import annotations

import json
import logging
import sqlite3
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from ..log.sqlite import safe_file_name

logger = logging.getLogger(__name__)


class SqliteRecordStore:
    """SQLite implementation of RecordStore.

    Example:
        >>> store = SqliteRecordStore("/var/lib/patchlog", "tasks")
        >>> await store.initialize()
        >>> await store.put("rec-1", {"id": "rec-1", "name": "A"})
    """

    def __init__(
        self,
        data_dir: str,
        name: str,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
    ) -> None:
        """Initialize the store.

        Args:
            data_dir: Directory for SQLite database files
            name: Collection name, used to derive the file name
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
        """
        self.name = name
        self.data_dir = Path(data_dir)
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self._initialized = False

    @property
    def db_path(self) -> Path:
        """Database file for this collection."""
        return self.data_dir / f"records_{safe_file_name(self.name)}.db"

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=self.busy_timeout_ms / 1000.0,
            isolation_level=None,
        )
        conn.row_factory = sqlite3.Row
        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            yield conn
        finally:
            conn.close()

    async def initialize(self) -> None:
        """Create the database file and schema if they don't exist."""
        if self._initialized:
            return
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS records (
                    record_id TEXT PRIMARY KEY,
                    state_json TEXT NOT NULL,
                    updated_at INTEGER NOT NULL
                )
            """)
        self._initialized = True
        logger.info(f"Initialized record store: {self.name}", extra={"path": str(self.db_path)})

    async def close(self) -> None:
        self._initialized = False

    async def get(self, record_id: str) -> dict[str, Any] | None:
        await self.initialize()
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT state_json FROM records WHERE record_id = ?",
                (record_id,),
            ).fetchone()
        return json.loads(row["state_json"]) if row else None

    async def put(self, record_id: str, record: dict[str, Any]) -> dict[str, Any]:
        await self.initialize()
        state_json = json.dumps(record)
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO records (record_id, state_json, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(record_id) DO UPDATE SET
                    state_json = excluded.state_json,
                    updated_at = excluded.updated_at
                """,
                (record_id, state_json, int(time.time() * 1000)),
            )
        return json.loads(state_json)

    async def delete(self, record_id: str) -> bool:
        await self.initialize()
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM records WHERE record_id = ?", (record_id,))
            return cursor.rowcount > 0

    async def record_ids(self) -> list[str]:
        """Every stored record id, sorted."""
        await self.initialize()
        with self._get_connection() as conn:
            rows = conn.execute("SELECT record_id FROM records ORDER BY record_id").fetchall()
        return [row["record_id"] for row in rows]
