"""
SQLite change-set log for patchlog.

One SQLite file per log name holds every change-set of that log.

Invariants:
    - PRIMARY KEY (parent_id, version) enforces the append-only uniqueness
    - Operations and metadata are stored as JSON text, verbatim
    - Every statement runs on a fresh connection (SQLite handles locking)

Table schema:
    change_sets:
        - parent_id TEXT
        - version INTEGER
        - operations_json TEXT
        - metadata_json TEXT (NULL when no metadata)
        - created_at_ms INTEGER (NULL unless date tracking is on)
        - PRIMARY KEY (parent_id, version)
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from ..errors import LogError, VersionConflictError
from ..patch.model import PatchOp, ops_from_dicts, ops_to_dicts
from .base import ChangeSet

logger = logging.getLogger(__name__)


def safe_file_name(name: str) -> str:
    """Strip a log or collection name down to filename-safe characters."""
    return "".join(c for c in name if c.isalnum() or c in "-_")


class SqliteChangeSetLog:
    """SQLite implementation of ChangeSetLog.

    Example:
        >>> log = SqliteChangeSetLog("/var/lib/patchlog", "tasks_h")
        >>> await log.initialize()
        >>> await log.append("rec-1", 1, [PatchOp.add("/name", "A")])
    """

    SCHEMA_VERSION = 1

    def __init__(
        self,
        data_dir: str,
        name: str,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
    ) -> None:
        """Initialize the log.

        Args:
            data_dir: Directory for SQLite database files
            name: Log name, used to derive the file name
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
        """Database file for this log."""
        return self.data_dir / f"history_{safe_file_name(self.name)}.db"

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

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS change_sets (
                parent_id TEXT NOT NULL,
                version INTEGER NOT NULL,
                operations_json TEXT NOT NULL DEFAULT '[]',
                metadata_json TEXT,
                created_at_ms INTEGER,
                PRIMARY KEY (parent_id, version)
            );

            INSERT OR IGNORE INTO schema_version (version, applied_at)
            VALUES (1, strftime('%s', 'now') * 1000);
        """)

    async def initialize(self) -> None:
        """Create the database file and schema if they don't exist."""
        if self._initialized:
            return
        with self._get_connection() as conn:
            self._create_schema(conn)
        self._initialized = True
        logger.info(f"Initialized change-set log: {self.name}", extra={"path": str(self.db_path)})

    async def close(self) -> None:
        """Connections are per-operation; nothing to release."""
        self._initialized = False

    def _row_to_change_set(self, row: sqlite3.Row) -> ChangeSet:
        try:
            operations = ops_from_dicts(json.loads(row["operations_json"]))
            metadata = (
                json.loads(row["metadata_json"]) if row["metadata_json"] is not None else None
            )
        except json.JSONDecodeError as e:
            raise LogError(
                f"Corrupt change-set {row['parent_id']}@v{row['version']}: {e}",
                log_name=self.name,
            )
        return ChangeSet(
            parent_id=row["parent_id"],
            version=row["version"],
            operations=tuple(operations),
            metadata=metadata,
            created_at_ms=row["created_at_ms"],
        )

    async def append(
        self,
        parent_id: str,
        version: int,
        operations: list[PatchOp],
        metadata: Any = None,
        created_at_ms: int | None = None,
    ) -> ChangeSet:
        """Insert a change-set; the primary key rejects duplicates."""
        await self.initialize()
        try:
            operations_json = json.dumps(ops_to_dicts(operations))
            metadata_json = json.dumps(metadata) if metadata is not None else None
        except (TypeError, ValueError) as e:
            raise LogError(f"Change-set is not JSON serializable: {e}", log_name=self.name)

        with self._get_connection() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO change_sets
                        (parent_id, version, operations_json, metadata_json, created_at_ms)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (parent_id, version, operations_json, metadata_json, created_at_ms),
                )
            except sqlite3.IntegrityError:
                raise VersionConflictError(parent_id, version)

        logger.debug(
            "Appended change-set",
            extra={"log_name": self.name, "parent_id": parent_id, "version": version},
        )
        return ChangeSet(
            parent_id=parent_id,
            version=version,
            operations=tuple(operations),
            metadata=metadata,
            created_at_ms=created_at_ms,
        )

    async def list_change_sets(
        self,
        parent_id: str,
        max_version: int | None = None,
    ) -> list[ChangeSet]:
        """List change-sets in ascending version order."""
        await self.initialize()
        query = "SELECT * FROM change_sets WHERE parent_id = ?"
        params: list[Any] = [parent_id]
        if max_version is not None:
            query += " AND version <= ?"
            params.append(max_version)
        query += " ORDER BY version ASC"

        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_change_set(row) for row in rows]

    async def delete_one(self, parent_id: str, version: int) -> bool:
        """Delete a single change-set."""
        await self.initialize()
        with self._get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM change_sets WHERE parent_id = ? AND version = ?",
                (parent_id, version),
            )
            deleted = cursor.rowcount > 0

        logger.debug(
            "Deleted change-set",
            extra={
                "log_name": self.name,
                "parent_id": parent_id,
                "version": version,
                "deleted": deleted,
            },
        )
        return deleted

    async def parent_ids(self) -> list[str]:
        """Every record id that has at least one change-set."""
        await self.initialize()
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT DISTINCT parent_id FROM change_sets ORDER BY parent_id"
            ).fetchall()
        return [row["parent_id"] for row in rows]
