"""Versioned record store for one tenant.

Each tenant has its own SQLite database with one table per syncable
collection. Every record carries a server-assigned ``id`` and a ``version``
that starts at 1 and grows by exactly 1 per accepted write. Writes to an
existing record are compare-and-swap on the version, so concurrent writers
to the same record cannot both win.

A store is bound to a single database file and takes no tenant argument:
whoever holds a store can only ever see that tenant's records.
"""

import contextlib
import json
import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from greenkeep.shared import SYNCABLE_COLLECTIONS, is_syncable_collection

logger = logging.getLogger("greenkeep.store")

# Columns kept outside the data JSON
_COLUMN_FIELDS = ("id", "version", "deleted", "created_at", "updated_at")

_TABLE_DDL = """
CREATE TABLE IF NOT EXISTS {table} (
    id TEXT PRIMARY KEY,
    version INTEGER NOT NULL,
    deleted INTEGER NOT NULL DEFAULT 0,
    data TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_{table}_version ON {table}(version, id);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _table(collection: str) -> str:
    """Map a collection to its table name, rejecting anything not syncable."""
    if not is_syncable_collection(collection):
        raise ValueError(f"Unknown collection: {collection}")
    return collection


class RecordStore:
    """SQLite-backed versioned records for a single tenant."""

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            for collection in SYNCABLE_COLLECTIONS:
                conn.executescript(_TABLE_DDL.format(table=_table(collection)))

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=10.0)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=5000")
        return conn

    @contextlib.contextmanager
    def _connect(self):
        conn = self._get_conn()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> Dict[str, Any]:
        record = json.loads(row["data"])
        record["id"] = row["id"]
        record["version"] = row["version"]
        record["deleted"] = bool(row["deleted"])
        record["created_at"] = row["created_at"]
        record["updated_at"] = row["updated_at"]
        return record

    @staticmethod
    def _split(data: Dict[str, Any]) -> tuple:
        fields = {k: v for k, v in data.items() if k not in _COLUMN_FIELDS}
        return json.dumps(fields, default=str), 1 if data.get("deleted") else 0

    def get(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        table = _table(collection)
        with self._connect() as conn:
            row = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (record_id,)).fetchone()
        return self._row_to_record(row) if row else None

    def create(self, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a new record at version 1 with a fresh server id."""
        table = _table(collection)
        record_id = uuid.uuid4().hex
        now = _now()
        payload, deleted = self._split(data)
        with self._connect() as conn:
            conn.execute(
                f"""INSERT INTO {table} (id, version, deleted, data, created_at, updated_at)
                    VALUES (?, 1, ?, ?, ?, ?)""",
                (record_id, deleted, payload, now, now),
            )
            row = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (record_id,)).fetchone()
        return self._row_to_record(row)

    def update_if_version(
        self, collection: str, record_id: str, expected_version: int, data: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """Replace a record's fields if it is still at ``expected_version``.

        Returns the stored record at ``expected_version + 1``, or None when
        another writer got there first (or the record does not exist).
        """
        table = _table(collection)
        payload, deleted = self._split(data)
        with self._connect() as conn:
            cursor = conn.execute(
                f"""UPDATE {table}
                    SET data = ?, deleted = ?, version = version + 1, updated_at = ?
                    WHERE id = ? AND version = ?""",
                (payload, deleted, _now(), record_id, expected_version),
            )
            if cursor.rowcount == 0:
                return None
            row = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (record_id,)).fetchone()
        return self._row_to_record(row)

    def changes_since(self, collection: str, version: int) -> List[Dict[str, Any]]:
        """Records with ``version`` above the checkpoint, ordered by (version, id)."""
        table = _table(collection)
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT * FROM {table} WHERE version > ? ORDER BY version, id",
                (version,),
            ).fetchall()
        return [self._row_to_record(row) for row in rows]

    def count(self, collection: str, include_deleted: bool = True) -> int:
        table = _table(collection)
        query = f"SELECT COUNT(*) FROM {table}"
        if not include_deleted:
            query += " WHERE deleted = 0"
        with self._connect() as conn:
            return conn.execute(query).fetchone()[0]
