"""Offline cache for the greenkeep client.

SQLite-backed mirror of the syncable collections plus the queue of local
mutations the server has not confirmed yet and the per-collection sync
checkpoints. Every operation is local; nothing here touches the network.

Queue entries are only removed after the server confirms them. Accepted
entries are dequeued in the same transaction that re-keys the record, so a
crash can never leave a confirmed mutation queued against a stale key.
"""

import contextlib
import json
import logging
import sqlite3
import uuid
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from greenkeep.shared import (
    SYNCABLE_COLLECTIONS,
    TEMP_ID_PREFIX,
    MutationOperation,
    is_syncable_collection,
    validate_record,
)
from greenkeep.types import (
    MAX_SYNC_RETRIES,
    MUTATION_CONFLICT,
    MUTATION_DEAD_LETTER,
    MUTATION_PENDING,
    PendingMutation,
    SyncConflict,
    parse_datetime,
    utc_now,
)
from greenkeep.utils import default_db_path

from .schema import init_db

logger = logging.getLogger(__name__)

# Kept in dedicated columns, never inside the data JSON
_METADATA_KEYS = ("id", "version", "temp_id")

CONFLICT_KEEP_SERVER = "server"
CONFLICT_KEEP_LOCAL = "local"


class OfflineCache:
    """Durable local store used while the device is disconnected.

    Args:
        db_path: SQLite file to use (defaults to ``~/.greenkeep/offline.db``)
        max_retries: Failed pushes before a mutation is dead-lettered
    """

    def __init__(
        self, db_path: Optional[Union[str, Path]] = None, max_retries: int = MAX_SYNC_RETRIES
    ):
        self.db_path = Path(db_path) if db_path else default_db_path()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.max_retries = max_retries
        with self._connect() as conn:
            init_db(conn)

    # === Connection handling ===

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=5000")
        return conn

    @contextlib.contextmanager
    def _connect(self):
        """Yield a connection; commit on success, roll back on error, always close."""
        conn = self._get_conn()
        try:
            yield conn
            conn.commit()
        except Exception as e:
            logger.debug(f"Transaction failed, rolling back: {e}")
            conn.rollback()
            raise
        finally:
            conn.close()

    def close(self):
        """Connections are per-operation; kept for API symmetry."""

    # === Helpers ===

    @staticmethod
    def _check_collection(collection: str) -> str:
        if not is_syncable_collection(collection):
            raise ValueError(f"Unknown collection: {collection}")
        return collection

    @staticmethod
    def _to_json(data: Any) -> str:
        return json.dumps(data, default=str)

    @staticmethod
    def _from_json(s: Optional[str]) -> Any:
        if not s:
            return None
        try:
            return json.loads(s)
        except json.JSONDecodeError:
            return None

    @staticmethod
    def _strip_metadata(record: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in record.items() if k not in _METADATA_KEYS}

    def _row_to_record(self, row: sqlite3.Row) -> Dict[str, Any]:
        record = self._from_json(row["data"]) or {}
        # temp_id stays on the row for lookups but is only exposed until synced
        if row["id"]:
            record["id"] = row["id"]
        elif row["temp_id"]:
            record["temp_id"] = row["temp_id"]
        record["version"] = row["version"]
        record["deleted"] = bool(row["deleted"])
        return record

    def _row_to_mutation(self, row: sqlite3.Row) -> PendingMutation:
        return PendingMutation(
            id=row["id"],
            collection=row["collection"],
            operation=row["operation"],
            record_key=row["record_key"],
            payload=self._from_json(row["payload"]) or {},
            temp_id=row["temp_id"],
            enqueued_at=parse_datetime(row["enqueued_at"]),
            status=row["status"],
            retry_count=row["retry_count"] or 0,
            last_error=row["last_error"],
        )

    def _get_row(
        self, conn: sqlite3.Connection, collection: str, record_key: str
    ) -> Optional[sqlite3.Row]:
        row = conn.execute(
            "SELECT * FROM records WHERE collection = ? AND record_key = ?",
            (collection, record_key),
        ).fetchone()
        if row is None:
            # Allow lookups by server id after a temp record was re-keyed
            row = conn.execute(
                "SELECT * FROM records WHERE collection = ? AND (id = ? OR temp_id = ?)",
                (collection, record_key, record_key),
            ).fetchone()
        return row

    def _upsert_server_record(
        self, conn: sqlite3.Connection, collection: str, record: Dict[str, Any], force: bool = False
    ) -> bool:
        """Write a server record into the mirror. Older versions never replace newer ones."""
        record_id = record.get("id")
        if not record_id:
            raise ValueError(f"Server record in {collection} has no id")
        version = int(record.get("version") or 0)
        now = utc_now()
        condition = "" if force else "WHERE excluded.version >= COALESCE(records.version, 0)"
        cursor = conn.execute(
            f"""INSERT INTO records
                   (collection, record_key, id, temp_id, version, deleted, data,
                    local_updated_at, synced_at)
               VALUES (?, ?, ?, NULL, ?, ?, ?, ?, ?)
               ON CONFLICT(collection, record_key) DO UPDATE SET
                   id = excluded.id,
                   version = excluded.version,
                   deleted = excluded.deleted,
                   data = excluded.data,
                   synced_at = excluded.synced_at
               {condition}""",
            (
                collection,
                record_id,
                record_id,
                version,
                1 if record.get("deleted") else 0,
                self._to_json(self._strip_metadata(record)),
                now,
                now,
            ),
        )
        return cursor.rowcount > 0

    # === Records ===

    def save_records(
        self, collection: str, records: Iterable[Dict[str, Any]], skip_queued: bool = True
    ) -> int:
        """Upsert server records by id (used after a pull). Returns rows written.

        With ``skip_queued`` a record that still has queued local mutations
        keeps its local state; it is refreshed once those are confirmed or
        the conflict is resolved. A skipped record that is newer than the
        server copy held by an open conflict replaces that copy, so resolving
        the conflict lands on the latest server version.
        """
        self._check_collection(collection)
        written = 0
        with self._connect() as conn:
            for record in records:
                if skip_queued and record.get("id"):
                    queued = conn.execute(
                        "SELECT 1 FROM pending_sync WHERE collection = ? AND record_key = ? LIMIT 1",
                        (collection, record["id"]),
                    ).fetchone()
                    if queued:
                        logger.debug(f"Keeping local {collection}/{record['id']}, changes queued")
                        self._refresh_conflict(conn, collection, record)
                        continue
                if self._upsert_server_record(conn, collection, record):
                    written += 1
        return written

    def read_all(self, collection: str, include_deleted: bool = False) -> List[Dict[str, Any]]:
        """Return every cached record of a collection, offline edits included."""
        self._check_collection(collection)
        query = "SELECT * FROM records WHERE collection = ?"
        if not include_deleted:
            query += " AND deleted = 0"
        query += " ORDER BY rowid"
        with self._connect() as conn:
            rows = conn.execute(query, (collection,)).fetchall()
        return [self._row_to_record(row) for row in rows]

    def get_record(self, collection: str, record_key: str) -> Optional[Dict[str, Any]]:
        """Look a record up by server id or temp id."""
        self._check_collection(collection)
        with self._connect() as conn:
            row = self._get_row(conn, collection, record_key)
        return self._row_to_record(row) if row else None

    # === Mutation queue ===

    def enqueue_mutation(
        self, collection: str, operation: str, payload: Optional[Dict[str, Any]] = None
    ) -> PendingMutation:
        """Queue a local change and apply it to the mirror immediately.

        - ``create``: a temp_id is assigned unless the payload carries one.
        - ``update``/``delete``: the payload must name the record by ``id``
          (or ``temp_id`` for a record not synced yet); ``version`` defaults
          to the cached version. ``delete`` sets ``deleted``.

        Raises:
            ValueError: Unknown collection/operation or missing record key.
            pydantic.ValidationError: The resulting record is invalid.
        """
        self._check_collection(collection)
        op = MutationOperation(operation)
        payload = dict(payload or {})
        now = utc_now()

        with self._connect() as conn:
            if op is MutationOperation.CREATE:
                payload.pop("id", None)
                payload.pop("version", None)
                temp_id = payload.get("temp_id") or f"{TEMP_ID_PREFIX}{uuid.uuid4().hex[:12]}"
                payload["temp_id"] = temp_id
                record_key = temp_id
                validate_record(collection, payload)
                conn.execute(
                    """INSERT INTO records
                           (collection, record_key, id, temp_id, version, deleted, data,
                            local_updated_at)
                       VALUES (?, ?, NULL, ?, NULL, ?, ?, ?)""",
                    (
                        collection,
                        record_key,
                        temp_id,
                        1 if payload.get("deleted") else 0,
                        self._to_json(self._strip_metadata(payload)),
                        now,
                    ),
                )
            else:
                record_key = payload.get("id") or payload.get("temp_id")
                if not record_key:
                    raise ValueError(f"{op.value} requires the record id")
                if op is MutationOperation.DELETE:
                    payload["deleted"] = True

                row = self._get_row(conn, collection, record_key)
                temp_id = None
                if row is not None:
                    record_key = row["record_key"]
                    temp_id = row["temp_id"]
                    if row["id"]:
                        payload["id"] = row["id"]
                    else:
                        payload.pop("id", None)
                        payload["temp_id"] = temp_id
                    if "version" not in payload and row["version"] is not None:
                        payload["version"] = row["version"]
                    merged = {**(self._from_json(row["data"]) or {}), **payload}
                    validate_record(collection, merged)
                    conn.execute(
                        """UPDATE records SET data = ?, deleted = ?, local_updated_at = ?
                           WHERE collection = ? AND record_key = ?""",
                        (
                            self._to_json(self._strip_metadata(merged)),
                            1 if merged.get("deleted") else 0,
                            now,
                            collection,
                            record_key,
                        ),
                    )
                else:
                    logger.debug(f"Queueing {op.value} for uncached record {collection}/{record_key}")

            cursor = conn.execute(
                """INSERT INTO pending_sync
                       (collection, operation, record_key, temp_id, payload, enqueued_at, status)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    collection,
                    op.value,
                    record_key,
                    temp_id,
                    self._to_json(payload),
                    now,
                    MUTATION_PENDING,
                ),
            )
            mutation_id = cursor.lastrowid

        logger.debug(f"Queued {op.value} {collection}/{record_key} as mutation {mutation_id}")
        return PendingMutation(
            id=mutation_id,
            collection=collection,
            operation=op.value,
            record_key=record_key,
            payload=payload,
            temp_id=temp_id,
            enqueued_at=parse_datetime(now),
        )

    def get_pending_mutations(self, limit: Optional[int] = None) -> List[PendingMutation]:
        """Mutations ready to push, in insertion order. Held conflicts are excluded."""
        query = "SELECT * FROM pending_sync WHERE status = ? ORDER BY id"
        params: list = [MUTATION_PENDING]
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_mutation(row) for row in rows]

    def get_mutations(self, ids: Iterable[int]) -> List[PendingMutation]:
        ids = list(ids)
        if not ids:
            return []
        placeholders = ",".join("?" * len(ids))
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT * FROM pending_sync WHERE id IN ({placeholders}) ORDER BY id", ids
            ).fetchall()
        return [self._row_to_mutation(row) for row in rows]

    def dequeue_mutations(self, ids: Iterable[int]) -> int:
        """Remove confirmed mutations from the queue."""
        ids = list(ids)
        if not ids:
            return 0
        placeholders = ",".join("?" * len(ids))
        with self._connect() as conn:
            cursor = conn.execute(f"DELETE FROM pending_sync WHERE id IN ({placeholders})", ids)
            return cursor.rowcount

    def pending_count(self) -> int:
        """Number of mutations waiting to be pushed."""
        with self._connect() as conn:
            return conn.execute(
                "SELECT COUNT(*) FROM pending_sync WHERE status = ?", (MUTATION_PENDING,)
            ).fetchone()[0]

    def apply_acceptance(
        self,
        collection: str,
        record_key: str,
        record_id: str,
        version: int,
        mutation_ids: Iterable[int] = (),
    ) -> None:
        """Record that the server accepted a record at ``version``.

        In one transaction: dequeues ``mutation_ids``, re-keys a temp record
        to its server id, stores the new version, and rebases any mutation
        still queued for the record (queued while the push was in flight)
        onto the server id and version so it does not conflict with itself.
        """
        self._check_collection(collection)
        mutation_ids = list(mutation_ids)
        with self._connect() as conn:
            if mutation_ids:
                placeholders = ",".join("?" * len(mutation_ids))
                conn.execute(
                    f"DELETE FROM pending_sync WHERE id IN ({placeholders})", mutation_ids
                )

            row = self._get_row(conn, collection, record_key)
            if row is not None:
                if row["record_key"] != record_id:
                    conn.execute(
                        "DELETE FROM records WHERE collection = ? AND record_key = ?",
                        (collection, record_id),
                    )
                conn.execute(
                    """UPDATE records
                       SET record_key = ?, id = ?, version = ?, synced_at = ?
                       WHERE collection = ? AND record_key = ?""",
                    (record_id, record_id, version, utc_now(), collection, row["record_key"]),
                )

            remaining = conn.execute(
                "SELECT * FROM pending_sync WHERE collection = ? AND record_key IN (?, ?)",
                (collection, record_key, record_id),
            ).fetchall()
            for entry in remaining:
                payload = self._from_json(entry["payload"]) or {}
                payload["id"] = record_id
                payload["version"] = version
                payload.pop("temp_id", None)
                operation = entry["operation"]
                if operation == MutationOperation.CREATE.value:
                    operation = MutationOperation.UPDATE.value
                conn.execute(
                    """UPDATE pending_sync
                       SET record_key = ?, operation = ?, payload = ?
                       WHERE id = ?""",
                    (record_id, operation, self._to_json(payload), entry["id"]),
                )

    def record_failure(self, ids: Iterable[int], error: str) -> int:
        """Count a failed push attempt. Returns how many entries were dead-lettered."""
        ids = list(ids)
        if not ids:
            return 0
        placeholders = ",".join("?" * len(ids))
        with self._connect() as conn:
            conn.execute(
                f"""UPDATE pending_sync
                    SET retry_count = COALESCE(retry_count, 0) + 1,
                        last_error = ?,
                        last_attempt_at = ?
                    WHERE id IN ({placeholders})""",
                [error[:500], utc_now(), *ids],
            )
            cursor = conn.execute(
                f"""UPDATE pending_sync SET status = ?
                    WHERE id IN ({placeholders}) AND status = ? AND retry_count >= ?""",
                [MUTATION_DEAD_LETTER, *ids, MUTATION_PENDING, self.max_retries],
            )
            dead = cursor.rowcount
        if dead:
            logger.warning(f"{dead} mutation(s) exceeded max retries, moved to dead letter")
        return dead

    def get_dead_letters(self) -> List[PendingMutation]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM pending_sync WHERE status = ? ORDER BY id", (MUTATION_DEAD_LETTER,)
            ).fetchall()
        return [self._row_to_mutation(row) for row in rows]

    def requeue_dead_letters(self, ids: Optional[List[int]] = None) -> int:
        """Give dead-lettered mutations a fresh set of retries."""
        with self._connect() as conn:
            if ids:
                placeholders = ",".join("?" * len(ids))
                cursor = conn.execute(
                    f"""UPDATE pending_sync SET status = ?, retry_count = 0, last_error = NULL
                        WHERE status = ? AND id IN ({placeholders})""",
                    [MUTATION_PENDING, MUTATION_DEAD_LETTER, *ids],
                )
            else:
                cursor = conn.execute(
                    """UPDATE pending_sync SET status = ?, retry_count = 0, last_error = NULL
                       WHERE status = ?""",
                    (MUTATION_PENDING, MUTATION_DEAD_LETTER),
                )
            return cursor.rowcount

    # === Conflicts ===

    def record_conflict(
        self,
        mutation_ids: Iterable[int],
        collection: str,
        record_key: str,
        server_record: Dict[str, Any],
        local_payload: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Hold mutations the server rejected as stale and store the conflict.

        Held mutations stay queued but are not pushed again until the
        conflict is resolved. An open conflict for the same record is
        updated in place rather than duplicated.
        """
        mutation_ids = list(mutation_ids)
        server_version = int(server_record.get("version") or 0)
        now = utc_now()
        with self._connect() as conn:
            if mutation_ids:
                placeholders = ",".join("?" * len(mutation_ids))
                conn.execute(
                    f"""UPDATE pending_sync SET status = ?, last_error = ?, last_attempt_at = ?
                        WHERE id IN ({placeholders})""",
                    [MUTATION_CONFLICT, "conflict", now, *mutation_ids],
                )

            existing = conn.execute(
                """SELECT id, mutation_ids FROM sync_conflicts
                   WHERE collection = ? AND record_key = ? AND resolution IS NULL""",
                (collection, record_key),
            ).fetchone()
            if existing:
                ids = sorted(set(self._from_json(existing["mutation_ids"]) or []) | set(mutation_ids))
                conn.execute(
                    """UPDATE sync_conflicts
                       SET mutation_ids = ?, local_payload = ?, server_record = ?,
                           server_version = ?, detected_at = ?
                       WHERE id = ?""",
                    (
                        self._to_json(ids),
                        self._to_json(local_payload or {}),
                        self._to_json(server_record),
                        server_version,
                        now,
                        existing["id"],
                    ),
                )
                return existing["id"]

            conflict_id = uuid.uuid4().hex
            conn.execute(
                """INSERT INTO sync_conflicts
                       (id, collection, record_key, mutation_ids, local_payload,
                        server_record, server_version, detected_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    conflict_id,
                    collection,
                    record_key,
                    self._to_json(mutation_ids),
                    self._to_json(local_payload or {}),
                    self._to_json(server_record),
                    server_version,
                    now,
                ),
            )
        logger.info(f"Conflict on {collection}/{record_key}: server at v{server_version}")
        return conflict_id

    def _refresh_conflict(
        self, conn: sqlite3.Connection, collection: str, record: Dict[str, Any]
    ) -> bool:
        """Move an open conflict's server copy forward to a newer pulled record."""
        version = record.get("version")
        if isinstance(version, bool) or not isinstance(version, int):
            return False
        cursor = conn.execute(
            """UPDATE sync_conflicts SET server_record = ?, server_version = ?
               WHERE collection = ? AND record_key = ? AND resolution IS NULL
                 AND server_version < ?""",
            (self._to_json(record), version, collection, record["id"], version),
        )
        if cursor.rowcount:
            logger.debug(f"Conflict on {collection}/{record['id']} now against v{version}")
        return cursor.rowcount > 0

    def _row_to_conflict(self, row: sqlite3.Row) -> SyncConflict:
        return SyncConflict(
            id=row["id"],
            collection=row["collection"],
            record_key=row["record_key"],
            mutation_ids=self._from_json(row["mutation_ids"]) or [],
            local_payload=self._from_json(row["local_payload"]) or {},
            server_record=self._from_json(row["server_record"]) or {},
            server_version=row["server_version"],
            detected_at=parse_datetime(row["detected_at"]),
            resolution=row["resolution"],
            resolved_at=parse_datetime(row["resolved_at"]),
        )

    def get_conflicts(self, include_resolved: bool = False) -> List[SyncConflict]:
        query = "SELECT * FROM sync_conflicts"
        if not include_resolved:
            query += " WHERE resolution IS NULL"
        query += " ORDER BY detected_at"
        with self._connect() as conn:
            rows = conn.execute(query).fetchall()
        return [self._row_to_conflict(row) for row in rows]

    def resolve_conflict(self, conflict_id: str, keep: str) -> SyncConflict:
        """Resolve an open conflict.

        Args:
            conflict_id: Conflict to resolve
            keep: ``"server"`` drops the held mutations and stores the server
                record locally; ``"local"`` rebases the held mutations onto
                the server version so the next push overwrites it.

        Raises:
            ValueError: Unknown keep value, or conflict unknown/already resolved.
        """
        if keep not in (CONFLICT_KEEP_SERVER, CONFLICT_KEEP_LOCAL):
            raise ValueError(f"keep must be '{CONFLICT_KEEP_SERVER}' or '{CONFLICT_KEEP_LOCAL}'")

        now = utc_now()
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM sync_conflicts WHERE id = ?", (conflict_id,)).fetchone()
            if row is None:
                raise ValueError(f"Unknown conflict: {conflict_id}")
            if row["resolution"] is not None:
                raise ValueError(f"Conflict {conflict_id} is already resolved")

            conflict = self._row_to_conflict(row)
            held = conflict.mutation_ids
            placeholders = ",".join("?" * len(held))

            if keep == CONFLICT_KEEP_SERVER:
                if held:
                    conn.execute(
                        f"DELETE FROM pending_sync WHERE id IN ({placeholders})", held
                    )
                if conflict.server_record.get("id"):
                    self._upsert_server_record(
                        conn, conflict.collection, conflict.server_record, force=True
                    )
            else:
                entries = (
                    conn.execute(
                        f"SELECT * FROM pending_sync WHERE id IN ({placeholders})", held
                    ).fetchall()
                    if held
                    else []
                )
                for entry in entries:
                    payload = self._from_json(entry["payload"]) or {}
                    payload["version"] = conflict.server_version
                    conn.execute(
                        """UPDATE pending_sync
                           SET payload = ?, status = ?, retry_count = 0, last_error = NULL
                           WHERE id = ?""",
                        (self._to_json(payload), MUTATION_PENDING, entry["id"]),
                    )
                conn.execute(
                    """UPDATE records SET version = ?
                       WHERE collection = ? AND record_key = ?""",
                    (conflict.server_version, conflict.collection, conflict.record_key),
                )

            conn.execute(
                "UPDATE sync_conflicts SET resolution = ?, resolved_at = ? WHERE id = ?",
                (keep, now, conflict_id),
            )

        conflict.resolution = keep
        conflict.resolved_at = parse_datetime(now)
        logger.info(f"Resolved conflict {conflict_id} keeping {keep}")
        return conflict

    # === Checkpoints ===

    def get_checkpoint(self, collection: str) -> int:
        """Highest server version received for a collection (0 if never synced)."""
        self._check_collection(collection)
        with self._connect() as conn:
            row = conn.execute(
                "SELECT last_sync_version FROM sync_checkpoints WHERE collection = ?",
                (collection,),
            ).fetchone()
        return row["last_sync_version"] if row else 0

    def get_checkpoints(self) -> Dict[str, int]:
        """Checkpoints for every syncable collection, defaulting to 0."""
        checkpoints = {collection: 0 for collection in SYNCABLE_COLLECTIONS}
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT collection, last_sync_version FROM sync_checkpoints"
            ).fetchall()
        for row in rows:
            if row["collection"] in checkpoints:
                checkpoints[row["collection"]] = row["last_sync_version"]
        return checkpoints

    def set_checkpoint(self, collection: str, version: int) -> None:
        self._check_collection(collection)
        if not isinstance(version, int) or version < 0:
            raise ValueError(f"Checkpoint must be a non-negative integer, got {version!r}")
        with self._connect() as conn:
            conn.execute(
                """INSERT INTO sync_checkpoints (collection, last_sync_version, updated_at)
                   VALUES (?, ?, ?)
                   ON CONFLICT(collection) DO UPDATE SET
                       last_sync_version = excluded.last_sync_version,
                       updated_at = excluded.updated_at""",
                (collection, version, utc_now()),
            )

    def reset_checkpoints(self) -> int:
        """Forget all checkpoints so the next pull fetches everything."""
        with self._connect() as conn:
            return conn.execute("DELETE FROM sync_checkpoints").rowcount

    # === Sync metadata ===

    def _get_sync_meta(self, key: str) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute("SELECT value FROM sync_meta WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def _set_sync_meta(self, key: str, value: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO sync_meta (key, value, updated_at) VALUES (?, ?, ?)",
                (key, value, utc_now()),
            )

    def get_last_sync_time(self):
        value = self._get_sync_meta("last_sync_time")
        return parse_datetime(value) if value else None

    def set_last_sync_time(self, when: Optional[str] = None) -> None:
        self._set_sync_meta("last_sync_time", when or utc_now())

    def get_sync_status(self) -> Dict[str, Any]:
        """Queue and checkpoint summary for status displays."""
        with self._connect() as conn:
            status_rows = conn.execute(
                "SELECT status, COUNT(*) AS count FROM pending_sync GROUP BY status"
            ).fetchall()
            by_status = {row["status"]: row["count"] for row in status_rows}
            collection_rows = conn.execute(
                """SELECT collection, COUNT(*) AS count FROM pending_sync
                   WHERE status = ? GROUP BY collection""",
                (MUTATION_PENDING,),
            ).fetchall()
            open_conflicts = conn.execute(
                "SELECT COUNT(*) FROM sync_conflicts WHERE resolution IS NULL"
            ).fetchone()[0]

        last_sync = self.get_last_sync_time()
        return {
            "pending": by_status.get(MUTATION_PENDING, 0),
            "held_conflicts": by_status.get(MUTATION_CONFLICT, 0),
            "dead_letter": by_status.get(MUTATION_DEAD_LETTER, 0),
            "open_conflicts": open_conflicts,
            "by_collection": {row["collection"]: row["count"] for row in collection_rows},
            "checkpoints": self.get_checkpoints(),
            "last_sync_at": last_sync.isoformat() if last_sync else None,
        }
