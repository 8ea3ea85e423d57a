"""Database schema for the greenkeep offline cache.

Contains:
- Schema DDL (SCHEMA)
- Schema version tracking (SCHEMA_VERSION)
- Database initialization (init_db)
"""

import logging
import sqlite3

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

SCHEMA = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

-- Local mirror of every syncable collection.
-- record_key is the server id once known, the temp_id before that.
CREATE TABLE IF NOT EXISTS records (
    collection TEXT NOT NULL,
    record_key TEXT NOT NULL,
    id TEXT,                     -- server id, NULL until first push is accepted
    temp_id TEXT,                -- client id for records created offline
    version INTEGER,             -- last server version seen, NULL if never synced
    deleted INTEGER DEFAULT 0,
    data TEXT NOT NULL,          -- JSON entity fields (no id/version/temp_id)
    local_updated_at TEXT,
    synced_at TEXT,
    PRIMARY KEY (collection, record_key)
);
CREATE INDEX IF NOT EXISTS idx_records_id ON records(collection, id);

-- Mutations waiting for server confirmation, replayed in id order
CREATE TABLE IF NOT EXISTS pending_sync (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    collection TEXT NOT NULL,
    operation TEXT NOT NULL,     -- create, update, delete
    record_key TEXT NOT NULL,
    temp_id TEXT,
    payload TEXT NOT NULL,       -- JSON changes sent on push
    enqueued_at TEXT NOT NULL,
    status TEXT DEFAULT 'pending',  -- pending, conflict, dead_letter
    retry_count INTEGER DEFAULT 0,
    last_error TEXT,
    last_attempt_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_pending_sync_status ON pending_sync(status);
CREATE INDEX IF NOT EXISTS idx_pending_sync_record ON pending_sync(collection, record_key);

-- Highest server version received per collection
CREATE TABLE IF NOT EXISTS sync_checkpoints (
    collection TEXT PRIMARY KEY,
    last_sync_version INTEGER NOT NULL DEFAULT 0,
    updated_at TEXT NOT NULL
);

-- Sync metadata (last sync time and similar key/value state)
CREATE TABLE IF NOT EXISTS sync_meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

-- Conflicts reported by the server, kept for user resolution
CREATE TABLE IF NOT EXISTS sync_conflicts (
    id TEXT PRIMARY KEY,
    collection TEXT NOT NULL,
    record_key TEXT NOT NULL,
    mutation_ids TEXT NOT NULL,    -- JSON list of pending_sync ids
    local_payload TEXT NOT NULL,   -- JSON of what we tried to push
    server_record TEXT NOT NULL,   -- JSON of the server's current record
    server_version INTEGER NOT NULL,
    detected_at TEXT NOT NULL,
    resolution TEXT,               -- server or local, NULL while open
    resolved_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_sync_conflicts_record ON sync_conflicts(collection, record_key);
"""


def init_db(conn: sqlite3.Connection) -> None:
    """Create tables if needed and record the schema version."""
    conn.executescript(SCHEMA)
    row = conn.execute("SELECT MAX(version) AS version FROM schema_version").fetchone()
    current = row[0] if row else None
    if current is None:
        conn.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
        logger.debug(f"Initialized offline cache schema v{SCHEMA_VERSION}")
    elif current > SCHEMA_VERSION:
        logger.warning(
            f"Offline cache schema v{current} is newer than this client (v{SCHEMA_VERSION})"
        )
