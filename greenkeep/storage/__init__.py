"""GreenKeep client storage.

Local-first storage using SQLite: a mirror of the syncable collections,
the queue of unconfirmed mutations, sync checkpoints and held conflicts.
"""

from .offline_cache import CONFLICT_KEEP_LOCAL, CONFLICT_KEEP_SERVER, OfflineCache
from .schema import SCHEMA_VERSION, init_db

__all__ = [
    "CONFLICT_KEEP_LOCAL",
    "CONFLICT_KEEP_SERVER",
    "OfflineCache",
    "SCHEMA_VERSION",
    "init_db",
]
