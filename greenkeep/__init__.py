"""
GreenKeep - offline-first sync client for golf course maintenance teams.

Field staff edit zones, tasks, equipment and inventory without coverage;
changes are queued locally and reconciled with the tenant's server when
connectivity returns.
"""

from .storage import OfflineCache
from .sync import SyncClient, SyncOrchestrator, SyncTransportError

try:
    from importlib.metadata import version

    __version__ = version("greenkeep")
except Exception:
    __version__ = "0.0.0"

__all__ = ["OfflineCache", "SyncClient", "SyncOrchestrator", "SyncTransportError"]
