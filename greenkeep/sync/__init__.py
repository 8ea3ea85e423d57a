"""Client-side sync: HTTP transport and the push/pull orchestrator."""

from .orchestrator import DEFAULT_AUTO_SYNC_INTERVAL, SyncOrchestrator, coalesce_mutations
from .transport import SyncClient, SyncTransportError, load_credentials

__all__ = [
    "DEFAULT_AUTO_SYNC_INTERVAL",
    "SyncClient",
    "SyncOrchestrator",
    "SyncTransportError",
    "coalesce_mutations",
    "load_credentials",
]
