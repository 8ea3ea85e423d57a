"""
Shared client-side types for greenkeep.

Dataclasses passed between the offline cache, the sync orchestrator, the
transport and the CLI.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

# === Shared Utility Functions ===


def utc_now() -> str:
    """Get current timestamp as ISO string in UTC."""
    return datetime.now(timezone.utc).isoformat()


def parse_datetime(s: Optional[str]) -> Optional[datetime]:
    """Parse ISO datetime string, returning None for empty or invalid input."""
    if not s:
        return None
    try:
        return datetime.fromisoformat(s.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None


# === Queue states ===

# pending_sync.status values
MUTATION_PENDING = "pending"
MUTATION_CONFLICT = "conflict"  # held until the user resolves it
MUTATION_DEAD_LETTER = "dead_letter"  # exceeded max retries

MAX_SYNC_RETRIES = 5


class SyncState(str, Enum):
    """Orchestrator state. There is no terminal failure state."""

    IDLE = "idle"
    SYNCING = "syncing"


@dataclass
class PendingMutation:
    """A locally queued change that the server has not confirmed yet."""

    id: int
    collection: str
    operation: str  # 'create', 'update', 'delete'
    record_key: str  # server id, or temp_id for records never synced
    payload: Dict[str, Any] = field(default_factory=dict)
    temp_id: Optional[str] = None
    enqueued_at: Optional[datetime] = None
    status: str = MUTATION_PENDING
    retry_count: int = 0
    last_error: Optional[str] = None

    @property
    def record_id(self) -> Optional[str]:
        """Server id of the target record, if it has one."""
        return self.payload.get("id")


@dataclass
class SyncConflict:
    """A push the server rejected because it holds a newer version."""

    id: str
    collection: str
    record_key: str
    mutation_ids: List[int]
    local_payload: Dict[str, Any]
    server_record: Dict[str, Any]
    server_version: int
    detected_at: Optional[datetime] = None
    resolution: Optional[str] = None  # 'server' or 'local' once resolved
    resolved_at: Optional[datetime] = None

    @property
    def resolved(self) -> bool:
        return self.resolution is not None


@dataclass
class SyncReport:
    """Outcome of one sync cycle."""

    skipped: bool = False  # another cycle was already running
    pushed: int = 0  # records sent to the server
    accepted: int = 0
    rejected: int = 0
    conflicts: int = 0
    pulled: int = 0
    checkpoints: Dict[str, int] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.skipped and len(self.errors) == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "skipped": self.skipped,
            "success": self.success,
            "pushed": self.pushed,
            "accepted": self.accepted,
            "rejected": self.rejected,
            "conflicts": self.conflicts,
            "pulled": self.pulled,
            "checkpoints": dict(self.checkpoints),
            "errors": list(self.errors),
        }
