"""Pydantic models for API requests and responses."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from greenkeep.shared import RejectReason

# =============================================================================
# Sync Models
# =============================================================================

# Records travel as plain dicts; each collection's schema lives in
# greenkeep.shared.validation and is applied per record by the push handler.
Record = dict[str, Any]


class SyncPullRequest(BaseModel):
    """Request to pull records newer than the client's checkpoints."""
    last_sync_versions: dict[str, int] = Field(default_factory=dict)


class SyncPullResponse(BaseModel):
    """Records changed since the given checkpoints, grouped by collection."""
    changes: dict[str, list[Record]]
    server_time: datetime


class SyncPushRequest(BaseModel):
    """Request to push locally created or modified records.

    Items are checked one by one by the push handler, so a non-object entry
    is rejected on its own instead of failing the whole request.
    """
    changes: dict[str, list[Any]] = Field(default_factory=dict)


class AcceptedRecord(BaseModel):
    """A pushed record the server stored."""
    id: str
    version: int
    temp_id: str | None = None


class RejectedRecord(BaseModel):
    """A pushed record the server refused, with the reason."""
    id: str | None = None
    temp_id: str | None = None
    reason: RejectReason
    message: str | None = None
    server_version: int | None = None
    server_record: Record | None = None  # Present on conflict


class SyncPushResponse(BaseModel):
    """Per-collection results of a push."""
    accepted: dict[str, list[AcceptedRecord]]
    rejected: dict[str, list[RejectedRecord]]
    server_time: datetime


# =============================================================================
# Tenant Models
# =============================================================================

class Tenant(BaseModel):
    """A tenant (golf course) from the global tenant directory."""
    id: str
    slug: str = Field(..., min_length=1, max_length=64, pattern=r"^[a-z0-9-]+$")
    name: str
    is_active: bool = True
