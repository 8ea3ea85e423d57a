"""Sync routes: versioned pull and push for a tenant's records."""

from datetime import datetime, timezone

from fastapi import APIRouter, Request

from ..auth import CurrentUser
from ..config import get_settings
from ..logging_config import get_logger
from ..models import SyncPullRequest, SyncPullResponse, SyncPushRequest, SyncPushResponse
from ..rate_limit import limiter
from ..sync import pull_changes, push_changes
from ..tenancy import CurrentTenant

logger = get_logger("greenkeep.sync")
router = APIRouter(prefix="/sync", tags=["sync"])


def _sync_rate_limit() -> str:
    return get_settings().sync_rate_limit


@router.post("/pull", response_model=SyncPullResponse)
@limiter.limit(_sync_rate_limit)
def pull(
    request: Request,
    body: SyncPullRequest,
    auth: CurrentUser,
    tenant: CurrentTenant,
):
    """
    Pull records changed since the client's checkpoints.

    - Missing or negative checkpoints mean "from the beginning"
    - Unknown collection names are ignored
    - Soft-deleted records are included
    """
    log_prefix = f"{tenant.tenant.slug}/{auth.user_id}"
    logger.info(f"PULL | {log_prefix} | checkpoints={body.last_sync_versions}")

    changes = pull_changes(tenant.store, body.last_sync_versions)

    total = sum(len(records) for records in changes.values())
    logger.info(f"PULL COMPLETE | {log_prefix} | {total} records")
    return SyncPullResponse(changes=changes, server_time=datetime.now(timezone.utc))


@router.post("/push", response_model=SyncPushResponse, response_model_exclude_none=True)
@limiter.limit(_sync_rate_limit)
def push(
    request: Request,
    body: SyncPushRequest,
    auth: CurrentUser,
    tenant: CurrentTenant,
):
    """
    Push locally created or modified records.

    - No ``id``: created at version 1, the client's ``temp_id`` is echoed back
    - ``id`` + ``version``: applied if the server is not ahead, else ``conflict``

    Every record is accepted or rejected on its own; one bad record never
    fails the request.
    """
    log_prefix = f"{tenant.tenant.slug}/{auth.user_id}"
    total = sum(len(records) for records in body.changes.values())
    logger.info(f"PUSH | {log_prefix} | {total} records")

    result = push_changes(tenant.store, body.changes, log_prefix=log_prefix)

    logger.info(
        f"PUSH COMPLETE | {log_prefix} | accepted={result.accepted_count} "
        f"rejected={result.rejected_count}"
    )
    return SyncPushResponse(
        accepted=result.accepted,
        rejected=result.rejected,
        server_time=datetime.now(timezone.utc),
    )
