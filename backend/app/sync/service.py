"""Pull and push handlers for the sync protocol.

Both operate on a single tenant's RecordStore and know nothing about HTTP.

Push applies records one at a time. A failing record is reported in
``rejected`` and never stops the rest of the batch. Conflicts are detected
per record by version: last writer wins at record granularity, there is no
field-level merge.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from greenkeep.shared import (
    SERVER_MANAGED_FIELDS,
    SYNCABLE_COLLECTIONS,
    RejectReason,
    is_syncable_collection,
    validate_record,
)

from ..logging_config import log_sync_operation
from .store import RecordStore

logger = logging.getLogger("greenkeep.sync")

GENERIC_ERROR_MESSAGE = "Internal error: operation failed"


@dataclass
class PushResult:
    accepted: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    rejected: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)

    @property
    def accepted_count(self) -> int:
        return sum(len(v) for v in self.accepted.values())

    @property
    def rejected_count(self) -> int:
        return sum(len(v) for v in self.rejected.values())


def _checkpoint(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return 0
    return value


def pull_changes(store: RecordStore, last_sync_versions: Dict[str, Any]) -> Dict[str, List[Dict]]:
    """Return records newer than each collection's checkpoint.

    Missing or negative checkpoints count as 0 and unknown collection names
    are ignored. Collections with nothing new are left out. Soft-deleted
    records are included so clients learn about deletions.
    """
    last_sync_versions = last_sync_versions or {}
    changes = {}
    for collection in SYNCABLE_COLLECTIONS:
        since = _checkpoint(last_sync_versions.get(collection, 0))
        records = store.changes_since(collection, since)
        if records:
            changes[collection] = records
    return changes


def _format_validation_error(e: ValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "record"
        parts.append(f"{loc}: {err['msg']}")
    return "Validation failed: " + "; ".join(parts)


def _client_fields(record: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in record.items() if k not in SERVER_MANAGED_FIELDS}


def _ref(record: Any, key: str) -> Optional[str]:
    """A non-empty string identifier from the record, else None."""
    if not isinstance(record, dict):
        return None
    value = record.get(key)
    if isinstance(value, str) and value:
        return value
    return None


def _reject(
    record: Any,
    reason: RejectReason,
    message: Optional[str] = None,
    server_record: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    # Only string identifiers are echoed back
    entry: Dict[str, Any] = {"reason": reason.value}
    if _ref(record, "id"):
        entry["id"] = record["id"]
    if _ref(record, "temp_id"):
        entry["temp_id"] = record["temp_id"]
    if message:
        entry["message"] = message
    if server_record is not None:
        entry["server_version"] = server_record["version"]
        entry["server_record"] = server_record
    return entry


def _push_record(store: RecordStore, collection: str, record: Dict[str, Any]) -> tuple:
    """Apply one pushed record. Returns ``(accepted_entry, rejected_entry)``."""
    record_id = record.get("id")
    temp_id = record.get("temp_id")
    if record_id is not None and not isinstance(record_id, str):
        return None, _reject(record, RejectReason.ERROR, "id must be a string")
    if temp_id is not None and not isinstance(temp_id, str):
        return None, _reject(record, RejectReason.ERROR, "temp_id must be a string")
    fields = _client_fields(record)

    if not record_id:
        data = validate_record(collection, fields)
        created = store.create(collection, data)
        accepted = {"id": created["id"], "version": created["version"]}
        if temp_id:
            accepted["temp_id"] = temp_id
        return accepted, None

    current = store.get(collection, record_id)
    if current is None:
        return None, _reject(record, RejectReason.NOT_FOUND, "Record not found")

    client_version = record.get("version")
    if isinstance(client_version, bool) or not isinstance(client_version, int):
        return None, _reject(record, RejectReason.ERROR, "Update requires an integer version")

    if current["version"] > client_version:
        return None, _reject(
            record, RejectReason.CONFLICT, "Record was modified on the server", current
        )

    merged = {**_client_fields(current), **fields}
    data = validate_record(collection, merged)
    updated = store.update_if_version(collection, record_id, current["version"], data)
    if updated is None:
        winner = store.get(collection, record_id)
        if winner is None:
            return None, _reject(record, RejectReason.NOT_FOUND, "Record not found")
        return None, _reject(
            record, RejectReason.CONFLICT, "Record was modified on the server", winner
        )
    return {"id": updated["id"], "version": updated["version"]}, None


def push_changes(
    store: RecordStore, changes: Dict[str, List[Any]], log_prefix: str = "-"
) -> PushResult:
    """Apply pushed records collection by collection, in request order."""
    result = PushResult()
    for collection, records in (changes or {}).items():
        accepted = result.accepted.setdefault(collection, [])
        rejected = result.rejected.setdefault(collection, [])

        if not is_syncable_collection(collection):
            for record in records:
                rejected.append(
                    _reject(record, RejectReason.ERROR, f"Unknown collection: {collection}")
                )
            log_sync_operation(
                log_prefix, "push", collection, None, False, f"unknown collection, {len(records)} rejected"
            )
            continue

        for record in records:
            if not isinstance(record, dict):
                rejected.append(_reject(record, RejectReason.ERROR, "Record must be an object"))
                log_sync_operation(
                    log_prefix, "push", collection, None, False, "error: Record must be an object"
                )
                continue

            operation = "update" if record.get("id") else "create"
            record_ref = _ref(record, "id") or _ref(record, "temp_id")
            try:
                ok, err = _push_record(store, collection, record)
            except ValidationError as e:
                ok, err = None, _reject(record, RejectReason.ERROR, _format_validation_error(e))
            except ValueError as e:
                ok, err = None, _reject(record, RejectReason.ERROR, str(e))
            except Exception as e:
                # Log full error server-side; return generic message to the client
                logger.error(
                    f"Store error during {operation} on {collection}/{record_ref}: {e}",
                    exc_info=True,
                )
                ok, err = None, _reject(record, RejectReason.ERROR, GENERIC_ERROR_MESSAGE)

            if ok is not None:
                accepted.append(ok)
                log_sync_operation(log_prefix, operation, collection, ok["id"], True)
            else:
                rejected.append(err)
                log_sync_operation(
                    log_prefix,
                    operation,
                    collection,
                    record_ref,
                    False,
                    f"{err['reason']}: {err.get('message', '')}",
                )
    return result
