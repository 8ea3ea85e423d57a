"""Vocabulary and schemas shared by the GreenKeep sync server and client."""

from .constants import (
    ROLE_HIERARCHY,
    SERVER_MANAGED_FIELDS,
    SYNCABLE_COLLECTIONS,
    TEMP_ID_PREFIX,
    MutationOperation,
    RejectReason,
    Role,
    is_syncable_collection,
)
from .validation import COLLECTION_SCHEMAS, RECORD_ID_PATTERN, get_schema, validate_record

__all__ = [
    "COLLECTION_SCHEMAS",
    "RECORD_ID_PATTERN",
    "ROLE_HIERARCHY",
    "SERVER_MANAGED_FIELDS",
    "SYNCABLE_COLLECTIONS",
    "TEMP_ID_PREFIX",
    "MutationOperation",
    "RejectReason",
    "Role",
    "get_schema",
    "is_syncable_collection",
    "validate_record",
]
