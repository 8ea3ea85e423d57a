"""Server side of the sync protocol: versioned storage and the push/pull handlers."""

from .service import GENERIC_ERROR_MESSAGE, PushResult, pull_changes, push_changes
from .store import RecordStore

__all__ = [
    "GENERIC_ERROR_MESSAGE",
    "PushResult",
    "RecordStore",
    "pull_changes",
    "push_changes",
]
