"""Record commands for GreenKeep CLI.

Edits go to the offline cache and are queued for the next sync.
"""

import json
import sys
from typing import TYPE_CHECKING, Any, Dict

from pydantic import ValidationError

from greenkeep.shared import SYNCABLE_COLLECTIONS

if TYPE_CHECKING:
    from greenkeep.storage import OfflineCache


def _parse_data(raw: str) -> Dict[str, Any]:
    try:
        data = json.loads(raw) if raw else {}
    except json.JSONDecodeError as e:
        raise ValueError(f"--data is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("--data must be a JSON object")
    return data


def _summary(record: Dict[str, Any]) -> str:
    label = record.get("name") or record.get("title") or record.get("user_id") or ""
    key = record.get("id") or record.get("temp_id")
    version = record.get("version")
    state = f"v{version}" if version else "unsynced"
    deleted = " [deleted]" if record.get("deleted") else ""
    return f"{key}  {state:<9} {label}{deleted}"


def cmd_record(args, cache: "OfflineCache"):
    """Handle record subcommands."""
    collection = args.collection

    if args.record_action == "list":
        records = cache.read_all(collection, include_deleted=args.include_deleted)
        if args.json:
            print(json.dumps(records, indent=2, default=str))
            return
        if not records:
            print(f"No {collection} cached")
            return
        print(f"{len(records)} {collection}:")
        for record in records:
            print(f"  {_summary(record)}")
        return

    try:
        if args.record_action == "create":
            mutation = cache.enqueue_mutation(collection, "create", _parse_data(args.data))
            print(f"✓ Created {collection}/{mutation.record_key} (queued for sync)")

        elif args.record_action == "update":
            data = _parse_data(args.data)
            data["id"] = args.record_id
            mutation = cache.enqueue_mutation(collection, "update", data)
            print(f"✓ Updated {collection}/{mutation.record_key} (queued for sync)")

        elif args.record_action == "delete":
            mutation = cache.enqueue_mutation(collection, "delete", {"id": args.record_id})
            print(f"✓ Deleted {collection}/{mutation.record_key} (queued for sync)")

    except ValidationError as e:
        print(f"✗ Invalid {collection} record:")
        for err in e.errors():
            field = ".".join(str(part) for part in err["loc"])
            print(f"  {field}: {err['msg']}")
        sys.exit(1)


def add_record_parser(subparsers):
    p_record = subparsers.add_parser("record", help="Read and edit cached records")
    record_sub = p_record.add_subparsers(dest="record_action", required=True)

    record_list = record_sub.add_parser("list", help="List cached records")
    record_list.add_argument("collection", choices=SYNCABLE_COLLECTIONS)
    record_list.add_argument("--include-deleted", action="store_true")
    record_list.add_argument("--json", "-j", action="store_true")

    record_create = record_sub.add_parser("create", help="Create a record offline")
    record_create.add_argument("collection", choices=SYNCABLE_COLLECTIONS)
    record_create.add_argument("--data", "-d", required=True, help="Record fields as JSON")

    record_update = record_sub.add_parser("update", help="Update a record offline")
    record_update.add_argument("collection", choices=SYNCABLE_COLLECTIONS)
    record_update.add_argument("record_id", help="Server ID or temp ID")
    record_update.add_argument("--data", "-d", required=True, help="Changed fields as JSON")

    record_delete = record_sub.add_parser("delete", help="Soft-delete a record offline")
    record_delete.add_argument("collection", choices=SYNCABLE_COLLECTIONS)
    record_delete.add_argument("record_id", help="Server ID or temp ID")
    return p_record
