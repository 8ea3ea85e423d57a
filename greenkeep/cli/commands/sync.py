"""Sync commands for GreenKeep CLI."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from greenkeep.storage import CONFLICT_KEEP_LOCAL, CONFLICT_KEEP_SERVER
from greenkeep.sync import SyncClient, SyncOrchestrator

if TYPE_CHECKING:
    from greenkeep.storage import OfflineCache

logger = logging.getLogger(__name__)


def _format_elapsed(when: datetime) -> str:
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    seconds = (datetime.now(timezone.utc) - when).total_seconds()
    if seconds < 60:
        return "just now"
    if seconds < 3600:
        return f"{int(seconds / 60)} minutes ago"
    if seconds < 86400:
        return f"{int(seconds / 3600)} hours ago"
    return f"{int(seconds / 86400)} days ago"


def _get_client(args) -> Optional[SyncClient]:
    return SyncClient.from_credentials(tenant_id=getattr(args, "tenant", None))


def _require_client(args) -> SyncClient:
    client = _get_client(args)
    if client is None:
        print("✗ Backend not configured")
        print("  Set GREENKEEP_BACKEND_URL and GREENKEEP_AUTH_TOKEN")
        print("  or write ~/.greenkeep/credentials.json")
        sys.exit(1)
    return client


def cmd_sync(args, cache: "OfflineCache"):
    """Handle sync subcommands."""
    if args.sync_action == "run":
        client = _require_client(args)
        try:
            orchestrator = SyncOrchestrator(cache, client)
            report = orchestrator.sync(full=getattr(args, "full", False))
        finally:
            client.close()

        if args.json:
            print(json.dumps(report.to_dict(), indent=2, default=str))
        else:
            icon = "✓" if report.success else "⚠"
            print(f"{icon} Sync finished")
            print(f"  ↑ Pushed: {report.pushed} (accepted {report.accepted}, rejected {report.rejected})")
            print(f"  ↓ Pulled: {report.pulled}")
            if report.conflicts:
                print(f"  ⚠ {report.conflicts} conflict(s); run `greenkeep sync conflicts`")
            for error in report.errors[:5]:
                print(f"  ✗ {error}")
        if not report.success:
            sys.exit(1)

    elif args.sync_action == "status":
        status = cache.get_sync_status()
        client = _get_client(args)
        if client is None:
            health = {"healthy": False, "error": "No backend configured"}
        else:
            try:
                health = client.health_check()
            finally:
                client.close()

        if args.json:
            status["backend_connected"] = health["healthy"]
            status["connection_status"] = health.get("error") or "Connected"
            print(json.dumps(status, indent=2, default=str))
            return

        print("Sync Status")
        print("=" * 50)
        conn_icon = "🟢" if health["healthy"] else "🔴"
        print(f"{conn_icon} Backend: {health.get('error') or 'Connected'}")
        pending = status["pending"]
        pending_icon = "🟢" if pending == 0 else "🟡" if pending < 10 else "🟠"
        print(f"{pending_icon} Pending mutations: {pending}")
        for collection, count in sorted(status["by_collection"].items()):
            print(f"   {collection}: {count}")
        if status["open_conflicts"]:
            print(f"⚠️  Open conflicts: {status['open_conflicts']}")
            print("   Run `greenkeep sync conflicts` to review them.")
        if status["dead_letter"]:
            print(f"🔴 Dead-lettered: {status['dead_letter']}")
            print("   These entries failed permanently. Use `greenkeep sync requeue` to retry.")
        if status["last_sync_at"]:
            last = datetime.fromisoformat(status["last_sync_at"])
            print(f"🕐 Last sync: {_format_elapsed(last)}")
        else:
            print("🕐 Last sync: Never")

    elif args.sync_action == "pending":
        mutations = cache.get_pending_mutations()
        if args.json:
            print(
                json.dumps(
                    [
                        {
                            "id": m.id,
                            "collection": m.collection,
                            "operation": m.operation,
                            "record_key": m.record_key,
                            "retry_count": m.retry_count,
                            "last_error": m.last_error,
                        }
                        for m in mutations
                    ],
                    indent=2,
                )
            )
            return
        if not mutations:
            print("✓ No pending changes")
            return
        print(f"{len(mutations)} pending change(s):")
        for m in mutations:
            retry = f" (retry {m.retry_count})" if m.retry_count else ""
            print(f"  #{m.id} {m.operation:<6} {m.collection}/{m.record_key}{retry}")

    elif args.sync_action == "conflicts":
        conflicts = cache.get_conflicts()
        if args.json:
            print(
                json.dumps(
                    [
                        {
                            "id": c.id,
                            "collection": c.collection,
                            "record_key": c.record_key,
                            "server_version": c.server_version,
                            "local_payload": c.local_payload,
                            "server_record": c.server_record,
                            "detected_at": c.detected_at,
                        }
                        for c in conflicts
                    ],
                    indent=2,
                    default=str,
                )
            )
            return
        if not conflicts:
            print("✓ No open conflicts")
            return
        print(f"{len(conflicts)} open conflict(s):")
        for c in conflicts:
            print(f"  {c.id[:8]}  {c.collection}/{c.record_key}  server v{c.server_version}")

    elif args.sync_action == "resolve":
        conflict_id = args.conflict_id
        matches = [c for c in cache.get_conflicts() if c.id.startswith(conflict_id)]
        if len(matches) == 1:
            conflict_id = matches[0].id
        elif len(matches) > 1:
            print(f"✗ Ambiguous conflict id prefix: {conflict_id}")
            sys.exit(1)
        conflict = cache.resolve_conflict(conflict_id, keep=args.keep)
        if args.keep == CONFLICT_KEEP_SERVER:
            print(f"✓ Kept server version of {conflict.collection}/{conflict.record_key}")
        else:
            print(f"✓ Kept local changes to {conflict.collection}/{conflict.record_key}")
            print("  They will be pushed on the next sync.")

    elif args.sync_action == "requeue":
        count = cache.requeue_dead_letters(args.ids or None)
        print(f"✓ Requeued {count} dead-lettered mutation(s)")


def add_sync_parser(subparsers):
    p_sync = subparsers.add_parser("sync", help="Sync with the GreenKeep server")
    sync_sub = p_sync.add_subparsers(dest="sync_action", required=True)

    sync_run = sync_sub.add_parser("run", help="Push local changes, then pull remote ones")
    sync_run.add_argument("--full", action="store_true", help="Reset checkpoints and pull everything")
    sync_run.add_argument("--json", "-j", action="store_true")

    sync_status = sync_sub.add_parser("status", help="Show queue and connection status")
    sync_status.add_argument("--json", "-j", action="store_true")

    sync_pending = sync_sub.add_parser("pending", help="List queued changes")
    sync_pending.add_argument("--json", "-j", action="store_true")

    sync_conflicts = sync_sub.add_parser("conflicts", help="List open conflicts")
    sync_conflicts.add_argument("--json", "-j", action="store_true")

    sync_resolve = sync_sub.add_parser("resolve", help="Resolve a conflict")
    sync_resolve.add_argument("conflict_id", help="Conflict ID (or unique prefix)")
    sync_resolve.add_argument(
        "--keep",
        choices=[CONFLICT_KEEP_SERVER, CONFLICT_KEEP_LOCAL],
        required=True,
        help="Which side wins",
    )

    sync_requeue = sync_sub.add_parser("requeue", help="Retry dead-lettered changes")
    sync_requeue.add_argument("--id", dest="ids", type=int, action="append", help="Mutation ID (repeatable)")
    return p_sync
