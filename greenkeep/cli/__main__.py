"""
GreenKeep CLI - offline-first client for the GreenKeep sync server.

Usage:
    greenkeep record list COLLECTION [--json]
    greenkeep record create COLLECTION --data JSON
    greenkeep record update COLLECTION ID --data JSON
    greenkeep record delete COLLECTION ID
    greenkeep sync run [--full] [--json]
    greenkeep sync status [--json]
    greenkeep sync pending | conflicts [--json]
    greenkeep sync resolve CONFLICT_ID --keep server|local
    greenkeep sync requeue [--id N]...
"""

import argparse
import logging
import os
import sys

from greenkeep.cli.commands.record import add_record_parser, cmd_record
from greenkeep.cli.commands.sync import add_sync_parser, cmd_sync
from greenkeep.logging_config import setup_greenkeep_logging
from greenkeep.storage import OfflineCache

logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="greenkeep",
        description="Offline-first client for golf course maintenance data",
    )
    parser.add_argument("--db", help="Offline cache database path", default=None)
    parser.add_argument(
        "--tenant", "-t", help="Tenant ID (superadmin only)", default=None
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("GREENKEEP_LOG_LEVEL", "INFO"),
        help="Log level for ~/.greenkeep/logs",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    add_record_parser(subparsers)
    add_sync_parser(subparsers)
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    tenant_id = args.tenant or os.environ.get("GREENKEEP_TENANT_ID") or "default"
    try:
        setup_greenkeep_logging(tenant_id=tenant_id, level=args.log_level)
        cache = OfflineCache(db_path=args.db)
    except (OSError, ValueError) as e:
        logger.error(f"Failed to open offline cache: {e}")
        sys.exit(1)

    try:
        if args.command == "record":
            cmd_record(args, cache)
        elif args.command == "sync":
            cmd_sync(args, cache)
    except (ValueError, TypeError) as e:
        logger.error(f"Input validation error: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Command failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
