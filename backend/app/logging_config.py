"""Logging configuration for the GreenKeep sync server."""

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_configured = False


def setup_logging(debug: bool = False) -> None:
    """Configure the ``greenkeep`` logger tree to write to stdout.

    Safe to call more than once.
    """
    global _configured
    root = logging.getLogger("greenkeep")
    root.setLevel(logging.DEBUG if debug else logging.INFO)
    if _configured:
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Get a named logger (use ``greenkeep.<area>`` names)."""
    return logging.getLogger(name)


_sync_logger = logging.getLogger("greenkeep.sync.ops")


def log_sync_operation(
    prefix: str,
    operation: str,
    collection: str,
    record_id: str | None,
    success: bool,
    error: str | None = None,
) -> None:
    """One line per pushed record."""
    outcome = "OK" if success else f"FAIL ({error})"
    _sync_logger.info(f"{prefix} | {operation} | {collection}/{record_id or '-'} | {outcome}")


def log_tenant_event(event: str, tenant_id: str, details: str = "") -> None:
    """Tenant resolution events (store opened, suspended access, ...)."""
    line = f"{event} | tenant={tenant_id}"
    if details:
        line += f" | {details}"
    logging.getLogger("greenkeep.tenancy").info(line)
