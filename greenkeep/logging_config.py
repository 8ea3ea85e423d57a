"""
Local logging for the greenkeep client.

Logs go to ``<data dir>/logs/``:
- ``local-YYYY-MM-DD.log``: the ``greenkeep`` logger hierarchy
- ``sync-events-YYYY-MM-DD.log``: one line per sync event, for auditing what
  a device pushed and pulled
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

from greenkeep.utils import get_greenkeep_home

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def get_log_dir() -> Path:
    log_dir = get_greenkeep_home() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def _today() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


def setup_greenkeep_logging(tenant_id: str = "default", level: str = "INFO") -> logging.Logger:
    """Configure the ``greenkeep`` logger with a daily file handler.

    Calling this more than once does not add duplicate handlers. At DEBUG a
    console handler is added as well.

    Args:
        tenant_id: Tenant the device syncs for (recorded in the first line)
        level: Log level name, case-insensitive; invalid names fall back to INFO
    """
    level_name = (level or "INFO").upper()
    if level_name not in _VALID_LEVELS:
        level_name = "INFO"

    logger = logging.getLogger("greenkeep")
    logger.setLevel(getattr(logging, level_name))

    log_file = get_log_dir() / f"local-{_today()}.log"
    has_file_handler = any(
        isinstance(h, logging.FileHandler) and Path(h.baseFilename) == log_file
        for h in logger.handlers
    )
    if not has_file_handler:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(file_handler)
        logger.debug(f"Logging initialised for tenant={tenant_id}")

    if level_name == "DEBUG":
        has_console = any(
            isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
            for h in logger.handlers
        )
        if not has_console:
            console = logging.StreamHandler()
            console.setFormatter(logging.Formatter(LOG_FORMAT))
            logger.addHandler(console)

    return logger


def log_sync_event(event_type: str, details: str, tenant_id: str = "default") -> None:
    """Append a single line to today's sync event log."""
    timestamp = datetime.now(timezone.utc).isoformat(timespec="seconds")
    event_file = get_log_dir() / f"sync-events-{_today()}.log"
    with open(event_file, "a", encoding="utf-8") as f:
        f.write(f"{timestamp} | {event_type} | tenant={tenant_id} | {details}\n")


def log_push(tenant_id: str, pushed: int, accepted: int, rejected: int) -> None:
    log_sync_event(
        "push",
        f"pushed={pushed}, accepted={accepted}, rejected={rejected}",
        tenant_id=tenant_id,
    )


def log_pull(tenant_id: str, pulled: int, checkpoints: Optional[Dict[str, int]] = None) -> None:
    checkpoint_str = ",".join(f"{k}:{v}" for k, v in sorted((checkpoints or {}).items()))
    log_sync_event("pull", f"pulled={pulled}, checkpoints={checkpoint_str}", tenant_id=tenant_id)


def log_sync_failure(tenant_id: str, error: str) -> None:
    log_sync_event("failure", f"error={error[:200]}", tenant_id=tenant_id)
