"""Small helpers shared across the greenkeep client."""

import logging
import os
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


def get_greenkeep_home() -> Path:
    """Return the client data directory (``~/.greenkeep`` by default).

    Overridable with ``GREENKEEP_DATA_DIR``. The directory is created if it
    does not exist.
    """
    override = os.environ.get("GREENKEEP_DATA_DIR")
    home = Path(override).expanduser() if override else Path.home() / ".greenkeep"
    home.mkdir(parents=True, exist_ok=True)
    return home


def default_db_path() -> Path:
    """Default location of the offline cache database."""
    return get_greenkeep_home() / "offline.db"


def validate_backend_url(url: str, *, allow_localhost_http: bool = True) -> Optional[str]:
    """Validate a backend URL before sending credentials to it.

    Rejects non-http/https schemes, URLs with no host, and remote HTTP
    endpoints (only localhost/127.0.0.1 are allowed over plaintext HTTP).

    Returns:
        The URL unchanged if valid, or ``None`` if rejected.
    """
    if not url:
        return None

    parsed = urlparse(url)
    if parsed.scheme not in {"https", "http"}:
        logger.warning("Invalid backend_url scheme; only http/https allowed.")
        return None
    if not parsed.netloc:
        logger.warning("Invalid backend_url; missing host.")
        return None
    if parsed.scheme == "http":
        if not allow_localhost_http:
            logger.warning("HTTP not allowed in this context.")
            return None
        host = parsed.hostname or ""
        if host not in {"localhost", "127.0.0.1"}:
            logger.warning("Refusing non-local http backend_url for security.")
            return None
    return url
