"""Rate limiting for the GreenKeep sync server.

Sync endpoints are keyed by client IP. Forwarded headers are honoured only
when the direct peer is a trusted proxy, so clients cannot pick their own
rate-limit bucket by spoofing X-Forwarded-For.
"""

import ipaddress
import os
from functools import lru_cache

from slowapi import Limiter
from slowapi.util import get_remote_address

from .logging_config import get_logger

logger = get_logger("greenkeep.rate_limit")

# Override with TRUSTED_PROXY_CIDRS (comma-separated CIDRs)
_DEFAULT_TRUSTED_CIDRS = (
    "10.0.0.0/8",
    "172.16.0.0/12",
    "192.168.0.0/16",
    "127.0.0.0/8",
    "::1/128",
)


@lru_cache
def trusted_networks() -> tuple:
    """Trusted proxy networks from the environment, or the private-range defaults."""
    raw = os.environ.get("TRUSTED_PROXY_CIDRS", "")
    cidrs = [s.strip() for s in raw.split(",") if s.strip()] or list(_DEFAULT_TRUSTED_CIDRS)
    networks = []
    for cidr in cidrs:
        try:
            networks.append(ipaddress.ip_network(cidr, strict=False))
        except ValueError:
            logger.warning(f"Ignoring invalid trusted proxy CIDR: {cidr}")
    return tuple(networks)


def is_trusted_proxy(ip_str: str) -> bool:
    try:
        addr = ipaddress.ip_address(ip_str)
    except ValueError:
        return False
    return any(addr in network for network in trusted_networks())


def get_client_ip(request) -> str:
    """Client IP for rate limiting.

    Uses the leftmost X-Forwarded-For entry when the direct peer is a
    trusted proxy, the peer address otherwise.
    """
    direct_ip = get_remote_address(request)
    if is_trusted_proxy(direct_ip):
        forwarded = (request.headers.get("x-forwarded-for") or "").split(",")[0].strip()
        if forwarded:
            return forwarded
    return direct_ip


limiter = Limiter(key_func=get_client_ip)
