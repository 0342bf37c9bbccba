"""
Rate limiting using slowapi.

Every route gets the default limit through SlowAPIMiddleware. AI cover
endpoints and billing mutations carry stricter per-endpoint limits since
each call can spend credits or hit a paid upstream model.

Limits are keyed by client IP. Redis is used for shared counters when
REDIS_URL is configured, otherwise counters live in process memory.
"""

import ipaddress
import logging
import re

from starlette.requests import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)

# Simple pattern to quickly reject obviously invalid IPs before parsing
_IP_LIKE = re.compile(r"^[\d.:a-fA-F]+$")


def _is_valid_ip(value: str) -> bool:
    """Return True if *value* looks like a valid IPv4 or IPv6 address."""
    if not _IP_LIKE.match(value):
        return False
    try:
        ipaddress.ip_address(value)
        return True
    except ValueError:
        return False


def _is_private_ip(value: str) -> bool:
    """Return True if *value* is a private, loopback, or link-local address.

    Private addresses in X-Forwarded-For can be spoofed by the client, so
    they are never trusted as the rate-limit key.
    """
    try:
        addr = ipaddress.ip_address(value)
        return addr.is_private or addr.is_loopback or addr.is_link_local
    except ValueError:
        return False


def _get_real_ip(request: Request) -> str:
    """Extract the client IP from proxy headers, falling back to the remote address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        # First entry is the client
        candidate = forwarded.split(",")[0].strip()
        if _is_valid_ip(candidate) and not _is_private_ip(candidate):
            return candidate
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        candidate = real_ip.strip()
        if _is_valid_ip(candidate) and not _is_private_ip(candidate):
            return candidate
    return get_remote_address(request)


# Format: "count/period" where period can be: second, minute, hour, day
RATE_LIMITS = {
    "cover_batch": "5/minute",
    "cover_single": "10/minute",
    "credit_purchase": "10/minute",
    "subscription_upgrade": "5/minute",
    "chapter_save": "120/minute",
    "default": "100/minute",
}

_storage_uri = settings.redis_url if settings.redis_url else "memory://"

if not settings.redis_url:
    logger.warning(
        "Rate limiter using in-memory storage, not suitable for multi-worker production"
    )
    if settings.environment == "production":
        logger.critical(
            "Rate limiter has no Redis in production; limits are per worker. "
            "Set REDIS_URL in environment variables."
        )

limiter = Limiter(
    key_func=_get_real_ip,
    storage_uri=_storage_uri,
    default_limits=[RATE_LIMITS["default"]],
    enabled=settings.rate_limit_enabled,
)


def get_rate_limit(endpoint: str) -> str:
    """
    Rate limit string for an endpoint identifier.

    >>> get_rate_limit("cover_batch")
    '5/minute'
    >>> get_rate_limit("unknown")
    '100/minute'
    """
    return RATE_LIMITS.get(endpoint, RATE_LIMITS["default"])
