"""
Rate limiting for the Angel Eyes API.

Requests are counted per credential: every camera or phone signed in with
its own session token gets its own budget, even when several devices in one
home share a public IP. Anonymous requests fall back to the client address.
"""

import hashlib
import logging

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings
from app.core.deps import extract_token

logger = logging.getLogger(__name__)

MEMORY_STORAGE = "memory://"

DEFAULT_LIMITS = (
    [] if settings.TESTING or settings.RATE_LIMIT_API <= 0 else [f"{settings.RATE_LIMIT_API}/minute"]
)
# Camera devices post detections in bursts; they get their own budget
DETECTIONS_LIMIT = f"{max(settings.RATE_LIMIT_DETECTIONS, 1)}/minute"


def rate_limit_key(request: Request) -> str:
    """Bucket by session token digest when present, else by client address."""
    token = extract_token(request.headers, request.cookies)
    if token:
        return "token:" + hashlib.sha256(token.encode()).hexdigest()[:32]
    return "ip:" + get_remote_address(request)


def resolve_storage_uri() -> str:
    """Redis when reachable, in-memory for tests or when Redis is down."""
    if settings.TESTING:
        return MEMORY_STORAGE
    try:
        import redis

        redis.from_url(settings.REDIS_URL, socket_connect_timeout=1).ping()
        return settings.REDIS_URL
    except Exception as e:
        logger.warning("Redis unavailable for rate limiting, using in-memory: %s", e)
        return MEMORY_STORAGE


limiter = Limiter(
    key_func=rate_limit_key,
    storage_uri=resolve_storage_uri(),
    default_limits=DEFAULT_LIMITS,
)
