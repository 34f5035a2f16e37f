"""
Rate limiting for AI calls: Redis-backed (preferred) with in-memory fallback.

Every liveness run and every chat message costs one Gemini request, so
both are metered per client. The Redis client is accessed at call-time
via the integration module so it picks up the lifespan instance.
"""

import time
import logging
from typing import Dict

from fastapi import HTTPException

from kyc_shield.config import settings
from kyc_shield.integrations import redis_client as redis_module

logger = logging.getLogger(__name__)

# In-memory store: {identifier: [timestamp, ...]}
_rate_limits: Dict[str, list] = {}

RATE_LIMIT_WINDOW = settings.rate_limit_request_window_sec
MAX_REQUESTS_PER_WINDOW = settings.rate_limit_max_requests


def _too_many() -> HTTPException:
    return HTTPException(
        status_code=429,
        detail={"code": "RATE_LIMITED", "message": "Too many AI requests. Please try again in a minute."}
    )


def check_rate_limit(identifier: str) -> None:
    rc = redis_module.client
    if rc:
        _check_rate_limit_redis(rc, identifier)
    else:
        _check_rate_limit_memory(identifier)


def _check_rate_limit_redis(rc, identifier: str) -> None:
    key = f"ai_rate:{identifier}"
    try:
        current_count = rc.incr(key)
        if current_count == 1:
            rc.expire(key, RATE_LIMIT_WINDOW)
    except Exception as e:
        logger.error(f"[RATE] Redis error: {e}. Falling back to memory.")
        _check_rate_limit_memory(identifier)
        return

    if current_count > MAX_REQUESTS_PER_WINDOW:
        logger.warning(f"[RATE] Redis limit exceeded for {identifier}")
        raise _too_many()


def _check_rate_limit_memory(identifier: str) -> None:
    """Sliding-window in-memory rate limiting."""
    now = time.time()

    if len(_rate_limits) > settings.rate_limit_memory_limit:
        _cleanup_all_limits(now)

    window = [t for t in _rate_limits.get(identifier, []) if now - t < RATE_LIMIT_WINDOW]

    if len(window) >= MAX_REQUESTS_PER_WINDOW:
        _rate_limits[identifier] = window
        logger.warning(f"[RATE] Memory limit exceeded for {identifier}")
        raise _too_many()

    window.append(now)
    _rate_limits[identifier] = window


def _cleanup_all_limits(now: float) -> None:
    """Remove all identifiers that have been idle for the full window."""
    expired_keys = [
        k for k, v in _rate_limits.items()
        if not v or now - v[-1] > RATE_LIMIT_WINDOW
    ]
    for k in expired_keys:
        del _rate_limits[k]
    logger.info(f"[RATE] Cleanup removed {len(expired_keys)} inactive clients.")
