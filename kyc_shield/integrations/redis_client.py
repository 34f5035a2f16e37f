"""
Upstash Redis integration.

`client` starts as None. Call `initialize()` inside the FastAPI lifespan.
Only the rate limiter uses it; without credentials it falls back to memory.
"""

import os
import logging
from upstash_redis import Redis

logger = logging.getLogger(__name__)

client = None  # Redis | None


def initialize() -> None:
    global client

    redis_url = os.getenv("UPSTASH_REDIS_HOST")
    redis_token = os.getenv("UPSTASH_REDIS_PASSWORD")

    if not (redis_url and redis_token):
        logger.warning("[STARTUP] Redis credentials not found. AI rate limits kept in memory.")
        return

    try:
        client = Redis(url=redis_url, token=redis_token)
        logger.info("[STARTUP] Upstash Redis client initialized")
    except Exception as e:
        logger.error(f"[STARTUP] Failed to initialize Upstash Redis client: {e}")
