"""
Redis connection

A single client is shared by the process (lru_cache). Redis holds short-lived
values that every worker must see, such as the PayPal OAuth access token.
"""
from __future__ import annotations

from functools import lru_cache

import redis

from app.core.config import settings


@lru_cache(maxsize=1)
def get_redis() -> redis.Redis:
    """
    Shared Redis client

    Created on first use; responses are decoded to str.
    """
    return redis.Redis(
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        db=settings.REDIS_DB,
        password=settings.REDIS_PASSWORD,
        decode_responses=True,
    )
