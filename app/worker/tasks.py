"""
Scheduled maintenance jobs

Each job takes a Redis lock so only one scheduler replica runs it, and
opens its own database session.
"""
import logging
from collections.abc import Callable
from uuid import uuid4

import redis
from sqlmodel import Session

from app.core.db import engine
from app.core.redis import get_redis
from app.services import subscription_service

logger = logging.getLogger(__name__)

LOCK_TTL_SECONDS = 60 * 30

# Compare-and-delete so a lock is only released by its owner
RELEASE_LOCK_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


def _run_locked(name: str, job: Callable[[Session], int]) -> int | None:
    key = f"jobs:{name}:lock"
    lock_value = str(uuid4())
    client = get_redis()
    try:
        acquired = client.set(key, lock_value, nx=True, ex=LOCK_TTL_SECONDS)
    except redis.RedisError as e:
        logger.error("Redis unavailable, skipping %s: %s", name, e)
        return None
    if not acquired:
        logger.info("%s already running, skip this run.", name)
        return None
    try:
        with Session(engine) as session:
            return job(session)
    finally:
        try:
            client.eval(RELEASE_LOCK_SCRIPT, 1, key, lock_value)
        except redis.RedisError as e:
            logger.warning("Could not release %s lock: %s", name, e)


def expire_subscriptions() -> None:
    """Hourly: move lapsed subscriptions to EXPIRED and back to the Free plan"""
    count = _run_locked("expire_subscriptions", subscription_service.expire_due_subscriptions)
    if count is not None:
        logger.info("Subscription expiry done: %s expired", count)


def lift_suspensions() -> None:
    """Hourly: clear suspensions whose expiry passed"""
    count = _run_locked("lift_suspensions", subscription_service.lift_expired_suspensions)
    if count is not None:
        logger.info("Suspension sweep done: %s lifted", count)


def reset_daily_counters() -> None:
    """00:00 UTC: zero every user's daily image counter"""
    _run_locked("reset_daily_counters", subscription_service.reset_daily_counters)
