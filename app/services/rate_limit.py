"""
Generation rate limiting and abuse prevention

Checks, in order: moderation state, email verification, the cooldown
between generations, the free tier allowance and IP based device / network
heuristics. Limits come from the "rate_limit" config section.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlmodel import Session

from app import crud
from app.api.errors import AppError
from app.models import User, as_utc, utc_now
from app.services.config_service import section
from app.services.subscription_service import has_active_subscription

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    reason: str | None = None
    code: int = 0
    status_code: int = 200
    remaining_credits: int | None = None
    reset_in: int | None = None


def _limits() -> dict[str, int]:
    cfg = section("rate_limit")
    return {
        "free_generations_limit": int(cfg.get("free_generations_limit", 10)),
        "rate_limit_seconds": int(cfg.get("rate_limit_seconds", 30)),
        "max_ips_per_user": int(cfg.get("max_ips_per_user", 3)),
        "suspicious_ip_threshold": int(cfg.get("suspicious_ip_threshold", 5)),
    }


def seconds_until_next(user: User, rate_limit_seconds: int) -> int:
    """Seconds left in the cooldown, 0 when the user may generate"""
    last = as_utc(user.last_generation_at)
    if last is None:
        return 0
    elapsed = int((utc_now() - last).total_seconds())
    return max(0, rate_limit_seconds - elapsed)


def free_limit(user: User) -> int:
    return user.free_generations_limit or _limits()["free_generations_limit"]


def check_generation_allowed(session: Session, *, user: User, ip: str) -> RateLimitResult:
    limits = _limits()
    if user.is_banned:
        return RateLimitResult(False, "Account is banned", 403101, 403)
    if user.is_suspended:
        return RateLimitResult(False, "Account is suspended", 403102, 403)

    subscribed = has_active_subscription(session, user)
    if not user.email_verified and not subscribed:
        return RateLimitResult(False, "Please verify your email before generating images", 403103, 403)

    wait = seconds_until_next(user, limits["rate_limit_seconds"])
    if subscribed:
        if wait:
            return RateLimitResult(False, f"Please wait {wait} seconds before generating again",
                                   429101, 429, reset_in=wait)
        return RateLimitResult(True)

    remaining = max(0, free_limit(user) - user.free_generations_used)
    if remaining <= 0:
        return RateLimitResult(False, "Free generation limit reached. Upgrade to continue generating.",
                               403104, 403, remaining_credits=0)
    if wait:
        return RateLimitResult(False, f"Please wait {wait} seconds before generating again",
                               429101, 429, remaining_credits=remaining, reset_in=wait)

    known_ips = crud.user.list_generation_ips(session=session, user_id=user.id)
    if ip not in known_ips and len(known_ips) >= limits["max_ips_per_user"]:
        logger.warning("User %s exceeded device limit from %s", user.id, ip)
        return RateLimitResult(False, "Too many devices used for this account", 403105, 403)
    if crud.user.count_users_for_ip(session=session, ip=ip) >= limits["suspicious_ip_threshold"]:
        logger.warning("Suspicious IP %s blocked for user %s", ip, user.id)
        return RateLimitResult(False, "Suspicious activity detected from this network", 403106, 403)

    return RateLimitResult(True, remaining_credits=remaining)


def enforce_generation_allowed(session: Session, *, user: User, ip: str) -> RateLimitResult:
    """check_generation_allowed, raising AppError when refused"""
    result = check_generation_allowed(session, user=user, ip=ip)
    if not result.allowed:
        raise AppError(code=result.code, message=result.reason or "Generation not allowed",
                       status_code=result.status_code)
    return result


def record_generation(session: Session, *, user: User, ip: str) -> None:
    """Stamp the cooldown, spend a free credit and remember the IP. Does not commit."""
    user.last_generation_at = utc_now()
    if not has_active_subscription(session, user):
        user.free_generations_used += 1
    crud.user.add_generation_ip(session=session, user_id=user.id, ip=ip)
    session.add(user)


def get_credits(session: Session, *, user: User) -> dict[str, int | bool]:
    """Remaining free credits; -1 means unlimited (active subscription)"""
    limit = free_limit(user)
    if has_active_subscription(session, user):
        return {"remaining_credits": -1, "free_limit": limit, "has_subscription": True}
    return {
        "remaining_credits": max(0, limit - user.free_generations_used),
        "free_limit": limit,
        "has_subscription": False,
    }


def get_rate_limit_info(user: User) -> dict[str, int | bool | None]:
    wait = seconds_until_next(user, _limits()["rate_limit_seconds"])
    return {"can_generate": wait == 0, "reset_in": wait or None}
