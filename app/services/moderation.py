"""
Account moderation

Suspensions (optionally timed), bans and admin balance changes.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta

from sqlmodel import Session

from app.api.errors import AppError
from app.models import User, utc_now
from app.services.subscription_service import add_months

logger = logging.getLogger(__name__)

DURATION_RE = re.compile(r"^(\d+)([dwmy])$")


def parse_duration(duration: str, now: datetime) -> datetime:
    """
    Expiry for a duration like "7d", "2w", "3m" or "1y"

    Raises:
        AppError: 400 for any other format
    """
    match = DURATION_RE.match(duration.strip())
    if not match:
        raise AppError(code=400901, message="Invalid duration format", status_code=400)
    amount, unit = int(match.group(1)), match.group(2)
    if unit == "d":
        return now + timedelta(days=amount)
    if unit == "w":
        return now + timedelta(weeks=amount)
    if unit == "m":
        return add_months(now, amount)
    return add_months(now, 12 * amount)


def suspend(session: Session, *, user: User, reason: str, duration: str | None) -> User:
    now = utc_now()
    user.is_suspended = True
    user.suspended_at = now
    user.suspension_reason = reason
    user.suspension_expires_at = parse_duration(duration, now) if duration else None
    user.updated_at = now
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info("User %s suspended until %s: %s", user.id, user.suspension_expires_at, reason)
    return user


def unsuspend(session: Session, *, user: User) -> User:
    user.is_suspended = False
    user.suspended_at = None
    user.suspension_reason = None
    user.suspension_expires_at = None
    user.updated_at = utc_now()
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def ban(session: Session, *, user: User, reason: str, admin: User) -> User:
    """Ban and suspend indefinitely"""
    if user.id == admin.id:
        raise AppError(code=400902, message="You cannot ban yourself", status_code=400)
    now = utc_now()
    user.is_banned = True
    user.banned_at = now
    user.ban_reason = reason
    user.banned_by = admin.id
    user.is_suspended = True
    user.suspended_at = now
    user.suspension_reason = f"Banned: {reason}"
    user.suspension_expires_at = None
    user.updated_at = now
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info("User %s banned by %s: %s", user.id, admin.id, reason)
    return user


def unban(session: Session, *, user: User) -> User:
    """Clear the ban and any suspension"""
    user.is_banned = False
    user.banned_at = None
    user.ban_reason = None
    user.banned_by = None
    return unsuspend(session, user=user)


def set_nuts(session: Session, *, user: User, nuts: int) -> User:
    user.nuts = nuts
    user.updated_at = utc_now()
    session.add(user)
    session.commit()
    session.refresh(user)
    return user
