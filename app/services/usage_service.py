"""
Monthly usage accounting

check_and_update_usage() validates a generation against the active plan and
books it on the current UsageRecord.
"""
from __future__ import annotations

import logging

from sqlmodel import Session

from app import crud
from app.api.errors import AppError
from app.models import UsageRecord, User, utc_now
from app.services.subscription_service import get_active_plan, reset_daily_counter_if_needed

logger = logging.getLogger(__name__)


def check_and_update_usage(
    session: Session, *, user: User, nuts: int, images: int = 0, videos: int = 0
) -> UsageRecord:
    """
    Validate and book one generation. Does not commit.

    Args:
        user: the generating user
        nuts: nuts the generation costs
        images: number of images requested
        videos: number of videos requested

    Raises:
        AppError: 400 "Monthly nuts limit exceeded. Remaining: X",
            "Per-generation limit exceeded. Max: N" or "Daily image limit reached"
    """
    plan = get_active_plan(session, user)
    record = crud.usage.get_or_create_usage_record(session=session, user_id=user.id)
    reset_daily_counter_if_needed(user)

    if not plan.is_unlimited:
        remaining = plan.nuts_per_month - record.nuts_used
        if nuts > remaining:
            raise AppError(
                code=400801,
                message=f"Monthly nuts limit exceeded. Remaining: {max(0, remaining)}",
                status_code=400,
            )
    if images > plan.images_per_generation:
        raise AppError(
            code=400802,
            message=f"Per-generation limit exceeded. Max: {plan.images_per_generation}",
            status_code=400,
        )
    if images and user.daily_images + images > plan.images_per_day:
        raise AppError(code=400803, message="Daily image limit reached", status_code=400)

    now = utc_now()
    record.nuts_used += nuts
    record.images_generated += images
    record.videos_generated += videos
    record.updated_at = now
    user.daily_images += images
    user.updated_at = now
    session.add(record)
    session.add(user)
    return record
