"""
Subscription lifecycle

Creating, cancelling, reactivating and deleting subscriptions, the
subscription info view, feature gates and the periodic expiry sweep.
Every operation runs in one DB transaction and writes a
SubscriptionHistory row.
"""
from __future__ import annotations

import calendar
import logging
import math
from datetime import datetime, timedelta

from sqlmodel import Session, col, select

from app import crud
from app.api.errors import AppError
from app.enums import BillingCycle, SubscriptionAction, SubscriptionStatus
from app.models import Plan, Subscription, User, as_utc, utc_now

logger = logging.getLogger(__name__)

REPLACED_REASON = "Replaced by new subscription"


def add_months(value: datetime, months: int) -> datetime:
    """Calendar month arithmetic; the day is clamped to the target month"""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def period_end(start: datetime, billing_cycle: BillingCycle) -> datetime:
    return add_months(start, 12 if billing_cycle == BillingCycle.yearly else 1)


def require_free_plan(session: Session) -> Plan:
    plan = crud.subscription.get_free_plan(session=session)
    if not plan:
        raise AppError(code=500101, message="Free plan configuration missing", status_code=500)
    return plan


def get_active_plan(session: Session, user: User) -> Plan:
    """Plan of the subscription while its paid period runs, otherwise the Free plan"""
    sub = crud.subscription.get_subscription(session=session, user_id=user.id)
    if crud.subscription.has_paid_access(sub):
        plan = session.get(Plan, sub.plan_id)
        if plan:
            return plan
    return require_free_plan(session)


def has_active_subscription(session: Session, user: User) -> bool:
    return crud.subscription.has_paid_access(crud.subscription.get_subscription(session=session, user_id=user.id))


def apply_free_plan(session: Session, user: User) -> None:
    """Reset the user to Free plan limits. Does not commit."""
    free = crud.subscription.get_free_plan(session=session)
    if free:
        crud.subscription.apply_plan(session=session, user=user, plan=free)
    else:
        logger.warning("Free plan missing, user %s keeps previous limits", user.id)


def create_subscription(
    session: Session,
    *,
    user: User,
    plan_id: int,
    billing_cycle: BillingCycle,
    payment_method: str | None = None,
) -> Subscription:
    """
    Subscribe a user to a plan

    An existing ACTIVE subscription is cancelled first (history CANCELLED),
    then the row is rewritten as the new ACTIVE subscription, the plan limits
    are applied to the user and history CREATED is written.

    Raises:
        AppError: 403 banned / suspended, 404 plan missing or inactive
    """
    if user.is_banned:
        raise AppError(code=403701, message="Cannot create subscription: Account is banned", status_code=403)
    if user.is_suspended:
        raise AppError(code=403702, message="Cannot create subscription: Account is suspended", status_code=403)
    plan = crud.subscription.get_active_plan_by_id(session=session, plan_id=plan_id)
    if not plan:
        raise AppError(code=404701, message="Plan not found or inactive", status_code=404)

    now = utc_now()
    end = period_end(now, billing_cycle)
    sub = crud.subscription.get_subscription(session=session, user_id=user.id)

    if sub and sub.status == SubscriptionStatus.active:
        logger.info("Cancelling subscription %s of user %s before replacement", sub.id, user.id)
        crud.subscription.add_history(
            session=session,
            user_id=user.id,
            plan_id=sub.plan_id,
            action=SubscriptionAction.cancelled,
            billing_cycle=sub.billing_cycle,
            reason=REPLACED_REASON,
        )
        sub.status = SubscriptionStatus.cancelled
        sub.end_date = now
        sub.cancelled_at = now
        sub.cancel_reason = REPLACED_REASON
        session.add(sub)
        session.flush()

    if sub is None:
        sub = Subscription(
            user_id=user.id,
            plan_id=plan.id,
            status=SubscriptionStatus.active,
            billing_cycle=billing_cycle,
            start_date=now,
            end_date=end,
        )
    sub.plan_id = plan.id
    sub.status = SubscriptionStatus.active
    sub.billing_cycle = billing_cycle
    sub.start_date = now
    sub.end_date = end
    sub.next_billing_date = end
    sub.payment_method = payment_method
    sub.cancel_reason = None
    sub.cancelled_at = None
    sub.updated_at = now
    session.add(sub)

    crud.subscription.apply_plan(session=session, user=user, plan=plan)
    crud.usage.get_or_create_usage_record(session=session, user_id=user.id)
    crud.subscription.add_history(
        session=session,
        user_id=user.id,
        plan_id=plan.id,
        action=SubscriptionAction.created,
        billing_cycle=billing_cycle,
        amount=crud.subscription.cycle_amount(plan, billing_cycle),
    )
    session.commit()
    session.refresh(sub)
    logger.info("User %s subscribed to %s (%s) until %s", user.id, plan.name, billing_cycle.value, end)
    return sub


def cancel_subscription(session: Session, *, user: User, immediate: bool = False,
                        reason: str | None = None) -> Subscription:
    """
    Cancel the user's subscription

    Without `immediate` access continues until end_date; with it the Free
    plan is applied right away.
    """
    sub = crud.subscription.get_subscription(session=session, user_id=user.id)
    if sub and sub.status == SubscriptionStatus.cancelled:
        raise AppError(code=400702, message="Subscription is already cancelled", status_code=400)
    if not sub or sub.status != SubscriptionStatus.active:
        raise AppError(code=404702, message="No active subscription found", status_code=404)

    now = utc_now()
    sub.status = SubscriptionStatus.cancelled
    sub.cancelled_at = now
    sub.cancel_reason = reason
    sub.next_billing_date = None
    sub.updated_at = now
    if immediate:
        sub.end_date = now
        apply_free_plan(session, user)
    session.add(sub)
    crud.subscription.add_history(
        session=session,
        user_id=user.id,
        plan_id=sub.plan_id,
        action=SubscriptionAction.cancelled,
        billing_cycle=sub.billing_cycle,
        reason=reason,
    )
    session.commit()
    session.refresh(sub)
    logger.info("Subscription %s of user %s cancelled (immediate=%s)", sub.id, user.id, immediate)
    return sub


def reactivate_subscription(session: Session, *, user: User, extend_days: int = 30) -> Subscription:
    sub = crud.subscription.get_subscription(session=session, user_id=user.id)
    if not sub:
        raise AppError(code=404703, message="No subscription found", status_code=404)
    if sub.status != SubscriptionStatus.cancelled:
        raise AppError(code=400703, message="Only cancelled subscriptions can be reactivated", status_code=400)
    plan = session.get(Plan, sub.plan_id)
    if not plan:
        raise AppError(code=404701, message="Plan not found or inactive", status_code=404)

    now = utc_now()
    base = max(as_utc(sub.end_date) or now, now)
    sub.status = SubscriptionStatus.active
    sub.end_date = base + timedelta(days=extend_days)
    sub.next_billing_date = sub.end_date
    sub.cancelled_at = None
    sub.cancel_reason = None
    sub.updated_at = now
    session.add(sub)
    crud.subscription.apply_plan(session=session, user=user, plan=plan)
    crud.subscription.add_history(
        session=session,
        user_id=user.id,
        plan_id=plan.id,
        action=SubscriptionAction.reactivated,
        billing_cycle=sub.billing_cycle,
        reason=f"Extended by {extend_days} days",
    )
    session.commit()
    session.refresh(sub)
    return sub


def delete_subscription(session: Session, *, user: User) -> None:
    """Admin removal: Free plan applied, history DELETED, row deleted"""
    sub = crud.subscription.get_subscription(session=session, user_id=user.id)
    if not sub:
        raise AppError(code=404704, message="Subscription not found", status_code=404)
    apply_free_plan(session, user)
    crud.subscription.add_history(
        session=session,
        user_id=user.id,
        plan_id=sub.plan_id,
        action=SubscriptionAction.deleted,
        billing_cycle=sub.billing_cycle,
        reason="Deleted by admin",
    )
    session.delete(sub)
    session.commit()


def _expire(session: Session, sub: Subscription, user: User | None) -> None:
    sub.status = SubscriptionStatus.expired
    sub.next_billing_date = None
    sub.updated_at = utc_now()
    session.add(sub)
    if user:
        apply_free_plan(session, user)
    crud.subscription.add_history(
        session=session,
        user_id=sub.user_id,
        plan_id=sub.plan_id,
        action=SubscriptionAction.expired,
        billing_cycle=sub.billing_cycle,
    )


def reset_daily_counter_if_needed(user: User) -> bool:
    """Zero daily_images when the UTC day changed since the last reset"""
    now = utc_now()
    last = as_utc(user.last_image_reset)
    if last is not None and last.date() == now.date():
        return False
    user.daily_images = 0
    user.last_image_reset = now
    return True


def clear_expired_suspension(user: User) -> bool:
    expires = as_utc(user.suspension_expires_at)
    if not user.is_suspended or user.is_banned or expires is None or expires > utc_now():
        return False
    user.is_suspended = False
    user.suspended_at = None
    user.suspension_reason = None
    user.suspension_expires_at = None
    return True


def get_subscription_info(session: Session, *, user: User) -> dict:
    """
    Subscription, plan and usage summary

    Housekeeping runs first: an expired suspension is lifted, the daily image
    counter is reset on a new day and a lapsed ACTIVE subscription is marked
    EXPIRED.

    Raises:
        AppError: 500101 when no subscription exists and the Free plan is missing
    """
    now = utc_now()
    clear_expired_suspension(user)
    reset_daily_counter_if_needed(user)
    session.add(user)

    sub = crud.subscription.get_subscription(session=session, user_id=user.id)
    if sub and sub.status == SubscriptionStatus.active and as_utc(sub.end_date) < now:
        logger.info("Subscription %s of user %s expired", sub.id, user.id)
        _expire(session, sub, user)

    live = crud.subscription.has_paid_access(sub, now)
    plan = session.get(Plan, sub.plan_id) if live and sub else None
    if plan is None:
        plan = require_free_plan(session)
    usage = crud.usage.get_or_create_usage_record(session=session, user_id=user.id)
    session.commit()
    session.refresh(user)
    if sub:
        session.refresh(sub)

    if plan.is_unlimited:
        nuts_remaining = -1
        usage_percentage = 0.0
    else:
        nuts_remaining = max(0, plan.nuts_per_month - usage.nuts_used)
        usage_percentage = round(usage.nuts_used / plan.nuts_per_month * 100, 1) if plan.nuts_per_month else 0.0

    days_until_renewal = None
    if live and sub:
        days_until_renewal = max(0, math.ceil((as_utc(sub.end_date) - now).total_seconds() / 86400))

    can_generate = (
        not user.is_banned
        and not user.is_suspended
        and user.daily_images < plan.images_per_day
        and (plan.is_unlimited or nuts_remaining > 0)
    )
    return {
        "plan": plan,
        "subscription": sub,
        "status": sub.status if sub else None,
        "days_until_renewal": days_until_renewal,
        "is_free_plan": not live,
        "usage": {
            "nuts_used": usage.nuts_used,
            "nuts_remaining": nuts_remaining,
            "nuts_per_month": plan.nuts_per_month,
            "usage_percentage": usage_percentage,
            "images_today": user.daily_images,
            "images_per_day": plan.images_per_day,
            "images_generated": usage.images_generated,
            "period_start": usage.period_start,
            "period_end": usage.period_end,
        },
        "can_generate_images": can_generate,
    }


def has_feature_access(session: Session, *, user: User, feature: str) -> bool:
    if user.is_banned or user.is_suspended:
        return False
    if feature in (user.features or []):
        return True
    sub = crud.subscription.get_subscription(session=session, user_id=user.id)
    if not crud.subscription.has_paid_access(sub):
        return False
    plan = session.get(Plan, sub.plan_id)
    return bool(plan) and feature in crud.subscription.plan_feature_names(session=session, plan=plan)


def expire_due_subscriptions(session: Session) -> int:
    """
    Expire subscriptions whose end_date passed

    ACTIVE rows and CANCELLED rows whose paid period ran out become EXPIRED
    and their users fall back to the Free plan.
    """
    now = utc_now()
    due = session.exec(
        select(Subscription).where(
            col(Subscription.status).in_([SubscriptionStatus.active, SubscriptionStatus.cancelled]),
            Subscription.end_date < now,
        )
    ).all()
    for sub in due:
        _expire(session, sub, session.get(User, sub.user_id))
    session.commit()
    if due:
        logger.info("Expired %s subscriptions", len(due))
    return len(due)


def lift_expired_suspensions(session: Session) -> int:
    now = utc_now()
    users = session.exec(
        select(User).where(
            User.is_suspended == True,  # noqa: E712
            User.is_banned == False,  # noqa: E712
            col(User.suspension_expires_at).is_not(None),
            User.suspension_expires_at <= now,
        )
    ).all()
    for user in users:
        clear_expired_suspension(user)
        session.add(user)
    session.commit()
    if users:
        logger.info("Lifted %s expired suspensions", len(users))
    return len(users)


def reset_daily_counters(session: Session) -> int:
    users = session.exec(select(User).where(User.daily_images > 0)).all()
    now = utc_now()
    for user in users:
        user.daily_images = 0
        user.last_image_reset = now
        session.add(user)
    session.commit()
    logger.info("Reset daily image counters for %s users", len(users))
    return len(users)
