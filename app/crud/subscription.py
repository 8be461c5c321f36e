"""Plan and subscription CRUD operations"""
from datetime import datetime

from sqlmodel import Session, col, func, select

from app.enums import BillingCycle, SubscriptionAction, SubscriptionStatus
from app.models import (
    UNLIMITED_NUTS_BALANCE,
    Plan,
    PlanFeature,
    Subscription,
    SubscriptionHistory,
    User,
    as_utc,
    utc_now,
)

FREE_PLAN_NAME = "Free"


def list_active_plans(*, session: Session) -> list[Plan]:
    stmt = select(Plan).where(Plan.is_active == True).order_by(col(Plan.monthly_price))  # noqa: E712
    return list(session.exec(stmt).all())


def get_active_plan_by_id(*, session: Session, plan_id: int) -> Plan | None:
    plan = session.get(Plan, plan_id)
    if not plan or not plan.is_active:
        return None
    return plan


def get_free_plan(*, session: Session) -> Plan | None:
    return session.exec(select(Plan).where(Plan.name == FREE_PLAN_NAME)).first()


def plan_feature_names(*, session: Session, plan: Plan) -> list[str]:
    """Plan.features plus the names of its active PlanFeature rows, deduplicated"""
    rows = session.exec(
        select(PlanFeature.name).where(PlanFeature.plan_id == plan.id, PlanFeature.is_active == True)  # noqa: E712
    ).all()
    names: list[str] = []
    for name in [*(plan.features or []), *rows]:
        if name not in names:
            names.append(name)
    return names


def get_subscription(*, session: Session, user_id: int) -> Subscription | None:
    return session.exec(select(Subscription).where(Subscription.user_id == user_id)).first()


def is_live(subscription: Subscription | None, now: datetime | None = None) -> bool:
    """ACTIVE and not past end_date"""
    if not subscription or subscription.status != SubscriptionStatus.active:
        return False
    end = as_utc(subscription.end_date)
    return end is None or end >= (now or utc_now())


def has_paid_access(subscription: Subscription | None, now: datetime | None = None) -> bool:
    """Live, or cancelled at period end with end_date not yet reached"""
    if is_live(subscription, now):
        return True
    if not subscription or subscription.status != SubscriptionStatus.cancelled:
        return False
    end = as_utc(subscription.end_date)
    return end is not None and end > (now or utc_now())


def cycle_amount(plan: Plan, billing_cycle: BillingCycle | None) -> int:
    if billing_cycle == BillingCycle.yearly:
        return plan.yearly_price
    return plan.monthly_price


def add_history(
    *,
    session: Session,
    user_id: int,
    plan_id: int,
    action: SubscriptionAction,
    billing_cycle: BillingCycle | None = None,
    amount: int = 0,
    reason: str | None = None,
) -> SubscriptionHistory:
    """Append an audit row. Does not commit."""
    row = SubscriptionHistory(
        user_id=user_id,
        plan_id=plan_id,
        action=action,
        billing_cycle=billing_cycle,
        amount=amount,
        reason=reason,
    )
    session.add(row)
    return row


def list_history(*, session: Session, user_id: int, page: int, page_size: int) -> tuple[list[SubscriptionHistory], int]:
    total = session.exec(
        select(func.count()).select_from(SubscriptionHistory).where(SubscriptionHistory.user_id == user_id)
    ).one()
    rows = session.exec(
        select(SubscriptionHistory)
        .where(SubscriptionHistory.user_id == user_id)
        .order_by(col(SubscriptionHistory.created_at).desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    ).all()
    return list(rows), int(total)


def apply_plan(*, session: Session, user: User, plan: Plan) -> None:
    """
    Copy plan limits onto the user

    Refills nuts (unlimited plans get UNLIMITED_NUTS_BALANCE), resets the
    daily image counter and replaces the feature flags. Does not commit.
    """
    now = utc_now()
    user.nuts = UNLIMITED_NUTS_BALANCE if plan.is_unlimited else plan.nuts_per_month
    user.images_per_day = plan.images_per_day
    user.images_per_generation = plan.images_per_generation
    user.features = plan_feature_names(session=session, plan=plan)
    user.daily_images = 0
    user.last_image_reset = now
    user.updated_at = now
    session.add(user)
