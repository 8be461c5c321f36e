"""
Payments

Stripe Checkout (subscription mode) and PayPal orders both end in
subscription_service.create_subscription(). Webhook deliveries are made
idempotent by recording each event id in payment_events; a PayPal order is
additionally recorded as "order:<id>" so the capture call and the
CHECKOUT.ORDER.APPROVED webhook subscribe the user only once.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app import crud
from app.api.errors import AppError
from app.enums import BillingCycle, PaymentProvider, SubscriptionStatus
from app.integrations.paypal import PaypalOrder, custom_id_of, encode_custom_id, paypal_client
from app.integrations.stripe_client import CheckoutSession, stripe_client
from app.models import PaymentEvent, Plan, User, utc_now
from app.services import subscription_service

logger = logging.getLogger(__name__)

BILLING_CYCLES = {"monthly": BillingCycle.monthly, "yearly": BillingCycle.yearly}

STRIPE_STATUS_MAP = {
    "active": SubscriptionStatus.active,
    "canceled": SubscriptionStatus.cancelled,
    "past_due": SubscriptionStatus.expired,
}


def _plan_and_amount(session: Session, *, plan_id: int, billing: str) -> tuple[Plan, BillingCycle, int]:
    cycle = BILLING_CYCLES.get(billing)
    if cycle is None:
        raise AppError(code=400111, message="Invalid billing cycle", status_code=400)
    plan = crud.subscription.get_active_plan_by_id(session=session, plan_id=plan_id)
    if not plan:
        raise AppError(code=404111, message="Plan not found", status_code=404)
    amount = crud.subscription.cycle_amount(plan, cycle)
    if amount <= 0:
        raise AppError(code=400112, message="This plan does not require payment", status_code=400)
    return plan, cycle, amount


def record_event(session: Session, *, provider: PaymentProvider, event_id: str, event_type: str,
                 payload: dict[str, Any]) -> bool:
    """
    Store an event id; False when it was already processed

    The row is flushed, not committed, so it lands together with whatever
    the handler writes.
    """
    existing = session.exec(
        select(PaymentEvent).where(PaymentEvent.provider == provider, PaymentEvent.event_id == event_id)
    ).first()
    if existing:
        logger.info("Skipping duplicate %s event %s", provider.value, event_id)
        return False
    session.add(PaymentEvent(provider=provider, event_id=event_id, event_type=event_type, payload=payload))
    try:
        session.flush()
    except IntegrityError:
        session.rollback()
        logger.info("Concurrent delivery of %s event %s", provider.value, event_id)
        return False
    return True


# ============================================================
# Stripe
# ============================================================


def start_stripe_checkout(session: Session, *, user: User, plan_id: int, billing: str) -> CheckoutSession:
    plan, _, amount = _plan_and_amount(session, plan_id=plan_id, billing=billing)
    return stripe_client.create_checkout_session(
        user_id=user.id,
        email=user.email,
        plan_id=plan.id,
        plan_name=plan.name,
        plan_description=plan.description,
        billing=billing,
        amount_cents=amount,
    )


def _metadata_user(session: Session, metadata: dict[str, Any]) -> User | None:
    user_id = metadata.get("user_id")
    if not user_id:
        return None
    try:
        return session.get(User, int(user_id))
    except (TypeError, ValueError):
        return None


def _stripe_checkout_completed(session: Session, obj: dict[str, Any]) -> str:
    if obj.get("mode") != "subscription":
        return "ignored"
    metadata = obj.get("metadata") or {}
    user = _metadata_user(session, metadata)
    cycle = BILLING_CYCLES.get(str(metadata.get("billing") or ""))
    plan_id = metadata.get("plan_id")
    if user is None or cycle is None or not plan_id:
        logger.warning("Stripe checkout %s has incomplete metadata: %s", obj.get("id"), metadata)
        return "missing_metadata"
    subscription_service.create_subscription(
        session, user=user, plan_id=int(plan_id), billing_cycle=cycle, payment_method="stripe"
    )
    return "subscribed"


def _stripe_subscription_updated(session: Session, obj: dict[str, Any]) -> str:
    user = _metadata_user(session, obj.get("metadata") or {})
    if user is None:
        return "unknown_user"
    sub = crud.subscription.get_subscription(session=session, user_id=user.id)
    if sub is None:
        return "no_subscription"
    status = STRIPE_STATUS_MAP.get(str(obj.get("status") or ""))
    if status is not None:
        sub.status = status
        if status == SubscriptionStatus.expired:
            subscription_service.apply_free_plan(session, user)
    period_end = obj.get("current_period_end")
    if isinstance(period_end, int):
        sub.next_billing_date = datetime.fromtimestamp(period_end, tz=timezone.utc)
    sub.updated_at = utc_now()
    session.add(sub)
    session.commit()
    return "updated"


def _stripe_subscription_deleted(session: Session, obj: dict[str, Any]) -> str:
    user = _metadata_user(session, obj.get("metadata") or {})
    if user is None:
        return "unknown_user"
    sub = crud.subscription.get_subscription(session=session, user_id=user.id)
    if sub is None or sub.status != SubscriptionStatus.active:
        logger.info("Stripe subscription deleted for user %s without an active subscription", user.id)
        session.commit()
        return "no_subscription"
    subscription_service.cancel_subscription(session, user=user, immediate=True,
                                             reason="Stripe subscription deleted")
    return "cancelled"


def handle_stripe_webhook(session: Session, *, payload: bytes, signature: str | None) -> dict[str, Any]:
    """
    Verify and process one Stripe webhook delivery

    Raises:
        AppError: 400 "No signature" / "Invalid signature"
    """
    if not signature:
        raise AppError(code=400116, message="No signature", status_code=400)
    event = stripe_client.construct_event(payload=payload, signature=signature)
    event_id = str(event.get("id") or "")
    event_type = str(event.get("type") or "")
    if not record_event(session, provider=PaymentProvider.stripe, event_id=event_id,
                        event_type=event_type, payload=event):
        return {"received": True, "duplicate": True}

    obj = (event.get("data") or {}).get("object") or {}
    try:
        if event_type == "checkout.session.completed":
            outcome = _stripe_checkout_completed(session, obj)
        elif event_type == "customer.subscription.updated":
            outcome = _stripe_subscription_updated(session, obj)
        elif event_type == "customer.subscription.deleted":
            outcome = _stripe_subscription_deleted(session, obj)
        else:
            if event_type.startswith("invoice."):
                logger.info("Stripe %s for customer %s", event_type, obj.get("customer"))
            session.commit()
            outcome = "ignored"
    except AppError:
        session.rollback()
        raise
    if session.in_transaction():
        session.commit()
    logger.info("Stripe event %s (%s): %s", event_id, event_type, outcome)
    return {"received": True, "outcome": outcome}


# ============================================================
# PayPal
# ============================================================


def create_paypal_order(session: Session, *, user: User, plan_id: int, billing: str) -> PaypalOrder:
    plan, _, amount = _plan_and_amount(session, plan_id=plan_id, billing=billing)
    custom_id = encode_custom_id(user_id=user.id, plan_id=plan.id, billing=billing)
    order = paypal_client.create_order(
        amount_cents=amount,
        description=f"{plan.name} - {'Monthly' if billing == 'monthly' else 'Yearly'}",
        custom_id=custom_id,
    )
    logger.info("PayPal order %s created for user %s plan %s (%s)", order.order_id, user.id, plan.id, billing)
    return order


def parse_custom_id(custom_id: str | None) -> tuple[str, dict[str, Any] | None]:
    """
    Returns:
        (outcome, fields): outcome is "ok", "missing_custom_id",
        "invalid_custom_id" or "missing_fields"
    """
    if not custom_id:
        return "missing_custom_id", None
    try:
        data = json.loads(custom_id)
    except json.JSONDecodeError:
        return "invalid_custom_id", None
    if not isinstance(data, dict):
        return "invalid_custom_id", None
    if not data.get("user_id") or not data.get("plan_id") or data.get("billing") not in BILLING_CYCLES:
        return "missing_fields", None
    return "ok", data


def _subscribe_from_order(session: Session, *, order_id: str, fields: dict[str, Any]) -> str:
    user = _metadata_user(session, fields)
    if user is None:
        logger.warning("PayPal order %s names unknown user %s", order_id, fields.get("user_id"))
        return "missing_fields"
    if not record_event(session, provider=PaymentProvider.paypal, event_id=f"order:{order_id}",
                        event_type="ORDER.SUBSCRIBED", payload=fields):
        return "duplicate"
    subscription_service.create_subscription(
        session,
        user=user,
        plan_id=int(fields["plan_id"]),
        billing_cycle=BILLING_CYCLES[fields["billing"]],
        payment_method="paypal",
    )
    return "ok"


def capture_paypal_order(session: Session, *, user: User, order_id: str) -> dict[str, Any]:
    """
    Capture an approved order and subscribe its payer

    Raises:
        AppError: 400 when the order is not completed or carries no usable
            custom_id, 403 when it belongs to another user
    """
    order = paypal_client.capture_order(order_id=order_id)
    if order.status != "COMPLETED":
        raise AppError(code=400113, message=f"Payment not completed: {order.status}", status_code=400)
    outcome, fields = parse_custom_id(order.custom_id)
    if fields is None:
        raise AppError(code=400114, message=f"Invalid order: {outcome}", status_code=400)
    if str(fields["user_id"]) != str(user.id):
        raise AppError(code=403111, message="Order belongs to another user", status_code=403)
    try:
        outcome = _subscribe_from_order(session, order_id=order_id, fields=fields)
    except AppError:
        session.rollback()
        raise
    return {"order_id": order_id, "status": order.status, "outcome": outcome}


def handle_paypal_webhook(session: Session, *, headers: dict[str, str], event: dict[str, Any]) -> dict[str, Any]:
    """
    Process one PayPal webhook delivery

    Unverified events are acknowledged without side effects so PayPal stops
    retrying them.
    """
    if not paypal_client.verify_webhook(headers=headers, event=event):
        logger.warning("Unverified PayPal webhook %s (%s)", event.get("id"), event.get("event_type"))
        return {"status": "ok", "verified": False}

    event_id = str(event.get("id") or "")
    event_type = str(event.get("event_type") or "")
    if not record_event(session, provider=PaymentProvider.paypal, event_id=event_id,
                        event_type=event_type, payload=event):
        return {"status": "ok", "verified": True, "duplicate": True}

    outcome = "ignored"
    if event_type == "CHECKOUT.ORDER.APPROVED":
        resource = event.get("resource") or {}
        outcome, fields = parse_custom_id(custom_id_of(resource))
        if fields is not None:
            try:
                outcome = _subscribe_from_order(session, order_id=str(resource.get("id") or event_id),
                                                fields=fields)
            except AppError:
                session.rollback()
                raise
        else:
            logger.warning("PayPal order %s not processed: %s", resource.get("id"), outcome)
    if session.in_transaction():
        session.commit()
    logger.info("PayPal event %s (%s): %s", event_id, event_type, outcome)
    return {"status": outcome, "verified": True}
