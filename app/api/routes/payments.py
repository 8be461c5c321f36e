"""
Payment routes

Stripe Checkout and PayPal Orders for paid plans, plus both providers'
webhooks. Webhooks are unauthenticated; Stripe is trusted through its
signature and PayPal through verify-webhook-signature.
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Header, Request

from app.api.deps import CurrentUser, SessionDep
from app.api.schemas import ApiEnvelope, CheckoutData, CheckoutRequest, PaypalOrderData
from app.services import payment_service

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/stripe/checkout", response_model=ApiEnvelope)
def stripe_checkout(session: SessionDep, current_user: CurrentUser, body: CheckoutRequest) -> ApiEnvelope:
    """
    Start a Stripe subscription checkout

    Request: POST /api/v1/payments/stripe/checkout

    Raises:
        AppError: 404 "Plan not found", 400 "Invalid billing cycle"
    """
    checkout = payment_service.start_stripe_checkout(
        session, user=current_user, plan_id=body.plan_id, billing=body.billing
    )
    return ApiEnvelope(data=CheckoutData(session_id=checkout.session_id, url=checkout.url))


@router.post("/stripe/webhook", response_model=ApiEnvelope)
async def stripe_webhook(
    request: Request,
    session: SessionDep,
    stripe_signature: str | None = Header(default=None, alias="stripe-signature"),
) -> ApiEnvelope:
    """
    Request: POST /api/v1/payments/stripe/webhook

    The raw body is needed for signature verification.

    Raises:
        AppError: 400 "No signature" / "Invalid signature"
    """
    payload = await request.body()
    result = payment_service.handle_stripe_webhook(session, payload=payload, signature=stripe_signature)
    return ApiEnvelope(data=result)


@router.post("/paypal/orders", response_model=ApiEnvelope)
def paypal_order(session: SessionDep, current_user: CurrentUser, body: CheckoutRequest) -> ApiEnvelope:
    """Request: POST /api/v1/payments/paypal/orders"""
    order = payment_service.create_paypal_order(
        session, user=current_user, plan_id=body.plan_id, billing=body.billing
    )
    return ApiEnvelope(data=PaypalOrderData(order_id=order.order_id, approve_url=order.approve_url))


@router.post("/paypal/orders/{order_id}/capture", response_model=ApiEnvelope)
def paypal_capture(session: SessionDep, current_user: CurrentUser, order_id: str) -> ApiEnvelope:
    """
    Capture an approved order and subscribe the payer

    Request: POST /api/v1/payments/paypal/orders/{order_id}/capture
    """
    return ApiEnvelope(data=payment_service.capture_paypal_order(session, user=current_user, order_id=order_id))


@router.post("/paypal/webhook", response_model=ApiEnvelope)
def paypal_webhook(request: Request, session: SessionDep, event: dict[str, Any]) -> ApiEnvelope:
    """Request: POST /api/v1/payments/paypal/webhook"""
    result = payment_service.handle_paypal_webhook(session, headers=dict(request.headers), event=event)
    return ApiEnvelope(data=result)
