"""
Stripe integration (official SDK)

- create_checkout_session(): subscription-mode Checkout Session
- construct_event(): verify a webhook payload against STRIPE_WEBHOOK_SECRET
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

import stripe

from app.api.errors import AppError
from app.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutSession:
    session_id: str
    url: str | None


class StripeClient:
    def _configure(self) -> None:
        if not settings.STRIPE_SECRET_KEY:
            raise AppError(code=500801, message="STRIPE_SECRET_KEY not configured", status_code=500)
        stripe.api_key = settings.STRIPE_SECRET_KEY

    def create_checkout_session(self, *, user_id: int, email: str | None, plan_id: int,
                                plan_name: str, plan_description: str | None,
                                billing: str, amount_cents: int) -> CheckoutSession:
        """
        Create a recurring Checkout Session

        The same metadata is written to the session and to the subscription so
        both checkout.session.completed and customer.subscription.* events
        can be mapped back to the user.

        Raises:
            AppError: 502801 when Stripe rejects the request
        """
        self._configure()
        metadata = {"user_id": str(user_id), "plan_id": str(plan_id), "billing": billing}
        product: dict[str, Any] = {
            "name": f"{plan_name} - {'Monthly' if billing == 'monthly' else 'Yearly'}",
        }
        if plan_description:
            product["description"] = plan_description
        app_url = settings.APP_URL.rstrip("/")
        try:
            session = stripe.checkout.Session.create(
                payment_method_types=["card"],
                line_items=[{
                    "price_data": {
                        "currency": settings.STRIPE_CURRENCY,
                        "product_data": product,
                        "unit_amount": amount_cents,
                        "recurring": {"interval": "month" if billing == "monthly" else "year"},
                    },
                    "quantity": 1,
                }],
                mode="subscription",
                success_url=f"{app_url}/subscription?success=true&session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{app_url}/subscription?canceled=true",
                client_reference_id=str(user_id),
                customer_email=email,
                metadata=metadata,
                subscription_data={"metadata": metadata},
            )
        except stripe.StripeError as e:
            logger.error("Stripe checkout failed for user %s: %s", user_id, e)
            raise AppError(code=502801, message=f"Stripe error: {e}", status_code=502)
        logger.info("Stripe checkout session %s created for user %s plan %s (%s)",
                    session.id, user_id, plan_id, billing)
        return CheckoutSession(session_id=session.id, url=session.url)

    def construct_event(self, *, payload: bytes, signature: str) -> dict[str, Any]:
        """
        Verify a webhook and return the event as plain JSON

        Raises:
            AppError: 400115 "Invalid signature" on a bad signature or payload
        """
        if not settings.STRIPE_WEBHOOK_SECRET:
            raise AppError(code=500802, message="STRIPE_WEBHOOK_SECRET not configured", status_code=500)
        try:
            stripe.Webhook.construct_event(payload, signature, settings.STRIPE_WEBHOOK_SECRET)
        except (ValueError, stripe.SignatureVerificationError) as e:
            logger.warning("Stripe webhook signature verification failed: %s", e)
            raise AppError(code=400115, message="Invalid signature", status_code=400)
        return json.loads(payload)


stripe_client = StripeClient()
