"""
PayPal REST integration

- OAuth2 client-credentials token, cached in Redis until shortly before expiry
- Orders v2: create / capture
- Webhook verification through /v1/notifications/verify-webhook-signature

Mock mode fakes orders and treats every webhook as verified.
"""
from __future__ import annotations

import json
import logging
import secrets
from dataclasses import dataclass
from typing import Any

import httpx
import redis

from app.api.errors import AppError
from app.core.config import settings
from app.core.redis import get_redis

logger = logging.getLogger(__name__)

TOKEN_CACHE_KEY = "paypal:access_token"

# Transmission headers PayPal signs every webhook with
WEBHOOK_HEADERS = {
    "auth_algo": "paypal-auth-algo",
    "cert_url": "paypal-cert-url",
    "transmission_id": "paypal-transmission-id",
    "transmission_sig": "paypal-transmission-sig",
    "transmission_time": "paypal-transmission-time",
}


@dataclass(frozen=True)
class PaypalOrder:
    order_id: str
    status: str
    approve_url: str | None = None
    custom_id: str | None = None


class PaypalClient:
    def __init__(self) -> None:
        self._mock = settings.PAYPAL_MOCK
        self._base_url = settings.PAYPAL_BASE_URL.rstrip("/")
        # mock mode: order id -> custom_id, so capture can read it back
        self._mock_orders: dict[str, str] = {}

    def _fetch_token(self) -> tuple[str, int]:
        if not settings.PAYPAL_CLIENT_ID or not settings.PAYPAL_CLIENT_SECRET:
            raise AppError(code=500901, message="PayPal credentials not configured", status_code=500)
        try:
            with httpx.Client(timeout=30) as client:
                r = client.post(
                    f"{self._base_url}/v1/oauth2/token",
                    data={"grant_type": "client_credentials"},
                    auth=(settings.PAYPAL_CLIENT_ID, settings.PAYPAL_CLIENT_SECRET),
                    headers={"Accept": "application/json"},
                )
                r.raise_for_status()
                data = r.json()
        except httpx.HTTPError as e:
            logger.error("PayPal token request failed: %s", e)
            raise AppError(code=502901, message=f"PayPal auth error: {e}", status_code=502)
        return str(data["access_token"]), int(data.get("expires_in") or 3600)

    def access_token(self) -> str:
        """
        Cached OAuth access token

        A Redis outage only costs a fresh token request.
        """
        try:
            cached = get_redis().get(TOKEN_CACHE_KEY)
        except redis.RedisError as e:
            logger.warning("Redis unavailable for PayPal token cache: %s", e)
            cached = None
        if cached:
            return str(cached)
        token, expires_in = self._fetch_token()
        try:
            get_redis().set(TOKEN_CACHE_KEY, token, ex=max(expires_in - 60, 60))
        except redis.RedisError as e:
            logger.warning("Could not cache PayPal token: %s", e)
        return token

    def _request(self, method: str, path: str, *, json_body: dict[str, Any] | None, code: int) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {self.access_token()}", "Content-Type": "application/json"}
        try:
            with httpx.Client(timeout=30) as client:
                r = client.request(method, f"{self._base_url}{path}", json=json_body, headers=headers)
                r.raise_for_status()
                return r.json()
        except httpx.HTTPError as e:
            logger.error("PayPal %s %s failed: %s", method, path, e)
            raise AppError(code=code, message=f"PayPal error: {e}", status_code=502)

    def create_order(self, *, amount_cents: int, description: str, custom_id: str) -> PaypalOrder:
        """
        Create a CAPTURE order

        Raises:
            AppError: 502902 on HTTP failure
        """
        if self._mock:
            order_id = f"MOCK-{secrets.token_hex(6).upper()}"
            self._mock_orders[order_id] = custom_id
            return PaypalOrder(order_id=order_id, status="CREATED",
                               approve_url=f"https://www.sandbox.paypal.com/checkoutnow?token={order_id}",
                               custom_id=custom_id)
        app_url = settings.APP_URL.rstrip("/")
        body = {
            "intent": "CAPTURE",
            "purchase_units": [{
                "amount": {
                    "currency_code": settings.PAYPAL_CURRENCY,
                    "value": f"{amount_cents / 100:.2f}",
                },
                "description": description,
                "custom_id": custom_id,
            }],
            "application_context": {
                "return_url": f"{app_url}/subscription?success=true",
                "cancel_url": f"{app_url}/subscription?canceled=true",
            },
        }
        data = self._request("POST", "/v2/checkout/orders", json_body=body, code=502902)
        approve_url = next(
            (link.get("href") for link in data.get("links") or [] if link.get("rel") in ("approve", "payer-action")),
            None,
        )
        return PaypalOrder(order_id=str(data["id"]), status=str(data.get("status") or ""),
                           approve_url=approve_url, custom_id=custom_id)

    def capture_order(self, *, order_id: str) -> PaypalOrder:
        """
        Capture an approved order

        Returns:
            PaypalOrder: with custom_id read back from the purchase unit

        Raises:
            AppError: 502903 on HTTP failure
        """
        if self._mock:
            return PaypalOrder(order_id=order_id, status="COMPLETED", custom_id=self._mock_orders.get(order_id))
        data = self._request("POST", f"/v2/checkout/orders/{order_id}/capture", json_body={}, code=502903)
        return PaypalOrder(order_id=order_id, status=str(data.get("status") or ""),
                           custom_id=custom_id_of(data))

    def get_order(self, *, order_id: str) -> PaypalOrder:
        if self._mock:
            return PaypalOrder(order_id=order_id, status="APPROVED", custom_id=self._mock_orders.get(order_id))
        data = self._request("GET", f"/v2/checkout/orders/{order_id}", json_body=None, code=502904)
        return PaypalOrder(order_id=order_id, status=str(data.get("status") or ""),
                           custom_id=custom_id_of(data))

    def verify_webhook(self, *, headers: dict[str, str], event: dict[str, Any]) -> bool:
        """
        Ask PayPal whether a webhook is authentic

        Missing transmission headers, a missing PAYPAL_WEBHOOK_ID and HTTP
        failures all read as unverified.
        """
        if self._mock:
            return True
        if not settings.PAYPAL_WEBHOOK_ID:
            logger.warning("PAYPAL_WEBHOOK_ID not configured, webhook left unverified")
            return False
        lowered = {k.lower(): v for k, v in headers.items()}
        body: dict[str, Any] = {"webhook_id": settings.PAYPAL_WEBHOOK_ID, "webhook_event": event}
        for field_name, header in WEBHOOK_HEADERS.items():
            value = lowered.get(header)
            if not value:
                logger.warning("PayPal webhook missing header %s", header)
                return False
            body[field_name] = value
        try:
            data = self._request("POST", "/v1/notifications/verify-webhook-signature",
                                 json_body=body, code=502905)
        except AppError as e:
            logger.warning("PayPal webhook verification failed: %s", e.message)
            return False
        return data.get("verification_status") == "SUCCESS"


def custom_id_of(resource: dict[str, Any]) -> str | None:
    """custom_id of the first purchase unit, if any"""
    units = resource.get("purchase_units") or []
    if not units or not isinstance(units[0], dict):
        return None
    value = units[0].get("custom_id")
    return str(value) if value else None


def encode_custom_id(*, user_id: int, plan_id: int, billing: str) -> str:
    return json.dumps({"user_id": str(user_id), "plan_id": str(plan_id), "billing": billing},
                      separators=(",", ":"))


paypal_client = PaypalClient()
