from __future__ import annotations

import hashlib
import hmac
import json
import time
from types import SimpleNamespace

import pytest
import stripe
from sqlmodel import select

from app import crud
from app.core.config import settings
from app.enums import SubscriptionStatus
from app.integrations.paypal import encode_custom_id
from app.models import UNLIMITED_NUTS_BALANCE, PaymentEvent, Plan, Subscription, User


@pytest.fixture
def plans(db) -> dict[str, Plan]:
    return {p.name: p for p in db.exec(select(Plan)).all()}


def _subscribe(client, headers, plan: Plan, cycle: str = "MONTHLY"):
    return client.post("/api/v1/subscription", headers=headers,
                       json={"plan_id": plan.id, "billing_cycle": cycle})


def _stripe_signature(payload: str, secret: str) -> str:
    timestamp = int(time.time())
    digest = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def test_plans_listed_cheapest_first(client):
    r = client.get("/api/v1/plans")
    plans = r.json()["data"]
    assert [p["name"] for p in plans] == ["Free", "Pro", "Premium"]
    assert set(plans[1]["features"]) == {"companion_voice", "video_generation"}

    r = client.get("/api/v1/plans/1")
    assert r.status_code == 404


def test_free_user_subscription_info(client, user_headers):
    r = client.get("/api/v1/subscription", headers=user_headers)
    data = r.json()["data"]
    assert data["is_free_plan"] is True
    assert data["plan"]["name"] == "Free"
    assert data["subscription"] is None
    assert data["usage"]["nuts_remaining"] == 100
    assert data["can_generate_images"] is True


def test_subscribe_then_replace(client, db, user, user_headers, plans):
    r = _subscribe(client, user_headers, plans["Pro"])
    assert r.status_code == 200, r.text
    assert r.json()["data"]["status"] == "ACTIVE"

    db.expire_all()
    assert db.get(User, user.id).nuts == 2000

    r = _subscribe(client, user_headers, plans["Premium"], "YEARLY")
    assert r.status_code == 200
    assert r.json()["data"]["plan_id"] == plans["Premium"].id

    db.expire_all()
    assert db.get(User, user.id).nuts == UNLIMITED_NUTS_BALANCE
    subs = db.exec(select(Subscription).where(Subscription.user_id == user.id)).all()
    assert len(subs) == 1

    r = client.get("/api/v1/subscription/history", headers=user_headers)
    actions = [(h["action"], h["reason"]) for h in r.json()["data"]["data"]]
    assert ("CANCELLED", "Replaced by new subscription") in actions
    assert [a for a, _ in actions].count("CREATED") == 2

    r = client.get("/api/v1/subscription", headers=user_headers)
    data = r.json()["data"]
    assert data["is_free_plan"] is False
    assert data["usage"]["nuts_remaining"] == -1
    assert data["days_until_renewal"] >= 365


def test_cancel_and_reactivate(client, user_headers, plans):
    r = client.post("/api/v1/subscription/cancel", headers=user_headers, json={})
    assert r.status_code == 404

    _subscribe(client, user_headers, plans["Pro"])
    r = client.post("/api/v1/subscription/cancel", headers=user_headers, json={"reason": "too pricey"})
    assert r.json()["data"]["status"] == "CANCELLED"

    r = client.post("/api/v1/subscription/cancel", headers=user_headers, json={})
    assert r.status_code == 400
    assert r.json()["message"] == "Subscription is already cancelled"

    # paid period still runs after a non-immediate cancel
    r = client.get("/api/v1/subscription/features/companion_voice", headers=user_headers)
    assert r.json()["data"] == {"feature": "companion_voice", "has_access": True}

    r = client.post("/api/v1/subscription/reactivate", headers=user_headers, json={"extend_days": 10})
    assert r.json()["data"]["status"] == "ACTIVE"

    r = client.post("/api/v1/subscription/reactivate", headers=user_headers, json={})
    assert r.status_code == 400


def test_period_end_cancel_keeps_paid_limits(client, db, user, user_headers, plans):
    _subscribe(client, user_headers, plans["Pro"])
    record = crud.usage.get_or_create_usage_record(session=db, user_id=user.id)
    record.nuts_used = 150
    db.add(record)
    db.commit()

    r = client.post("/api/v1/subscription/cancel", headers=user_headers, json={"immediate": False})
    assert r.json()["data"]["status"] == "CANCELLED"

    r = client.post("/api/v1/images", headers=user_headers, json={"prompt": "a lighthouse"})
    assert r.status_code == 200, r.text

    data = client.get("/api/v1/subscription", headers=user_headers).json()["data"]
    assert data["status"] == "CANCELLED"
    assert data["is_free_plan"] is False
    assert data["plan"]["name"] == "Pro"
    assert data["days_until_renewal"] >= 28
    assert data["usage"]["nuts_used"] == 160


def test_immediate_cancel_restores_free_plan(client, db, user, user_headers, plans):
    _subscribe(client, user_headers, plans["Pro"])
    client.post("/api/v1/subscription/cancel", headers=user_headers, json={"immediate": True})

    db.expire_all()
    refreshed = db.get(User, user.id)
    assert refreshed.nuts == 100
    assert refreshed.features == []
    r = client.get("/api/v1/subscription/features/companion_voice", headers=user_headers)
    assert r.json()["data"]["has_access"] is False


def test_admin_subscribes_other_user(client, user, user_headers, admin_headers, plans, make_user):
    other = make_user("other@example.com")
    body = {"plan_id": plans["Pro"].id, "billing_cycle": "MONTHLY", "user_id": other.id}

    r = client.post("/api/v1/subscription", headers=user_headers, json=body)
    assert r.status_code == 403

    r = client.post("/api/v1/subscription", headers=admin_headers, json=body)
    assert r.status_code == 200
    assert r.json()["data"]["user_id"] == other.id


def test_banned_user_cannot_subscribe(client, db, user, user_headers, plans):
    user.is_banned = True
    db.add(user)
    db.commit()
    r = _subscribe(client, user_headers, plans["Pro"])
    assert r.status_code == 403


def test_usage_endpoint(client, user_headers):
    client.post("/api/v1/images", headers=user_headers, json={"prompt": "a lighthouse"})
    r = client.get("/api/v1/usage", headers=user_headers)
    data = r.json()["data"]
    assert data["nuts_used"] == 10
    assert data["images_generated"] == 1
    assert data["nuts"] == 90


def test_stripe_checkout(client, user_headers, plans, monkeypatch):
    monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", "sk_test_123")
    created = {}

    def _create(**kwargs):
        created.update(kwargs)
        return SimpleNamespace(id="cs_test_1", url="https://checkout.stripe.test/cs_test_1")

    monkeypatch.setattr(stripe.checkout.Session, "create", _create)

    r = client.post("/api/v1/payments/stripe/checkout", headers=user_headers,
                    json={"plan_id": plans["Free"].id, "billing": "monthly"})
    assert r.status_code == 400
    assert r.json()["message"] == "This plan does not require payment"

    r = client.post("/api/v1/payments/stripe/checkout", headers=user_headers,
                    json={"plan_id": plans["Pro"].id, "billing": "yearly"})
    assert r.status_code == 200
    assert r.json()["data"] == {"session_id": "cs_test_1", "url": "https://checkout.stripe.test/cs_test_1"}
    assert created["mode"] == "subscription"
    assert created["line_items"][0]["price_data"]["unit_amount"] == plans["Pro"].yearly_price
    assert created["metadata"]["billing"] == "yearly"


def test_stripe_webhook(client, db, user, plans, monkeypatch):
    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", "whsec_test")
    event = {
        "id": "evt_1",
        "type": "checkout.session.completed",
        "data": {"object": {
            "id": "cs_1",
            "mode": "subscription",
            "metadata": {"user_id": str(user.id), "plan_id": str(plans["Pro"].id), "billing": "monthly"},
        }},
    }
    payload = json.dumps(event)

    r = client.post("/api/v1/payments/stripe/webhook", content=payload)
    assert r.status_code == 400
    assert r.json() == {"code": 400116, "message": "No signature", "data": None}

    r = client.post("/api/v1/payments/stripe/webhook", content=payload,
                    headers={"stripe-signature": "t=1,v1=bad"})
    assert r.status_code == 400
    assert r.json()["message"] == "Invalid signature"

    headers = {"stripe-signature": _stripe_signature(payload, "whsec_test")}
    r = client.post("/api/v1/payments/stripe/webhook", content=payload, headers=headers)
    assert r.status_code == 200
    assert r.json()["data"] == {"received": True, "outcome": "subscribed"}

    db.expire_all()
    sub = db.exec(select(Subscription).where(Subscription.user_id == user.id)).one()
    assert sub.plan_id == plans["Pro"].id
    assert sub.payment_method == "stripe"

    r = client.post("/api/v1/payments/stripe/webhook", content=payload, headers=headers)
    assert r.json()["data"] == {"received": True, "duplicate": True}


def test_stripe_subscription_deleted(client, db, user, user_headers, plans, monkeypatch):
    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", "whsec_test")
    _subscribe(client, user_headers, plans["Pro"])
    payload = json.dumps({
        "id": "evt_2",
        "type": "customer.subscription.deleted",
        "data": {"object": {"id": "sub_1", "metadata": {"user_id": str(user.id)}}},
    })
    r = client.post("/api/v1/payments/stripe/webhook", content=payload,
                    headers={"stripe-signature": _stripe_signature(payload, "whsec_test")})
    assert r.json()["data"]["outcome"] == "cancelled"

    db.expire_all()
    sub = db.exec(select(Subscription).where(Subscription.user_id == user.id)).one()
    assert sub.status == SubscriptionStatus.cancelled
    assert db.get(User, user.id).nuts == 100


def test_paypal_order_and_capture(client, db, user, user_headers, plans, make_user, headers_for):
    r = client.post("/api/v1/payments/paypal/orders", headers=user_headers,
                    json={"plan_id": plans["Pro"].id, "billing": "monthly"})
    assert r.status_code == 200
    order_id = r.json()["data"]["order_id"]
    assert order_id.startswith("MOCK-")

    other = make_user("other@example.com")
    r = client.post(f"/api/v1/payments/paypal/orders/{order_id}/capture", headers=headers_for(other))
    assert r.status_code == 403

    r = client.post(f"/api/v1/payments/paypal/orders/{order_id}/capture", headers=user_headers)
    assert r.status_code == 200
    assert r.json()["data"] == {"order_id": order_id, "status": "COMPLETED", "outcome": "ok"}

    db.expire_all()
    assert db.get(User, user.id).nuts == 2000

    # the approval webhook for the same order does not subscribe twice
    event = {
        "id": "WH-1",
        "event_type": "CHECKOUT.ORDER.APPROVED",
        "resource": {"id": order_id, "purchase_units": [
            {"custom_id": encode_custom_id(user_id=user.id, plan_id=plans["Pro"].id, billing="monthly")}
        ]},
    }
    r = client.post("/api/v1/payments/paypal/webhook", json=event)
    assert r.json()["data"] == {"status": "duplicate", "verified": True}


def test_paypal_webhook_approved(client, db, user, plans):
    event = {
        "id": "WH-2",
        "event_type": "CHECKOUT.ORDER.APPROVED",
        "resource": {"id": "ORDER-2", "purchase_units": [
            {"custom_id": encode_custom_id(user_id=user.id, plan_id=plans["Premium"].id, billing="yearly")}
        ]},
    }
    r = client.post("/api/v1/payments/paypal/webhook", json=event)
    assert r.json()["data"] == {"status": "ok", "verified": True}

    db.expire_all()
    sub = db.exec(select(Subscription).where(Subscription.user_id == user.id)).one()
    assert sub.plan_id == plans["Premium"].id
    assert sub.payment_method == "paypal"

    r = client.post("/api/v1/payments/paypal/webhook", json=event)
    assert r.json()["data"]["duplicate"] is True


def test_paypal_webhook_without_custom_id(client):
    event = {"id": "WH-3", "event_type": "CHECKOUT.ORDER.APPROVED", "resource": {"id": "ORDER-3"}}
    r = client.post("/api/v1/payments/paypal/webhook", json=event)
    assert r.json()["data"] == {"status": "missing_custom_id", "verified": True}


def test_paypal_webhook_unknown_user_is_recorded(client, db, plans):
    event = {
        "id": "WH-4",
        "event_type": "CHECKOUT.ORDER.APPROVED",
        "resource": {"id": "ORDER-4", "purchase_units": [
            {"custom_id": encode_custom_id(user_id=424242, plan_id=plans["Pro"].id, billing="monthly")}
        ]},
    }
    r = client.post("/api/v1/payments/paypal/webhook", json=event)
    assert r.json()["data"] == {"status": "missing_fields", "verified": True}

    stored = db.exec(select(PaymentEvent).where(PaymentEvent.event_id == "WH-4")).one()
    assert stored.event_type == "CHECKOUT.ORDER.APPROVED"
    assert db.exec(select(Subscription).where(Subscription.user_id == 424242)).first() is None

    r = client.post("/api/v1/payments/paypal/webhook", json=event)
    assert r.json()["data"] == {"status": "ok", "verified": True, "duplicate": True}
