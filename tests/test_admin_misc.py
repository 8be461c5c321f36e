from __future__ import annotations

import csv
import io
from datetime import datetime, timedelta, timezone

import pytest
from sqlmodel import select

from app.api.errors import AppError
from app.core.snowflake import Snowflake, generate_id
from app.enums import BillingCycle, MediaStatus, SubscriptionStatus
from app.integrations.llm import parse_sse_line
from app.main import format_validation_errors
from app.models import Category, GeneratedImage, ImageComment, Plan, Subscription, User, utc_now
from app.services import subscription_service
from app.services.category_analyzer import analyze_prompt_for_category
from app.services.moderation import parse_duration


def test_admin_routes_require_admin(client, user, user_headers):
    r = client.get("/api/v1/admin/users", headers=user_headers)
    assert r.status_code == 403
    assert r.json()["code"] == 403000


def test_suspend_and_unsuspend(client, db, user, user_headers, admin_headers):
    r = client.post(f"/api/v1/admin/users/{user.id}/suspend", headers=admin_headers,
                    json={"reason": "spam", "duration": "7d"})
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["is_suspended"] is True
    assert data["suspension_reason"] == "spam"
    assert data["suspension_expires_at"]

    r = client.post("/api/v1/images", headers=user_headers, json={"prompt": "a cat"})
    assert r.status_code == 403
    assert r.json()["message"] == "Account is suspended"

    r = client.post(f"/api/v1/admin/users/{user.id}/suspend", headers=admin_headers,
                    json={"reason": "spam", "duration": "7x"})
    assert r.status_code == 422

    r = client.post(f"/api/v1/admin/users/{user.id}/unsuspend", headers=admin_headers)
    assert r.json()["data"]["is_suspended"] is False


def test_ban_and_unban(client, user, admin, admin_headers):
    r = client.post(f"/api/v1/admin/users/{admin.id}/ban", headers=admin_headers, json={"reason": "x"})
    assert r.status_code == 400
    assert r.json()["message"] == "You cannot ban yourself"

    r = client.post(f"/api/v1/admin/users/{user.id}/ban", headers=admin_headers, json={"reason": "fraud"})
    data = r.json()["data"]
    assert data["is_banned"] is True
    assert data["is_suspended"] is True
    assert data["suspension_reason"] == "Banned: fraud"

    r = client.post(f"/api/v1/admin/users/{user.id}/unban", headers=admin_headers)
    data = r.json()["data"]
    assert (data["is_banned"], data["is_suspended"]) == (False, False)


def test_set_nuts_and_search_users(client, user, admin_headers):
    r = client.put(f"/api/v1/admin/users/{user.id}/nuts", headers=admin_headers, json={"nuts": 777})
    assert r.json()["data"]["nuts"] == 777

    r = client.put(f"/api/v1/admin/users/{user.id}/nuts", headers=admin_headers, json={"nuts": -1})
    assert r.status_code == 422

    r = client.get("/api/v1/admin/users", headers=admin_headers, params={"search": "user@"})
    page = r.json()["data"]
    assert page["count"] == 1
    assert page["data"][0]["id"] == user.id


def test_delete_user_votes_recounts(client, db, user, user_headers, admin_headers):
    image = GeneratedImage(user_id=user.id, prompt="river", status=MediaStatus.completed)
    db.add(image)
    db.commit()
    client.post(f"/api/v1/votes/{image.id}", headers=user_headers, json={"vote_type": "UPVOTE"})

    r = client.delete(f"/api/v1/admin/users/{user.id}/votes", headers=admin_headers)
    assert r.json()["data"] == {"deleted": 1}
    db.expire_all()
    refreshed = db.get(GeneratedImage, image.id)
    assert (refreshed.upvotes, refreshed.vote_score) == (0, 0)


def test_image_stats_and_export(client, db, user, admin_headers):
    done = GeneratedImage(user_id=user.id, prompt="forest path", status=MediaStatus.completed)
    hidden = GeneratedImage(user_id=user.id, prompt="draft", status=MediaStatus.failed, is_public=False)
    db.add(done)
    db.add(hidden)
    db.commit()
    db.add(ImageComment(user_id=user.id, image_id=done.id, comment="nice"))
    db.commit()

    r = client.get("/api/v1/admin/images/stats", headers=admin_headers)
    stats = r.json()["data"]
    assert stats["total"] == 2
    assert stats["by_status"]["completed"] == 1
    assert stats["by_status"]["failed"] == 1
    assert stats["by_status"]["flagged"] == 0
    assert (stats["public"], stats["private"]) == (1, 1)
    assert stats["avg_comments_per_image"] == "0.50"

    r = client.get("/api/v1/admin/images/export", headers=admin_headers, params={"format": "csv"})
    assert r.headers["content-type"].startswith("text/csv")
    assert "attachment" in r.headers["content-disposition"]
    rows = list(csv.DictReader(io.StringIO(r.text)))
    assert {row["prompt"] for row in rows} == {"forest path", "draft"}

    r = client.get("/api/v1/admin/images/export", headers=admin_headers)
    exported = r.json()["data"]
    assert {row["id"] for row in exported} == {str(done.id), str(hidden.id)}


def test_category_admin(client, db, user, admin_headers):
    r = client.post("/api/v1/admin/categories", headers=admin_headers,
                    json={"name": "Food", "keywords": ["pizza", "cake"]})
    assert r.status_code == 200
    category_id = r.json()["data"]["id"]

    r = client.post("/api/v1/admin/categories", headers=admin_headers, json={"name": "Food"})
    assert r.status_code == 409
    assert r.json() == {"code": 409501, "message": "Category already exists", "data": None}

    image = GeneratedImage(user_id=user.id, prompt="pizza", status=MediaStatus.completed)
    db.add(image)
    db.commit()
    url = f"/api/v1/admin/images/{image.id}/categories/{category_id}"
    assert client.post(url, headers=admin_headers).status_code == 200
    assert client.post(url, headers=admin_headers).status_code == 409

    r = client.put(f"/api/v1/admin/categories/{category_id}", headers=admin_headers,
                   json={"description": "Dishes and drinks"})
    assert r.json()["data"]["image_count"] == 1

    assert client.delete(f"/api/v1/admin/categories/{category_id}", headers=admin_headers).status_code == 200
    db.expire_all()
    assert db.get(Category, category_id) is None


def test_admin_deletes_subscription(client, db, user, user_headers, admin_headers):
    pro = db.exec(select(Plan).where(Plan.name == "Pro")).one()
    client.post("/api/v1/subscription", headers=user_headers,
                json={"plan_id": pro.id, "billing_cycle": "MONTHLY"})

    r = client.delete(f"/api/v1/admin/subscriptions/{user.id}", headers=admin_headers)
    assert r.json()["data"] == {"success": "Subscription deleted"}
    r = client.delete(f"/api/v1/admin/subscriptions/{user.id}", headers=admin_headers)
    assert r.status_code == 404

    db.expire_all()
    assert db.get(User, user.id).nuts == 100


def test_public_config_and_health(client):
    data = client.get("/api/v1/config").json()["data"]
    assert data["nuts_per_image"] == 10
    assert data["nuts_per_video"] == 50
    assert data["max_active_companions"] == 5
    assert "flux" in data["image_models"]

    r = client.get("/api/v1/utils/health-check/")
    assert r.status_code == 200
    assert r.json() is True


def test_snowflake_ids_increase():
    gen = Snowflake(node_id=1)
    ids = [gen.next_id() for _ in range(2000)]
    assert ids == sorted(ids)
    assert len(set(ids)) == len(ids)
    assert generate_id() < generate_id()

    with pytest.raises(ValueError):
        Snowflake(node_id=1024)


def test_category_analyzer():
    fantasy = Category(name="Fantasy", keywords=["dragon", "castle"])
    animals = Category(name="Animals", keywords=["cat", "dog"])
    categories = [animals, fantasy]

    assert analyze_prompt_for_category("A dragon over the castle, with a cat", categories) is fantasy
    assert analyze_prompt_for_category("an abstract shape", categories) is animals
    assert analyze_prompt_for_category("   ", categories) is None
    assert analyze_prompt_for_category("dragon", []) is None


def test_parse_sse_line():
    assert parse_sse_line('data: {"choices": [{"delta": {"content": "Hi"}}]}') == "Hi"
    assert parse_sse_line("data: [DONE]") == "[DONE]"
    assert parse_sse_line(": keep-alive") is None
    assert parse_sse_line("data: not json") is None


def test_format_validation_errors():
    errors = [
        {"loc": ("body", "email"), "msg": "value is not a valid email address"},
        {"loc": ("query", "page"), "msg": "Input should be greater than or equal to 1"},
    ]
    assert format_validation_errors(errors) == (
        "email:value is not a valid email address, page:Input should be greater than or equal to 1"
    )


def test_parse_duration():
    now = datetime(2024, 1, 31, tzinfo=timezone.utc)
    assert parse_duration("7d", now) == now + timedelta(days=7)
    assert parse_duration("2w", now) == now + timedelta(weeks=2)
    assert parse_duration("1m", now) == datetime(2024, 2, 29, tzinfo=timezone.utc)
    assert parse_duration("1y", now) == datetime(2025, 1, 31, tzinfo=timezone.utc)
    with pytest.raises(AppError):
        parse_duration("forever", now)


def test_expire_due_subscriptions(db, make_user):
    member = make_user("member@example.com")
    pro = db.exec(select(Plan).where(Plan.name == "Pro")).one()
    subscription_service.create_subscription(db, user=member, plan_id=pro.id, billing_cycle=BillingCycle.monthly)
    sub = db.exec(select(Subscription).where(Subscription.user_id == member.id)).one()
    sub.end_date = utc_now() - timedelta(days=1)
    db.add(sub)
    db.commit()

    assert subscription_service.expire_due_subscriptions(db) == 1
    db.refresh(sub)
    db.refresh(member)
    assert sub.status == SubscriptionStatus.expired
    assert member.nuts == 100
    assert subscription_service.expire_due_subscriptions(db) == 0


def test_lift_suspensions_and_reset_counters(db, make_user):
    member = make_user("member@example.com")
    member.is_suspended = True
    member.suspension_expires_at = utc_now() - timedelta(minutes=1)
    member.daily_images = 4
    db.add(member)
    db.commit()

    assert subscription_service.lift_expired_suspensions(db) == 1
    assert subscription_service.reset_daily_counters(db) == 1
    db.refresh(member)
    assert member.is_suspended is False
    assert member.daily_images == 0
