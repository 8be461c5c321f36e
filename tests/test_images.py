from __future__ import annotations

from sqlmodel import select

from app import crud
from app.core.config import settings
from app.enums import MediaStatus, UserRole
from app.models import Category, GeneratedImage, GenerationIp, ImageCategory, User
from app.services import rate_limit


def _generate(client, headers, prompt: str = "a dragon guarding a castle", **extra):
    return client.post("/api/v1/images", headers=headers, json={"prompt": prompt, **extra})


def test_generate_charges_nuts_and_categorises(client, db, user, user_headers):
    r = _generate(client, user_headers)
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["nuts_spent"] == 10
    assert data["task_id"].startswith("mock-")
    assert len(data["images"]) == 1
    image = data["images"][0]
    assert image["status"] == "processing"
    assert image["cost_nuts"] == 10
    assert image["future_links"]

    db.expire_all()
    assert db.get(User, user.id).nuts == 90
    assert db.get(User, user.id).free_generations_used == 1
    fantasy = db.exec(select(Category).where(Category.name == "Fantasy")).one()
    link = db.exec(select(ImageCategory).where(ImageCategory.image_id == image["id"])).one()
    assert link.category_id == fantasy.id


def test_generate_insufficient_nuts(client, make_user, headers_for):
    poor = make_user("poor@example.com", nuts=5)
    r = _generate(client, headers_for(poor))
    assert r.status_code == 400
    assert r.json() == {"code": 402001, "message": "Insufficient nuts", "data": None}


def test_generate_requires_verified_email(client, make_user, headers_for):
    unverified = make_user("unverified@example.com", verified=False)
    r = _generate(client, headers_for(unverified))
    assert r.status_code == 403
    assert r.json()["message"] == "Please verify your email before generating images"


def test_generate_cooldown(client, user_headers):
    assert _generate(client, user_headers).status_code == 200
    r = _generate(client, user_headers)
    assert r.status_code == 429
    assert r.json()["message"].startswith("Please wait")


def test_generate_per_generation_limit(client, user_headers):
    r = _generate(client, user_headers, count=2)
    assert r.status_code == 400
    assert r.json()["message"] == "Per-generation limit exceeded. Max: 1"


def test_advanced_generation_requires_premium(client, user_headers):
    r = client.post("/api/v1/images/advanced", headers=user_headers,
                    json={"prompt": "city at night", "width": 2048, "steps": 80})
    assert r.status_code == 403
    assert r.json()["message"] == "Premium feature required: resolution above 1024px, more than 50 steps"


def test_webhook_completes_task(client, db, user_headers):
    task_id = _generate(client, user_headers).json()["data"]["task_id"]

    r = client.post("/api/v1/webhooks/image-generation",
                    json={"id": task_id, "status": "success", "output": ["https://provider.example/out/0.png"]})
    assert r.status_code == 200
    rows = r.json()["data"]
    assert rows[0]["status"] == "completed"
    assert rows[0]["progress"] == 100
    assert rows[0]["image_url"].startswith(settings.BUNNY_CDN_URL)

    stored = db.exec(select(GeneratedImage).where(GeneratedImage.task_id == task_id)).one()
    assert stored.path.startswith("images/")
    assert stored.verified is not None

    r = client.post("/api/v1/webhooks/image-generation", json={"id": task_id, "status": "success", "output": []})
    assert r.status_code == 404
    assert r.json()["message"] == "No pending images found with this task ID"


def test_webhook_processing_then_failure(client, db, user_headers):
    task_id = _generate(client, user_headers).json()["data"]["task_id"]

    r = client.post("/api/v1/webhooks/image-generation", json={"id": task_id, "status": "processing", "eta": 42})
    assert r.status_code == 200
    assert r.json()["data"][0]["eta"] == 42

    r = client.post("/api/v1/webhooks/image-generation", json={"id": task_id, "status": "error"})
    assert r.status_code == 200
    assert r.json()["data"][0]["status"] == "failed"


def test_webhook_rejects_incomplete_payload(client):
    r = client.post("/api/v1/webhooks/image-generation", json={"id": "123"})
    assert r.status_code == 400
    assert r.json()["message"] == "Invalid webhook data"


def test_task_status_polls_provider(client, user_headers):
    task_id = _generate(client, user_headers).json()["data"]["task_id"]

    r = client.get(f"/api/v1/images/status/{task_id}", headers=user_headers)
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["status"] == "completed"
    assert data["progress"] == 100
    assert data["images"][0]["status"] == "completed"

    r = client.get("/api/v1/images/status/unknown-task", headers=user_headers)
    assert r.status_code == 404


def test_public_gallery_and_visibility(client, db, user, user_headers, make_user, headers_for):
    public = GeneratedImage(user_id=user.id, prompt="sunset beach", status=MediaStatus.completed,
                            image_url="https://cdn/a.png")
    private = GeneratedImage(user_id=user.id, prompt="secret", status=MediaStatus.completed,
                             image_url="https://cdn/b.png", is_public=False)
    db.add(public)
    db.add(private)
    db.commit()

    r = client.get("/api/v1/images/public")
    ids = [row["id"] for row in r.json()["data"]["data"]]
    assert ids == [public.id]

    r = client.get("/api/v1/images/search", params={"q": "beach"})
    assert r.json()["data"]["count"] == 1

    other = make_user("other@example.com")
    r = client.get(f"/api/v1/images/{private.id}", headers=headers_for(other))
    assert r.status_code == 404
    r = client.get(f"/api/v1/images/{private.id}", headers=user_headers)
    assert r.status_code == 200


def test_search_treats_wildcards_literally(client, db, user):
    for prompt in ("1000 stars", "100% cotton shirt", "snake_case sign", "snakes in the grass"):
        db.add(GeneratedImage(user_id=user.id, prompt=prompt, status=MediaStatus.completed))
    db.commit()

    def prompts(q: str) -> list[str]:
        r = client.get("/api/v1/images/search", params={"q": q})
        return sorted(row["prompt"] for row in r.json()["data"]["data"])

    assert prompts("100%") == ["100% cotton shirt"]
    assert prompts("snake_") == ["snake_case sign"]
    assert prompts("%") == ["100% cotton shirt"]
    assert prompts("\\") == []


def test_only_admin_changes_status(client, db, user, user_headers, admin_headers):
    image = GeneratedImage(user_id=user.id, prompt="portrait", status=MediaStatus.completed)
    db.add(image)
    db.commit()

    r = client.put(f"/api/v1/images/{image.id}", headers=user_headers, json={"status": "flagged"})
    assert r.status_code == 403

    r = client.put(f"/api/v1/images/{image.id}", headers=admin_headers, json={"status": "flagged"})
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "flagged"


def test_bulk_delete(client, db, user, user_headers):
    rows = [GeneratedImage(user_id=user.id, prompt=f"p{i}", status=MediaStatus.completed) for i in range(2)]
    for row in rows:
        db.add(row)
    db.commit()

    r = client.post("/api/v1/images/bulk-delete", headers=user_headers, json={"ids": [999]})
    assert r.status_code == 404
    assert r.json()["message"] == "No valid images found"

    r = client.post("/api/v1/images/bulk-delete", headers=user_headers, json={"ids": [row.id for row in rows]})
    assert r.status_code == 200
    db.expire_all()
    assert db.exec(select(GeneratedImage)).all() == []


def test_bot_status_endpoint(client, db, user_headers, monkeypatch):
    monkeypatch.setattr(settings, "BOT_API_TOKEN", "bot-token")
    task_id = _generate(client, user_headers).json()["data"]["task_id"]
    bot_headers = {
        "Authorization": "Bearer bot-token",
        "X-Email": "bot@example.com",
        "X-Password": "bot-password",
    }

    r = client.get("/api/v1/webhooks/image-generation", params={"task_id": task_id}, headers=bot_headers)
    assert r.status_code == 200, r.text
    assert r.json()["data"]["status"] == "completed"

    bot = db.exec(select(User).where(User.email == "bot@example.com")).one()
    assert bot.role == UserRole.bot

    r = client.get("/api/v1/webhooks/image-generation", params={"task_id": task_id},
                   headers={**bot_headers, "Authorization": "Bearer wrong"})
    assert r.status_code == 401

    r = client.get("/api/v1/webhooks/image-generation", params={"task_id": task_id},
                   headers={**bot_headers, "X-Email": "user@example.com", "X-Password": "secret123"})
    assert r.status_code == 403


def _clear_cooldown(db, user_id: int) -> None:
    db.expire_all()
    row = db.get(User, user_id)
    row.last_generation_at = None
    db.add(row)
    db.commit()


def test_generate_free_limit_reached(client, db, user, user_headers):
    user.free_generations_used = rate_limit.free_limit(user)
    db.add(user)
    db.commit()

    r = _generate(client, user_headers)
    assert r.status_code == 403
    assert r.json()["message"] == "Free generation limit reached. Upgrade to continue generating."


def test_generate_device_limit(client, db, user, user_headers):
    for n in range(3):
        r = _generate(client, {**user_headers, "X-Forwarded-For": f"10.0.0.{n}"})
        assert r.status_code == 200, r.text
        _clear_cooldown(db, user.id)

    r = _generate(client, {**user_headers, "X-Forwarded-For": "10.0.0.9, 172.16.0.1"})
    assert r.status_code == 403
    assert r.json()["message"] == "Too many devices used for this account"

    # a device already on record keeps working
    r = _generate(client, {**user_headers, "X-Forwarded-For": "10.0.0.1"})
    assert r.status_code == 200


def test_generate_from_suspicious_network(client, db, user_headers, make_user):
    for n in range(5):
        other = make_user(f"neighbour{n}@example.com")
        db.add(GenerationIp(user_id=other.id, ip="203.0.113.7"))
    db.commit()

    r = _generate(client, {**user_headers, "X-Forwarded-For": "203.0.113.7"})
    assert r.status_code == 403
    assert r.json()["message"] == "Suspicious activity detected from this network"

    r = _generate(client, {**user_headers, "X-Forwarded-For": "198.51.100.2"})
    assert r.status_code == 200


def test_check_generation_refuses_moderated_users(db, make_user):
    banned = make_user("banned@example.com")
    banned.is_banned = True
    suspended = make_user("suspended@example.com")
    suspended.is_suspended = True
    db.add(banned)
    db.add(suspended)
    db.commit()

    result = rate_limit.check_generation_allowed(db, user=banned, ip="192.0.2.1")
    assert (result.allowed, result.reason, result.status_code) == (False, "Account is banned", 403)
    result = rate_limit.check_generation_allowed(db, user=suspended, ip="192.0.2.1")
    assert (result.allowed, result.reason, result.status_code) == (False, "Account is suspended", 403)


def test_generate_monthly_nuts_limit(client, db, user, user_headers):
    record = crud.usage.get_or_create_usage_record(session=db, user_id=user.id)
    record.nuts_used = 95
    db.add(record)
    db.commit()

    r = _generate(client, user_headers)
    assert r.status_code == 400
    assert r.json()["message"] == "Monthly nuts limit exceeded. Remaining: 5"

    db.expire_all()
    assert db.get(User, user.id).nuts == 100
