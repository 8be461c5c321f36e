from __future__ import annotations

import json

import pytest
from sqlmodel import select

from app.core.config import settings
from app.integrations.llm import MOCK_REPLY
from app.models import Character, ChatMessage


def _create(client, headers, name: str = "Luna", **extra):
    body = {"name": name, "personality": "romantic", "appearance": "anime", **extra}
    return client.post("/api/v1/companions", headers=headers, json=body)


@pytest.fixture
def companion(client, user_headers) -> dict:
    r = _create(client, user_headers, description="Loves stargazing")
    assert r.status_code == 200, r.text
    return r.json()["data"]


def _events(response) -> list[dict]:
    return [json.loads(line[len("data: "):]) for line in response.text.splitlines() if line.startswith("data: ")]


def test_create_companion(client, db, companion):
    assert companion["slug"].startswith("luna-")
    assert companion["personality"] == "romantic"
    stored = db.get(Character, companion["id"])
    assert stored.system_prompt.startswith("Your name is Luna.")
    assert "Additional context about you: Loves stargazing" in stored.system_prompt


def test_max_active_companions(client, user_headers):
    for i in range(5):
        assert _create(client, user_headers, name=f"C{i}").status_code == 200
    r = _create(client, user_headers, name="Extra")
    assert r.status_code == 400
    assert r.json()["message"] == "Maximum 5 active companions. Delete one to create a new one."

    first = client.get("/api/v1/companions", headers=user_headers).json()["data"][0]
    client.delete(f"/api/v1/companions/{first['id']}", headers=user_headers)
    assert _create(client, user_headers, name="Extra").status_code == 200


def test_get_by_slug_and_soft_delete(client, db, companion, user_headers, make_user, headers_for):
    r = client.get(f"/api/v1/companions/{companion['slug']}", headers=user_headers)
    assert r.json()["data"]["id"] == companion["id"]

    other = make_user("other@example.com")
    r = client.get(f"/api/v1/companions/{companion['id']}", headers=headers_for(other))
    assert r.status_code == 404

    r = client.delete(f"/api/v1/companions/{companion['id']}", headers=user_headers)
    assert r.status_code == 200
    assert client.get("/api/v1/companions", headers=user_headers).json()["data"] == []
    db.expire_all()
    assert db.get(Character, companion["id"]).is_active is False


def test_portraits(client, companion, user_headers):
    r = client.post(f"/api/v1/companions/{companion['id']}/portrait", headers=user_headers)
    images = r.json()["data"]["images"]
    assert images and images[0].startswith("https://mock.gpu/")

    r = client.put(f"/api/v1/companions/{companion['id']}/portrait", headers=user_headers,
                   json={"portrait_url": images[0]})
    assert r.json()["data"]["portrait_url"] == images[0]

    r = client.post("/api/v1/companions/preview", headers=user_headers,
                    json={"personality": "playful", "appearance": "realistic"})
    assert r.json()["data"]["image_url"].startswith("https://mock.gpu/")


def test_send_message_with_voice(client, companion, user_headers):
    r = client.post(f"/api/v1/companions/{companion['id']}/messages", headers=user_headers,
                    json={"content": "Hi there", "with_voice": True})
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["user_message"]["role"] == "user"
    assert data["assistant_message"]["content"] == MOCK_REPLY
    assert data["assistant_message"]["audio_url"].startswith(settings.BUNNY_CDN_URL)
    # no portrait yet, so no talking video
    assert data["assistant_message"]["video_url"] is None


def test_send_message_with_video(client, companion, user_headers):
    client.put(f"/api/v1/companions/{companion['id']}/portrait", headers=user_headers,
               json={"portrait_url": "https://cdn.example/luna.png"})
    r = client.post(f"/api/v1/companions/{companion['id']}/messages", headers=user_headers,
                    json={"content": "Say hello", "with_video": True})
    reply = r.json()["data"]["assistant_message"]
    assert reply["audio_url"]
    assert reply["video_url"].startswith("https://mock.gpu/talking/")


def test_history_pages_backwards(client, companion, user_headers):
    for i in range(3):
        client.post(f"/api/v1/companions/{companion['id']}/messages", headers=user_headers,
                    json={"content": f"message {i}"})

    url = f"/api/v1/companions/{companion['id']}/messages"
    page = client.get(url, headers=user_headers, params={"limit": 4}).json()["data"]
    assert len(page["messages"]) == 4
    assert page["has_more"] is True
    assert page["messages"][-1]["role"] == "assistant"

    older = client.get(url, headers=user_headers,
                       params={"limit": 4, "cursor": page["next_cursor"]}).json()["data"]
    assert [m["content"] for m in older["messages"]] == ["message 0", MOCK_REPLY]
    assert older["has_more"] is False
    assert older["next_cursor"] is None


def test_chat_stream(client, db, companion, user_headers):
    r = client.post("/api/v1/chat/stream", headers=user_headers,
                    json={"character_id": companion["id"], "content": "Tell me a story", "with_voice": True})
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/event-stream")

    events = _events(r)
    tokens = [e["token"] for e in events if "token" in e]
    assert "".join(tokens).strip() == MOCK_REPLY
    keys = [next(iter(e)) for e in events if "token" not in e]
    assert keys[0] == "text_done"
    assert "audio_url" in keys
    assert keys[-1] == "done"

    rows = db.exec(select(ChatMessage).where(ChatMessage.character_id == companion["id"])).all()
    assert len(rows) == 2


def test_chat_stream_foreign_companion(client, companion, make_user, headers_for):
    other = make_user("other@example.com")
    r = client.post("/api/v1/chat/stream", headers=headers_for(other),
                    json={"character_id": companion["id"], "content": "hello"})
    assert r.status_code == 404
    assert r.json()["message"] == "Companion not found"
