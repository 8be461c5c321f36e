from __future__ import annotations

import pytest
from sqlmodel import select

from app.enums import MediaStatus
from app.models import Category, GeneratedImage, ImageCategory


@pytest.fixture
def image(db, user) -> GeneratedImage:
    row = GeneratedImage(user_id=user.id, prompt="mountain lake", status=MediaStatus.completed,
                         image_url="https://cdn/lake.png")
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def test_vote_toggle_and_switch(client, image, user_headers):
    url = f"/api/v1/votes/{image.id}"

    r = client.post(url, headers=user_headers, json={"vote_type": "UPVOTE"})
    assert r.status_code == 200
    assert r.json()["data"] == {"upvotes": 1, "downvotes": 0, "vote_score": 1, "user_vote": "UPVOTE"}

    r = client.post(url, headers=user_headers, json={"vote_type": "DOWNVOTE"})
    assert r.json()["data"] == {"upvotes": 0, "downvotes": 1, "vote_score": -1, "user_vote": "DOWNVOTE"}

    r = client.post(url, headers=user_headers, json={"vote_type": "DOWNVOTE"})
    assert r.json()["data"] == {"upvotes": 0, "downvotes": 0, "vote_score": 0, "user_vote": None}

    r = client.get(url, headers=user_headers)
    assert r.json()["data"] == {"user_vote": None, "has_voted": False}


def test_vote_on_image_with_null_counters(client, db, user, user_headers):
    legacy = GeneratedImage(user_id=user.id, prompt="old import", status=MediaStatus.completed,
                            upvotes=None, downvotes=None, vote_score=None)
    db.add(legacy)
    db.commit()

    r = client.post(f"/api/v1/votes/{legacy.id}", headers=user_headers, json={"vote_type": "UPVOTE"})
    assert r.status_code == 200
    assert r.json()["data"] == {"upvotes": 1, "downvotes": 0, "vote_score": 1, "user_vote": "UPVOTE"}

    db.expire_all()
    stored = db.get(GeneratedImage, legacy.id)
    assert (stored.upvotes, stored.downvotes, stored.vote_score) == (1, 0, 1)


def test_vote_stats_and_remove(client, image, user_headers, make_user, headers_for):
    other = make_user("other@example.com")
    url = f"/api/v1/votes/{image.id}"
    client.post(url, headers=user_headers, json={"vote_type": "UPVOTE"})
    client.post(url, headers=headers_for(other), json={"vote_type": "DOWNVOTE"})

    r = client.get(f"{url}/stats")
    stats = r.json()["data"]
    assert stats["total_votes"] == 2
    assert stats["upvote_percentage"] == 50
    assert stats["vote_score"] == 0

    r = client.delete(url, headers=headers_for(other))
    assert r.status_code == 200
    assert r.json()["data"]["downvotes"] == 0

    r = client.delete(url, headers=headers_for(other))
    assert r.status_code == 404


def test_vote_unknown_image(client, user_headers):
    r = client.post("/api/v1/votes/12345", headers=user_headers, json={"vote_type": "UPVOTE"})
    assert r.status_code == 404
    assert r.json()["message"] == "Image not found"


def test_comments(client, image, user_headers, make_user, headers_for):
    url = f"/api/v1/comments/{image.id}"

    r = client.post(url, headers=user_headers, json={"comment": "   "})
    assert r.status_code == 400
    assert r.json() == {"code": 400401, "message": "Comment cannot be empty", "data": None}

    r = client.post(url, headers=user_headers, json={"comment": " lovely colours "})
    assert r.status_code == 200
    comment = r.json()["data"]
    assert comment["comment"] == "lovely colours"
    assert comment["user_name"] == "Test"

    r = client.get(url)
    assert [c["id"] for c in r.json()["data"]] == [comment["id"]]

    stranger = make_user("stranger@example.com")
    r = client.delete(f"/api/v1/comments/{comment['id']}", headers=headers_for(stranger))
    assert r.status_code == 404

    r = client.delete(f"/api/v1/comments/{comment['id']}", headers=user_headers)
    assert r.status_code == 200
    assert client.get(url).json()["data"] == []


def test_admin_deletes_any_comment(client, image, user_headers, admin_headers):
    comment_id = client.post(f"/api/v1/comments/{image.id}", headers=user_headers,
                             json={"comment": "spam"}).json()["data"]["id"]
    r = client.delete(f"/api/v1/comments/{comment_id}", headers=admin_headers)
    assert r.status_code == 200


def test_categories_list_top_search(client, db, image):
    animals = db.exec(select(Category).where(Category.name == "Animals")).one()
    db.add(ImageCategory(image_id=image.id, category_id=animals.id))
    db.commit()

    r = client.get("/api/v1/categories")
    names = [c["name"] for c in r.json()["data"]]
    assert names == sorted(names)
    assert "Fantasy" in names

    r = client.get("/api/v1/categories/top", params={"limit": 1})
    top = r.json()["data"]
    assert top == [{"id": animals.id, "name": "Animals", "description": animals.description,
                    "keywords": animals.keywords, "image_count": 1}]

    r = client.get("/api/v1/categories/search", params={"q": "CYBER"})
    assert [c["name"] for c in r.json()["data"]] == ["Sci-Fi"]

    r = client.get(f"/api/v1/categories/{animals.id}/images")
    page = r.json()["data"]
    assert page["count"] == 1
    assert page["data"][0]["id"] == image.id

    r = client.get("/api/v1/categories/999/images")
    assert r.status_code == 404
