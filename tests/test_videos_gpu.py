from __future__ import annotations

import pytest

from app.api.errors import AppError
from app.integrations.gpu import AnimationResult, gpu_client
from app.models import User
from app.services import gpu_service


def test_generate_video_and_webhook(client, db, user, user_headers):
    r = client.post("/api/v1/videos", headers=user_headers, json={"prompt": "waves at dawn"})
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["nuts_spent"] == 50
    video = data["videos"][0]
    assert video["status"] == "processing"
    assert (video["width"], video["height"], video["fps"], video["frames"]) == (848, 480, 24, 81)

    db.expire_all()
    assert db.get(User, user.id).nuts == 50

    r = client.post("/api/v1/webhooks/video-generation",
                    json={"id": data["task_id"], "status": "success", "output": ["https://gpu.example/v.mp4"]})
    assert r.status_code == 200
    done = r.json()["data"][0]
    assert done["status"] == "completed"
    assert done["video_url"].endswith(".mp4")

    r = client.post("/api/v1/webhooks/video-generation", json={"id": data["task_id"], "status": "success"})
    assert r.status_code == 404
    assert r.json()["message"] == "No pending videos found with this task ID"


def test_video_status_polls_gpu(client, user_headers):
    task_id = client.post("/api/v1/videos", headers=user_headers,
                          json={"prompt": "a fox running"}).json()["data"]["task_id"]

    r = client.get(f"/api/v1/videos/status/{task_id}", headers=user_headers)
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["status"] == "completed"
    assert data["videos"][0]["status"] == "completed"


def test_video_validation(client, user_headers):
    r = client.post("/api/v1/videos", headers=user_headers, json={"prompt": "x", "fps": 5})
    assert r.status_code == 422
    assert r.json()["message"].startswith("fps:")


def test_upscale_clamps_scale(client, user_headers):
    r = client.post("/api/v1/gpu/upscale", headers=user_headers,
                    json={"image_url": "https://cdn.example/a.png", "scale": 9})
    assert r.status_code == 200
    assert r.json()["data"]["scale"] == 4


def test_upscale_falls_back_to_original(client, user_headers, monkeypatch):
    def _down(**_):
        raise AppError(code=502503, message="GPU API error", status_code=502)

    monkeypatch.setattr(gpu_client, "upscale", _down)
    r = client.post("/api/v1/gpu/upscale", headers=user_headers,
                    json={"image_url": "https://cdn.example/a.png", "scale": 2})
    assert r.json()["data"] == {"image_url": "https://cdn.example/a.png", "method": "passthrough", "scale": 1}


def test_image_to_video_polls_until_done(client, user_headers):
    r = client.post("/api/v1/gpu/image-to-video", headers=user_headers,
                    json={"image_url": "https://cdn.example/a.png", "frames": 200, "motion_strength": 999})
    assert r.status_code == 200
    assert r.json()["data"]["video_url"].startswith("https://mock.gpu/mock-i2v-")


def test_animate_image_times_out(monkeypatch):
    submitted = {}

    def _submit(**kwargs):
        submitted.update(kwargs)
        return AnimationResult(task_id="t1", status="processing")

    monkeypatch.setattr(gpu_client, "image_to_video", _submit)
    monkeypatch.setattr(gpu_client, "fetch_video", lambda **_: AnimationResult(task_id="t1", status="processing"))

    with pytest.raises(AppError) as exc:
        gpu_service.animate_image(image_url="https://cdn.example/a.png", frames=80, fps=8,
                                  motion_strength=0, noise=3, poll_interval=0, attempts=3)
    assert exc.value.status_code == 504
    assert exc.value.message == "Timeout waiting for video"
    assert submitted["frames"] == 50
    assert submitted["motion_bucket_id"] == 1
    assert submitted["noise_aug_strength"] == 1


def test_animate_image_failure(monkeypatch):
    monkeypatch.setattr(gpu_client, "image_to_video", lambda **_: AnimationResult(task_id="t1"))
    monkeypatch.setattr(gpu_client, "fetch_video", lambda **_: AnimationResult(task_id="t1", status="failed"))

    with pytest.raises(AppError) as exc:
        gpu_service.animate_image(image_url="https://cdn.example/a.png", frames=25, fps=8,
                                  motion_strength=127, noise=0, poll_interval=0)
    assert exc.value.status_code == 502


def test_gpu_models_and_status(client):
    r = client.get("/api/v1/gpu/models")
    data = r.json()["data"]
    assert "flux" in data["image_models"]
    assert "default" in data["video_models"]

    r = client.get("/api/v1/gpu/status")
    data = r.json()["data"]
    assert data["status"] == "healthy"
    assert data["timestamp"]
