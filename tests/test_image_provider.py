from __future__ import annotations

from types import SimpleNamespace

import httpx
import pytest

from app.api.errors import AppError
from app.core.config import settings
from app.integrations import image_provider
from app.integrations.image_provider import ImageProviderClient, fetch_with_retry


@pytest.fixture
def provider(monkeypatch) -> SimpleNamespace:
    """Serves queued replies in order and records every request"""
    state = SimpleNamespace(replies=[], requests=[])
    real_client = httpx.Client

    def handler(request: httpx.Request) -> httpx.Response:
        state.requests.append(request)
        return state.replies.pop(0)

    def _client(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(image_provider.httpx, "Client", _client)
    monkeypatch.setattr(fetch_with_retry.retry, "sleep", lambda seconds: None)
    monkeypatch.setattr(settings, "IMAGE_PROVIDER_MOCK", False)
    monkeypatch.setattr(settings, "IMAGE_PROVIDER_API_KEY", "test-key")
    return state


def test_fetch_with_retry_recovers_from_503(provider):
    provider.replies.extend([
        httpx.Response(503, text="busy"),
        httpx.Response(200, json={"status": "success", "id": 7}),
    ])
    r = fetch_with_retry("POST", "https://provider.test/images/text2img", json={"prompt": "x"})
    assert r.status_code == 200
    assert r.json()["id"] == 7
    assert len(provider.requests) == 2


def test_fetch_with_retry_gives_up(provider):
    provider.replies.extend([httpx.Response(502) for _ in range(image_provider.MAX_RETRIES)])
    with pytest.raises(image_provider._RetryableStatus):
        fetch_with_retry("POST", "https://provider.test/images/text2img")
    assert len(provider.requests) == image_provider.MAX_RETRIES


def test_generate_with_garbled_reply(provider):
    provider.replies.append(httpx.Response(200, text="<html>gateway</html>"))
    with pytest.raises(AppError) as exc:
        ImageProviderClient().generate(prompt="a fox", user_id=1, samples=1)
    assert exc.value.status_code == 502
    assert exc.value.code == 502402


def test_fetch_with_non_object_reply(provider):
    provider.replies.append(httpx.Response(200, json=["success"]))
    with pytest.raises(AppError) as exc:
        ImageProviderClient().fetch(task_id="42")
    assert exc.value.status_code == 502
    assert exc.value.message == "Image provider fetch error: invalid response"


def test_fetch_reads_job_status(provider):
    provider.replies.append(httpx.Response(200, json={
        "status": "processing", "progress": "40", "eta": 12, "output": [],
    }))
    status = ImageProviderClient().fetch(task_id="42")
    assert (status.status, status.progress, status.eta) == ("processing", 40, 12.0)
    assert provider.requests[0].url.path.endswith("/images/fetch/42")
