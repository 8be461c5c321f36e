"""
Text-to-image provider integration

Asynchronous generation API (ModelsLab compatible):
- POST {base}/images/text2img      submit a job; the provider calls our
                                   webhook when the images are ready
- POST {base}/images/fetch/{id}    read job status and output URLs

Transient failures (HTTP 5xx, 429 and transport errors) are retried by
fetch_with_retry: 3 attempts, exponential backoff starting at 2s with factor
1.5, capped at 10s.
"""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from typing import Any

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.api.errors import AppError
from app.core.config import settings
from app.services.config_service import section

logger = logging.getLogger(__name__)

_GENERATE_PATH = "/images/text2img"
_FETCH_PATH = "/images/fetch/{task_id}"

MAX_RETRIES = 3


class ImageGenerationError(AppError):
    """The provider refused the job or answered without a task id"""

    def __init__(self, message: str) -> None:
        super().__init__(code=502401, message=message, status_code=502)


class _RetryableStatus(Exception):
    def __init__(self, response: httpx.Response) -> None:
        super().__init__(f"HTTP {response.status_code}")
        self.response = response


@dataclass(frozen=True)
class GenerationJob:
    task_id: str
    status: str  # "processing" or "success"
    eta: float | None = None
    output: list[str] = field(default_factory=list)
    future_links: list[str] = field(default_factory=list)
    raw: dict[str, Any] | None = None


@dataclass(frozen=True)
class JobStatus:
    status: str  # "queued" / "processing" / "success" / "failed" / "error"
    output: list[str] = field(default_factory=list)
    progress: int | None = None
    eta: float | None = None
    raw: dict[str, Any] | None = None


def random_seed() -> int:
    return secrets.randbelow(2**31 - 1)


@retry(
    stop=stop_after_attempt(MAX_RETRIES),
    wait=wait_exponential(multiplier=2, exp_base=1.5, max=10),
    retry=retry_if_exception_type((_RetryableStatus, httpx.TransportError)),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
def fetch_with_retry(method: str, url: str, *, json: dict[str, Any] | None = None,
                     timeout: float = 60) -> httpx.Response:
    """
    HTTP request with retry on 5xx / 429 / transport errors

    Args:
        method: HTTP method
        url: absolute URL
        json: JSON body
        timeout: per-attempt timeout in seconds

    Returns:
        httpx.Response: the first non-retryable response

    Raises:
        _RetryableStatus / httpx.TransportError: after the last attempt
    """
    with httpx.Client(timeout=timeout) as client:
        r = client.request(method, url, json=json, headers={"Content-Type": "application/json"})
    if r.status_code >= 500 or r.status_code == 429:
        raise _RetryableStatus(r)
    return r


class ImageProviderClient:
    def __init__(self) -> None:
        self._mock = settings.IMAGE_PROVIDER_MOCK
        self._base_url = settings.IMAGE_PROVIDER_URL.rstrip("/")
        self._api_key = settings.IMAGE_PROVIDER_API_KEY

    @property
    def webhook_url(self) -> str:
        return f"{settings.APP_URL.rstrip('/')}{settings.API_V1_STR}/webhooks/image-generation"

    def model_config(self, model: str) -> dict[str, Any]:
        """
        Preset for a model name

        Raises:
            AppError: 400202 for unknown models
        """
        presets = section("image_models")
        cfg = presets.get(model)
        if not isinstance(cfg, dict):
            raise AppError(code=400202, message=f"Unknown model: {model}", status_code=400)
        return cfg

    def _key(self) -> str:
        if not self._api_key:
            raise AppError(code=500401, message="IMAGE_PROVIDER_API_KEY not configured", status_code=500)
        return self._api_key

    def generate(
        self,
        *,
        prompt: str,
        user_id: int,
        samples: int,
        width: int = 1024,
        height: int = 1024,
        model: str = "flux",
        negative_prompt: str | None = None,
        seed: int | None = None,
        steps: int | None = None,
        guidance_scale: float | None = None,
        lora: str | None = None,
        lora_strength: float | None = None,
        upscale: bool = False,
    ) -> GenerationJob:
        """
        Submit a text-to-image job

        Explicit arguments override the model preset. The provider reports
        completion to webhook_url with track_id = user id.

        Returns:
            GenerationJob: provider task id, eta and any early output links

        Raises:
            ImageGenerationError: provider answered status "error" or no id
            AppError: 502402 on HTTP failure
        """
        cfg = self.model_config(model)
        payload: dict[str, Any] = {
            "prompt": prompt,
            "negative_prompt": negative_prompt or "",
            "width": str(width),
            "height": str(height),
            "samples": str(samples),
            "seed": seed if seed is not None else random_seed(),
            "model_id": cfg.get("model_id", model),
            "num_inference_steps": str(steps or cfg.get("num_inference_steps", 30)),
            "guidance_scale": guidance_scale or cfg.get("guidance_scale", 7.5),
            "scheduler": cfg.get("scheduler"),
            "webhook": self.webhook_url,
            "track_id": str(user_id),
            "upscale": "yes" if upscale else "no",
        }
        lora_model = lora or cfg.get("lora_model")
        if lora_model:
            payload["lora_model"] = lora_model
            payload["lora_strength"] = str(lora_strength if lora_strength is not None else cfg.get("lora_strength", 0.8))

        if self._mock:
            task_id = f"mock-{secrets.token_hex(6)}"
            links = [f"https://mock.provider/{task_id}/{i}.png" for i in range(samples)]
            return GenerationJob(task_id=task_id, status="processing", eta=10.0,
                                 future_links=links, raw={"mock": True, **payload})

        payload["key"] = self._key()
        try:
            r = fetch_with_retry("POST", f"{self._base_url}{_GENERATE_PATH}", json=payload)
            r.raise_for_status()
            data = r.json()
        except (httpx.HTTPError, _RetryableStatus, ValueError) as e:
            raise AppError(code=502402, message=f"Image provider error: {e}", status_code=502)

        if not isinstance(data, dict):
            raise ImageGenerationError("Image provider invalid response")
        if data.get("status") == "error":
            raise ImageGenerationError(str(data.get("message") or data.get("messege") or "Image generation failed"))
        if data.get("id") is None:
            raise ImageGenerationError("Image provider returned no task id")

        return GenerationJob(
            task_id=str(data["id"]),
            status=str(data.get("status") or "processing"),
            eta=_as_float(data.get("eta")),
            output=[str(u) for u in data.get("output") or []],
            future_links=[str(u) for u in data.get("future_links") or []],
            raw=data,
        )

    def fetch(self, *, task_id: str) -> JobStatus:
        """
        Read job status

        Raises:
            AppError: 502403 on HTTP failure or an unreadable reply
        """
        if self._mock:
            output = [f"https://mock.provider/{task_id}/{i}.png" for i in range(10)]
            return JobStatus(status="success", output=output, progress=100, raw={"mock": True})

        url = f"{self._base_url}{_FETCH_PATH.format(task_id=task_id)}"
        try:
            r = fetch_with_retry("POST", url, json={"key": self._key()})
            r.raise_for_status()
            data = r.json()
        except (httpx.HTTPError, _RetryableStatus, ValueError) as e:
            raise AppError(code=502403, message=f"Image provider fetch error: {e}", status_code=502)
        if not isinstance(data, dict):
            raise AppError(code=502403, message="Image provider fetch error: invalid response", status_code=502)

        progress = _as_float(data.get("progress"))
        return JobStatus(
            status=str(data.get("status") or ""),
            output=[str(u) for u in data.get("output") or []],
            progress=int(progress) if progress is not None else None,
            eta=_as_float(data.get("eta")),
            raw=data,
        )


def _as_float(v: Any) -> float | None:
    if v is None:
        return None
    try:
        return float(v)
    except (TypeError, ValueError):
        return None


image_provider = ImageProviderClient()
