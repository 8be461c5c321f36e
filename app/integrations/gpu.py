"""
Self-hosted GPU API integration

Endpoints of our inference box:
- POST /generate                              companion portraits
- POST /talking-avatar                        lip-synced video from portrait + audio
- POST /api/v1/upscale                        Real-ESRGAN upscale
- POST /api/v1/video/image-to-video           image animation (sync or task)
- GET  /api/v1/video/fetch-video/{task_id}    image animation task status
- POST /video/generate-video                  text-to-video job with webhook
- GET  /health                                liveness

Mock mode answers every call with deterministic fake URLs.
"""
from __future__ import annotations

import base64
import logging
import secrets
from dataclasses import dataclass, field
from typing import Any

import httpx

from app.api.errors import AppError
from app.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PortraitResult:
    task_id: str | None
    images: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class UpscaleResult:
    image_url: str
    method: str


@dataclass(frozen=True)
class AnimationResult:
    task_id: str | None = None
    video_url: str | None = None
    status: str | None = None


@dataclass(frozen=True)
class VideoJob:
    task_id: str
    status: str
    eta: float | None = None
    future_links: list[str] = field(default_factory=list)


class GpuClient:
    def __init__(self) -> None:
        self._mock = settings.GPU_MOCK
        self._base_url = settings.GPU_API_URL.rstrip("/")
        self._api_key = settings.GPU_API_KEY or ""

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
            "X-API-Key": self._api_key,
        }

    def _post(self, path: str, payload: dict[str, Any], *, timeout: float, code: int) -> dict[str, Any]:
        try:
            with httpx.Client(timeout=timeout) as client:
                r = client.post(f"{self._base_url}{path}", json=payload, headers=self._headers())
                r.raise_for_status()
                data = r.json()
        except httpx.HTTPError as e:
            raise AppError(code=code, message=f"GPU API error: {e}", status_code=502)
        if not isinstance(data, dict):
            raise AppError(code=code, message="GPU API invalid response", status_code=502)
        if data.get("error"):
            raise AppError(code=code, message=str(data["error"]), status_code=502)
        return data

    def generate_portraits(self, *, prompt: str, seed: int, width: int = 512, height: int = 768,
                           num_images: int = 4) -> PortraitResult:
        """
        Portrait candidates for a companion

        Raises:
            AppError: 502501 when the GPU server is unavailable or errors
        """
        if self._mock:
            task_id = f"mock-portrait-{secrets.token_hex(4)}"
            return PortraitResult(
                task_id=task_id,
                images=[f"https://mock.gpu/{task_id}/{i}.png" for i in range(num_images)],
            )
        data = self._post(
            "/generate",
            {"prompt": prompt, "seed": seed, "width": width, "height": height, "num_images": num_images},
            timeout=120,
            code=502501,
        )
        images = data.get("images") or data.get("future_links") or data.get("output") or []
        task_id = data.get("id")
        return PortraitResult(task_id=str(task_id) if task_id is not None else None,
                              images=[str(u) for u in images])

    def talking_avatar(self, *, portrait_url: str, audio_url: str) -> str:
        """
        Lip-synced avatar video

        Returns:
            video URL

        Raises:
            AppError: 502502 on failure or when no URL is returned
        """
        if self._mock:
            return f"https://mock.gpu/talking/{secrets.token_hex(4)}.mp4"
        data = self._post(
            "/talking-avatar",
            {"portrait_url": portrait_url, "audio_url": audio_url},
            timeout=180,
            code=502502,
        )
        video_url = data.get("video_url")
        if not video_url:
            raise AppError(code=502502, message="GPU API returned no video_url", status_code=502)
        return str(video_url)

    def upscale(self, *, image_url: str, scale: int) -> UpscaleResult:
        """
        Real-ESRGAN upscale

        Raises:
            AppError: 502503 on failure or when no URL is returned
        """
        if self._mock:
            return UpscaleResult(image_url=f"{image_url.split('?', 1)[0]}?upscaled={scale}", method="mock")
        data = self._post(
            "/api/v1/upscale",
            {"image_url": image_url, "scale": scale, "enhance": True},
            timeout=60,
            code=502503,
        )
        if not data.get("image_url"):
            raise AppError(code=502503, message="GPU API returned no image_url", status_code=502)
        return UpscaleResult(image_url=str(data["image_url"]), method=str(data.get("method") or "realesrgan"))

    def image_to_video(self, *, image_url: str, frames: int, fps: int, motion_bucket_id: int,
                       noise_aug_strength: float) -> AnimationResult:
        """
        Submit an image animation job

        The source image is downloaded and sent base64 encoded. The GPU
        answers either with a finished video_url or with a task_id to poll
        through fetch_video().

        Raises:
            AppError: 400504 when the source image cannot be downloaded,
                502504 on GPU failure
        """
        if self._mock:
            return AnimationResult(task_id=f"mock-i2v-{secrets.token_hex(4)}", status="processing")
        try:
            with httpx.Client(timeout=30, follow_redirects=True) as client:
                src = client.get(image_url)
                src.raise_for_status()
        except httpx.HTTPError as e:
            raise AppError(code=400504, message=f"Could not fetch source image: {e}", status_code=400)
        image_b64 = base64.b64encode(src.content).decode("ascii")
        data = self._post(
            "/api/v1/video/image-to-video",
            {
                "image": image_b64,
                "num_frames": frames,
                "fps": fps,
                "motion_bucket_id": motion_bucket_id,
                "noise_aug_strength": noise_aug_strength,
            },
            timeout=120,
            code=502504,
        )
        return AnimationResult(
            task_id=str(data["task_id"]) if data.get("task_id") else None,
            video_url=str(data["video_url"]) if data.get("video_url") else None,
            status=str(data.get("status") or ""),
        )

    def fetch_video(self, *, task_id: str) -> AnimationResult:
        """
        Poll an image animation task; HTTP failures read as "pending"
        """
        if self._mock:
            return AnimationResult(task_id=task_id, status="completed",
                                   video_url=f"https://mock.gpu/{task_id}.mp4")
        try:
            with httpx.Client(timeout=30) as client:
                r = client.get(f"{self._base_url}/api/v1/video/fetch-video/{task_id}", headers=self._headers())
                r.raise_for_status()
                data = r.json()
        except httpx.HTTPError as e:
            logger.warning("GPU fetch-video %s failed: %s", task_id, e)
            return AnimationResult(task_id=task_id, status="pending")
        return AnimationResult(
            task_id=task_id,
            status=str(data.get("status") or ""),
            video_url=str(data["video_url"]) if data.get("video_url") else None,
        )

    def submit_video(self, *, prompt: str, user_id: int, width: int, height: int, fps: int,
                     frames: int, steps: int, seed: int, negative_prompt: str | None = None,
                     image_url: str | None = None) -> VideoJob:
        """
        Submit a text/image-to-video job completed through the video webhook

        Raises:
            AppError: 502505 on failure or when no task id is returned
        """
        if self._mock:
            task_id = f"mock-video-{secrets.token_hex(6)}"
            return VideoJob(task_id=task_id, status="processing", eta=60.0,
                            future_links=[f"https://mock.gpu/{task_id}.mp4"])
        webhook = f"{settings.APP_URL.rstrip('/')}{settings.API_V1_STR}/webhooks/video-generation"
        payload: dict[str, Any] = {
            "prompt": prompt,
            "negative_prompt": negative_prompt or "",
            "width": width,
            "height": height,
            "fps": fps,
            "num_frames": frames,
            "num_inference_steps": steps,
            "guidance_scale": 7.5,
            "seed": seed,
            "webhook": webhook,
            "track_id": str(user_id),
        }
        if image_url:
            payload["init_image"] = image_url
        data = self._post("/video/generate-video", payload, timeout=60, code=502505)
        if data.get("id") is None:
            raise AppError(code=502505, message="GPU API returned no task id", status_code=502)
        eta = data.get("eta")
        return VideoJob(
            task_id=str(data["id"]),
            status=str(data.get("status") or "processing"),
            eta=float(eta) if isinstance(eta, int | float) else None,
            future_links=[str(u) for u in data.get("future_links") or []],
        )

    def health(self, url: str | None = None) -> bool:
        if self._mock:
            return True
        try:
            with httpx.Client(timeout=5) as client:
                r = client.get(url or f"{self._base_url}/health")
            return r.is_success
        except httpx.HTTPError as e:
            logger.warning("Health probe failed: %s", e)
            return False


gpu_client = GpuClient()
