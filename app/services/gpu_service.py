"""
GPU proxy helpers

Upscale with a passthrough fallback and image animation with bounded
polling.
"""
from __future__ import annotations

import logging
import time
from typing import Any

from app.api.errors import AppError
from app.integrations.gpu import gpu_client
from app.integrations.llm import llm_client
from app.models import utc_now

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 5
POLL_ATTEMPTS = 24
MAX_FRAMES = 50


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def upscale(*, image_url: str, scale: int) -> dict[str, Any]:
    """
    Upscale an image, or hand the original back when the GPU is unavailable

    Returns:
        {"image_url", "method", "scale"}; method "passthrough" with scale 1
        on fallback
    """
    scale = int(clamp(scale, 2, 4))
    try:
        result = gpu_client.upscale(image_url=image_url, scale=scale)
    except AppError as e:
        logger.warning("Upscale unavailable, returning original image: %s", e.message)
        return {"image_url": image_url, "method": "passthrough", "scale": 1}
    return {"image_url": result.image_url, "method": result.method, "scale": scale}


def animate_image(*, image_url: str, frames: int, fps: int, motion_strength: int, noise: float,
                  poll_interval: float = POLL_INTERVAL_SECONDS, attempts: int = POLL_ATTEMPTS) -> str:
    """
    Animate a still image and wait for the video

    Returns:
        video URL

    Raises:
        AppError: 502 GPU failure or failed task, 504 "Timeout waiting for video"
    """
    job = gpu_client.image_to_video(
        image_url=image_url,
        frames=int(clamp(frames, 1, MAX_FRAMES)),
        fps=fps,
        motion_bucket_id=int(clamp(motion_strength, 1, 255)),
        noise_aug_strength=clamp(noise, 0, 1),
    )
    if job.video_url:
        return job.video_url
    if not job.task_id:
        raise AppError(code=502504, message="GPU API returned neither video_url nor task_id", status_code=502)

    for attempt in range(attempts):
        result = gpu_client.fetch_video(task_id=job.task_id)
        if result.video_url and result.status in ("completed", "success"):
            return result.video_url
        if result.status in ("failed", "error"):
            raise AppError(code=502506, message="Video generation failed", status_code=502)
        if attempt < attempts - 1:
            time.sleep(poll_interval)
    raise AppError(code=504501, message="Timeout waiting for video", status_code=504)


def status() -> dict[str, Any]:
    gpu_ok = gpu_client.health()
    return {
        "status": "healthy" if gpu_ok and llm_client.available else "unhealthy",
        "gpu": gpu_ok,
        "llm": llm_client.available,
        "timestamp": utc_now().isoformat(),
    }
