"""
GPU proxy routes

Thin authenticated wrappers around the self-hosted inference box.
"""
from __future__ import annotations

from fastapi import APIRouter

from app.api.deps import CurrentUser
from app.api.schemas import ApiEnvelope, ImageToVideoRequest, TalkingAvatarRequest, UpscaleRequest
from app.integrations.gpu import gpu_client
from app.services import gpu_service
from app.services.config_service import section

router = APIRouter(prefix="/gpu", tags=["gpu"])


@router.post("/upscale", response_model=ApiEnvelope)
def upscale(current_user: CurrentUser, body: UpscaleRequest) -> ApiEnvelope:
    """
    Request: POST /api/v1/gpu/upscale

    scale is clamped to 2..4. When the GPU is down the original URL comes
    back with method "passthrough".
    """
    return ApiEnvelope(data=gpu_service.upscale(image_url=body.image_url, scale=body.scale))


@router.post("/image-to-video", response_model=ApiEnvelope)
def image_to_video(current_user: CurrentUser, body: ImageToVideoRequest) -> ApiEnvelope:
    """
    Animate an image and wait for the result (up to two minutes)

    Request: POST /api/v1/gpu/image-to-video

    Raises:
        AppError: 504 "Timeout waiting for video", 502 GPU failure
    """
    video_url = gpu_service.animate_image(
        image_url=body.image_url,
        frames=body.frames,
        fps=body.fps,
        motion_strength=body.motion_strength,
        noise=body.noise,
    )
    return ApiEnvelope(data={"video_url": video_url})


@router.post("/talking-avatar", response_model=ApiEnvelope)
def talking_avatar(current_user: CurrentUser, body: TalkingAvatarRequest) -> ApiEnvelope:
    """Request: POST /api/v1/gpu/talking-avatar"""
    video_url = gpu_client.talking_avatar(portrait_url=body.portrait_url, audio_url=body.audio_url)
    return ApiEnvelope(data={"video_url": video_url})


@router.get("/models", response_model=ApiEnvelope)
def models() -> ApiEnvelope:
    """Configured image and video presets; Request: GET /api/v1/gpu/models"""
    return ApiEnvelope(data={"image_models": section("image_models"), "video_models": section("video_models")})


@router.get("/status", response_model=ApiEnvelope)
def status() -> ApiEnvelope:
    """Request: GET /api/v1/gpu/status"""
    return ApiEnvelope(data=gpu_service.status())
