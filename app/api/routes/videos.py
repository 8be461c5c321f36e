"""
Video routes
"""
from __future__ import annotations

from fastapi import APIRouter, Query

from app import crud
from app.api.deps import ClientIp, CurrentUser, OptionalUser, SessionDep
from app.api.errors import AppError, forbidden
from app.api.schemas import (
    ApiEnvelope,
    GenerationData,
    Page,
    TaskStatusData,
    VideoCreateRequest,
    VideoData,
    VideoUpdateRequest,
)
from app.enums import MediaStatus
from app.models import GeneratedVideo, User, utc_now
from app.services import video_service

router = APIRouter(prefix="/videos", tags=["videos"])


def _not_found() -> AppError:
    return AppError(code=404202, message="Video not found", status_code=404)


def _owned(video: GeneratedVideo, user: User | None) -> bool:
    return bool(user) and (user.id == video.user_id or user.is_admin)


@router.post("", response_model=ApiEnvelope)
def create_video(session: SessionDep, current_user: CurrentUser, ip: ClientIp,
                 body: VideoCreateRequest) -> ApiEnvelope:
    """
    Generate a video from a prompt (optionally from a source image)

    Request: POST /api/v1/videos

    Costs nuts_per_video; completed by the video webhook.

    Raises:
        AppError: rate limit, "Insufficient nuts", usage limits, GPU failures
    """
    result = video_service.generate_video(session, user=current_user, ip=ip, body=body)
    return ApiEnvelope(data=GenerationData(
        task_id=result["task_id"],
        eta=result["eta"],
        nuts_spent=result["nuts_spent"],
        videos=[VideoData.model_validate(v) for v in result["videos"]],
    ))


@router.get("/status/{task_id}", response_model=ApiEnvelope)
def task_status(session: SessionDep, current_user: CurrentUser, task_id: str) -> ApiEnvelope:
    """Request: GET /api/v1/videos/status/{task_id}"""
    result = video_service.task_status(session, user=current_user, task_id=task_id)
    return ApiEnvelope(data=TaskStatusData(
        status=result["status"],
        progress=result["progress"],
        eta=result["eta"],
        videos=[VideoData.model_validate(v) for v in result["videos"]],
    ))


@router.get("", response_model=ApiEnvelope)
def my_videos(
    session: SessionDep,
    current_user: CurrentUser,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
) -> ApiEnvelope:
    """Request: GET /api/v1/videos"""
    rows, total = crud.media.list_user_videos(session=session, user_id=current_user.id, page=page,
                                              page_size=page_size)
    return ApiEnvelope(data=Page(data=[VideoData.model_validate(v) for v in rows], count=total))


@router.get("/public", response_model=ApiEnvelope)
def public_videos(
    session: SessionDep,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
) -> ApiEnvelope:
    """Request: GET /api/v1/videos/public"""
    rows, total = crud.media.list_public_videos(session=session, page=page, page_size=page_size)
    return ApiEnvelope(data=Page(data=[VideoData.model_validate(v) for v in rows], count=total))


@router.get("/{video_id}", response_model=ApiEnvelope)
def get_video(session: SessionDep, current_user: OptionalUser, video_id: int) -> ApiEnvelope:
    """
    Request: GET /api/v1/videos/{video_id}

    Raises:
        AppError: 404 "Video not found"
    """
    video = crud.media.get_video_or_404(session=session, video_id=video_id)
    if not (video.is_public and video.status == MediaStatus.completed) and not _owned(video, current_user):
        raise _not_found()
    return ApiEnvelope(data=VideoData.model_validate(video))


@router.put("/{video_id}", response_model=ApiEnvelope)
def update_video(session: SessionDep, current_user: CurrentUser, video_id: int,
                 body: VideoUpdateRequest) -> ApiEnvelope:
    """
    Request: PUT /api/v1/videos/{video_id}

    Status changes are admin only.
    """
    video = crud.media.get_video_or_404(session=session, video_id=video_id)
    if not _owned(video, current_user):
        raise _not_found()
    if body.status is not None and not current_user.is_admin:
        raise forbidden()
    if body.prompt is not None:
        video.prompt = body.prompt
    if body.is_public is not None:
        video.is_public = body.is_public
    if body.status is not None:
        video.status = MediaStatus(body.status)
    video.updated_at = utc_now()
    session.add(video)
    session.commit()
    session.refresh(video)
    return ApiEnvelope(data=VideoData.model_validate(video))


@router.delete("/{video_id}", response_model=ApiEnvelope)
def delete_video(session: SessionDep, current_user: CurrentUser, video_id: int) -> ApiEnvelope:
    """Request: DELETE /api/v1/videos/{video_id}"""
    video = crud.media.get_video_or_404(session=session, video_id=video_id)
    if not _owned(video, current_user):
        raise _not_found()
    video_service.delete_video(session, video=video)
    return ApiEnvelope(data={"deleted": video_id})
