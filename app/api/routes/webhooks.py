"""
Generation webhook routes

POST endpoints receive provider callbacks and reconcile pending rows; GET
endpoints let the partner bot poll a task with its own credentials.
"""
from __future__ import annotations

import logging
import secrets

from fastapi import APIRouter, Header, Query

from app import crud
from app.api.deps import SessionDep
from app.api.errors import AppError
from app.api.schemas import ApiEnvelope, GenerationWebhookPayload, ImageData, TaskStatusData, VideoData
from app.core.config import settings
from app.core.security import verify_password
from app.enums import UserRole
from app.models import User
from app.services import image_service, video_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _valid_payload(body: GenerationWebhookPayload) -> tuple[str, str]:
    if body.id is None or body.id == "" or not body.status:
        raise AppError(code=400501, message="Invalid webhook data", status_code=400)
    return str(body.id), body.status


def _bot_user(session: SessionDep, *, authorization: str | None, email: str | None,
              password: str | None) -> User:
    """
    Authenticate the partner bot

    The bearer must equal BOT_API_TOKEN. The X-Email account is created with
    role BOT on first use.

    Raises:
        AppError: 401 bad token or password, 400 missing headers,
            403 the account is not a bot
    """
    token = (authorization or "").removeprefix("Bearer ").strip()
    if not settings.BOT_API_TOKEN or not secrets.compare_digest(token, settings.BOT_API_TOKEN):
        logger.warning("Unauthorized bot status request")
        raise AppError(code=401501, message="Unauthorized", status_code=401)
    if not email or not password:
        raise AppError(code=400502, message="Missing email or password headers", status_code=400)

    user = crud.user.get_by_email(session=session, email=email)
    if user is None:
        user = crud.user.create(session=session, email=email, password=password,
                                name="Bot User", role=UserRole.bot)
        logger.info("Bot user %s created (%s)", user.id, user.email)
    if not user.is_bot:
        logger.error("User %s is not a bot", user.id)
        raise AppError(code=403501, message="User is not a bot", status_code=403)
    if not user.hashed_password or not verify_password(password, user.hashed_password):
        raise AppError(code=401502, message="Invalid credentials", status_code=401)
    return user


@router.post("/image-generation", response_model=ApiEnvelope)
def image_generation(session: SessionDep, body: GenerationWebhookPayload) -> ApiEnvelope:
    """
    Image provider callback

    Request: POST /api/v1/webhooks/image-generation

    Raises:
        AppError: 400 "Invalid webhook data",
            404 "No pending images found with this task ID"
    """
    task_id, status = _valid_payload(body)
    logger.info("Image webhook for task %s: %s", task_id, status)
    rows = image_service.reconcile_image_task(session, task_id=task_id, status=status,
                                              output=body.output, eta=body.eta)
    return ApiEnvelope(data=[ImageData.model_validate(r) for r in rows])


@router.post("/video-generation", response_model=ApiEnvelope)
def video_generation(session: SessionDep, body: GenerationWebhookPayload) -> ApiEnvelope:
    """Request: POST /api/v1/webhooks/video-generation"""
    task_id, status = _valid_payload(body)
    logger.info("Video webhook for task %s: %s", task_id, status)
    rows = video_service.reconcile_video_task(session, task_id=task_id, status=status,
                                              output=body.output, eta=body.eta)
    return ApiEnvelope(data=[VideoData.model_validate(r) for r in rows])


@router.get("/image-generation", response_model=ApiEnvelope)
def image_generation_status(
    session: SessionDep,
    task_id: str = Query(min_length=1),
    authorization: str | None = Header(default=None),
    x_email: str | None = Header(default=None),
    x_password: str | None = Header(default=None),
) -> ApiEnvelope:
    """
    Bot poll of an image task

    Request: GET /api/v1/webhooks/image-generation?task_id=...
    """
    user = _bot_user(session, authorization=authorization, email=x_email, password=x_password)
    result = image_service.task_status(session, user=user, task_id=task_id)
    return ApiEnvelope(data=TaskStatusData(
        status=result["status"],
        progress=result["progress"],
        eta=result["eta"],
        images=[ImageData.model_validate(r) for r in result["images"]],
    ))


@router.get("/video-generation", response_model=ApiEnvelope)
def video_generation_status(
    session: SessionDep,
    task_id: str = Query(min_length=1),
    authorization: str | None = Header(default=None),
    x_email: str | None = Header(default=None),
    x_password: str | None = Header(default=None),
) -> ApiEnvelope:
    """Request: GET /api/v1/webhooks/video-generation?task_id=..."""
    user = _bot_user(session, authorization=authorization, email=x_email, password=x_password)
    result = video_service.task_status(session, user=user, task_id=task_id)
    return ApiEnvelope(data=TaskStatusData(
        status=result["status"],
        progress=result["progress"],
        eta=result["eta"],
        videos=[VideoData.model_validate(r) for r in result["videos"]],
    ))
