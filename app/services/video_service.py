"""
Video generation

Same lifecycle as images: the request is charged and submitted to the GPU
box, the row stays "processing" until the video webhook (or status polling)
reconciles it.
"""
from __future__ import annotations

import logging
from typing import Any

from sqlmodel import Session

from app import crud
from app.api.errors import AppError, insufficient_nuts
from app.api.schemas import VideoCreateRequest
from app.enums import MediaStatus
from app.integrations.cdn import cdn_client
from app.integrations.gpu import gpu_client
from app.integrations.image_provider import random_seed
from app.models import GeneratedVideo, User, utc_now
from app.services import rate_limit
from app.services.config_service import nuts_per_video
from app.services.usage_service import check_and_update_usage

logger = logging.getLogger(__name__)


def generate_video(session: Session, *, user: User, ip: str, body: VideoCreateRequest) -> dict[str, Any]:
    """
    Charge the user and submit a video job

    Returns:
        {"task_id", "eta", "nuts_spent", "videos"}

    Raises:
        AppError: rate limit, "Insufficient nuts", usage limits or GPU failures
    """
    if not user.is_bot:
        rate_limit.enforce_generation_allowed(session, user=user, ip=ip)
    cost = 0 if user.is_bot else nuts_per_video()
    if user.nuts < cost:
        raise insufficient_nuts()

    seed = random_seed()
    try:
        if not user.is_bot:
            check_and_update_usage(session, user=user, nuts=cost, videos=1)
        job = gpu_client.submit_video(
            prompt=body.prompt,
            user_id=user.id,
            width=body.width,
            height=body.height,
            fps=body.fps,
            frames=body.frames,
            steps=body.steps,
            seed=seed,
            negative_prompt=body.negative_prompt,
            image_url=body.image_url,
        )
    except AppError:
        session.rollback()
        raise

    user.nuts -= cost
    user.updated_at = utc_now()
    session.add(user)
    video = GeneratedVideo(
        user_id=user.id,
        prompt=body.prompt,
        negative_prompt=body.negative_prompt,
        width=body.width,
        height=body.height,
        fps=body.fps,
        frames=body.frames,
        steps=body.steps,
        seed=seed,
        source_image_url=body.image_url,
        status=MediaStatus.processing,
        task_id=job.task_id,
        eta=job.eta,
        future_links=job.future_links,
        is_public=body.is_public,
        cost_nuts=cost,
    )
    session.add(video)
    if not user.is_bot:
        rate_limit.record_generation(session, user=user, ip=ip)
    session.commit()
    session.refresh(video)
    logger.info("User %s submitted video task %s (%s nuts)", user.id, job.task_id, cost)
    return {"task_id": job.task_id, "eta": job.eta, "nuts_spent": cost, "videos": [video]}


def reconcile_video_task(
    session: Session,
    *,
    task_id: str,
    status: str,
    output: list[str] | None = None,
    eta: float | None = None,
) -> list[GeneratedVideo]:
    """
    Apply a GPU status to the pending videos of a task

    Raises:
        AppError: 404 "No pending videos found with this task ID"
    """
    rows = crud.media.videos_by_task(session=session, task_id=task_id, status=MediaStatus.processing)
    if not rows:
        raise AppError(code=404206, message="No pending videos found with this task ID", status_code=404)

    now = utc_now()
    for i, row in enumerate(rows):
        if status == "success" and output:
            if i >= len(output):
                row.status = MediaStatus.failed
            else:
                row.status = MediaStatus.completed
                row.progress = 100
                try:
                    stored = cdn_client.upload_from_url(url=output[i], folder="videos", owner=row.user_id,
                                                        default_ext="mp4")
                    row.video_url = stored.cdn_url
                    row.path = stored.path
                    row.verified = now
                except AppError as e:
                    logger.error("CDN copy of %s failed for video %s: %s", output[i], row.id, e.message)
                    row.video_url = ""
        elif status == "processing":
            row.eta = eta
        else:
            row.status = MediaStatus.failed
        row.updated_at = now
        session.add(row)
    session.commit()
    for row in rows:
        session.refresh(row)
    logger.info("Video task %s reconciled with status %s", task_id, status)
    return rows


def task_status(session: Session, *, user: User, task_id: str) -> dict[str, Any]:
    """
    Raises:
        AppError: 404 "No videos found with this task ID"
    """
    rows = crud.media.videos_by_task(session=session, task_id=task_id)
    if not (user.is_admin or user.is_bot):
        rows = [r for r in rows if r.user_id == user.id]
    if not rows:
        raise AppError(code=404207, message="No videos found with this task ID", status_code=404)
    if not any(r.status == MediaStatus.processing for r in rows):
        return {"status": "completed", "progress": 100, "eta": None, "videos": rows}

    result = gpu_client.fetch_video(task_id=task_id)
    if result.status in ("completed", "success") and result.video_url:
        rows = reconcile_video_task(session, task_id=task_id, status="success", output=[result.video_url])
        return {"status": "completed", "progress": 100, "eta": None, "videos": rows}
    if result.status in ("failed", "error"):
        rows = reconcile_video_task(session, task_id=task_id, status="failed")
        return {"status": "failed", "progress": 100, "eta": None, "videos": rows}
    return {"status": "processing", "progress": 50, "eta": rows[0].eta, "videos": rows}


def delete_video(session: Session, *, video: GeneratedVideo) -> None:
    path = video.path
    session.delete(video)
    session.commit()
    if path:
        try:
            cdn_client.delete_file(path=path)
        except AppError as e:
            logger.error("CDN delete of %s failed: %s", path, e.message)
