"""
Image generation

generate_images() charges the user and submits a provider job; the rows it
creates stay "processing" until reconcile_image_task() is driven either by
the provider webhook or by status polling.

Nuts are spent when the job is accepted and are not refunded when the
provider later reports a failure.
"""
from __future__ import annotations

import csv
import io
import logging
from typing import Any

from sqlmodel import Session, select

from app import crud
from app.api.errors import AppError, insufficient_nuts
from app.api.schemas import ImageAdvancedRequest, ImageCreateRequest
from app.enums import MediaStatus
from app.integrations.cdn import cdn_client
from app.integrations.image_provider import image_provider
from app.models import GeneratedImage, ImageCategory, User, utc_now
from app.services import rate_limit
from app.services.category_analyzer import analyze_prompt_for_category
from app.services.config_service import nuts_per_image
from app.services.subscription_service import has_feature_access
from app.services.usage_service import check_and_update_usage

logger = logging.getLogger(__name__)

PREMIUM_FEATURE = "premium_generation"

# progress reported when the provider gives none
STATUS_PROGRESS = {"queued": 5, "processing": 50, "success": 100}
DEFAULT_PROGRESS = 10


def premium_requirements(body: ImageAdvancedRequest) -> list[str]:
    needs = []
    if body.width > 1024 or body.height > 1024:
        needs.append("resolution above 1024px")
    if body.steps > 50:
        needs.append("more than 50 steps")
    if body.upscale:
        needs.append("upscaling")
    return needs


def generate_images(
    session: Session,
    *,
    user: User,
    ip: str,
    body: ImageCreateRequest,
) -> dict[str, Any]:
    """
    Charge the user and submit a text-to-image job

    Bots skip rate limiting and usage accounting and pay nothing.

    Returns:
        {"task_id", "eta", "nuts_spent", "images"}

    Raises:
        AppError: rate limit, premium gate, "Insufficient nuts", usage limits,
            or provider failures (502)
    """
    advanced = isinstance(body, ImageAdvancedRequest)
    if not user.is_bot:
        rate_limit.enforce_generation_allowed(session, user=user, ip=ip)
    if advanced:
        needs = premium_requirements(body)
        if needs and not user.is_bot and not has_feature_access(session, user=user, feature=PREMIUM_FEATURE):
            raise AppError(code=403201, message=f"Premium feature required: {', '.join(needs)}", status_code=403)

    cost = 0 if user.is_bot else body.count * nuts_per_image()
    if user.nuts < cost:
        raise insufficient_nuts()

    try:
        if not user.is_bot:
            check_and_update_usage(session, user=user, nuts=cost, images=body.count)
        job = image_provider.generate(
            prompt=body.prompt,
            user_id=user.id,
            samples=body.count,
            width=body.width,
            height=body.height,
            model=body.model,
            negative_prompt=body.negative_prompt,
            seed=body.seed if advanced else None,
            steps=body.steps if advanced else None,
            guidance_scale=body.guidance_scale if advanced else None,
            lora=body.lora if advanced else None,
            lora_strength=body.lora_strength if advanced else None,
            upscale=body.upscale if advanced else False,
        )
    except AppError:
        session.rollback()
        raise

    user.nuts -= cost
    user.updated_at = utc_now()
    session.add(user)

    category = analyze_prompt_for_category(body.prompt, crud.category.list_all(session=session))
    seed = job.raw.get("seed") if job.raw else None
    per_image_cost = cost // body.count if body.count else 0
    rows: list[GeneratedImage] = []
    for i in range(body.count):
        link = job.future_links[i] if i < len(job.future_links) else None
        row = GeneratedImage(
            user_id=user.id,
            prompt=body.prompt,
            negative_prompt=body.negative_prompt,
            model=body.model,
            width=body.width,
            height=body.height,
            seed=seed if isinstance(seed, int) else None,
            steps=body.steps if advanced else None,
            guidance_scale=body.guidance_scale if advanced else None,
            status=MediaStatus.processing,
            task_id=job.task_id,
            eta=job.eta,
            future_links=[link] if link else [],
            is_public=body.is_public,
            cost_nuts=per_image_cost,
        )
        session.add(row)
        rows.append(row)
    session.flush()
    if category:
        for row in rows:
            session.add(ImageCategory(image_id=row.id, category_id=category.id))
    if not user.is_bot:
        rate_limit.record_generation(session, user=user, ip=ip)
    session.commit()
    logger.info("User %s submitted image task %s (%s images, %s nuts)", user.id, job.task_id, body.count, cost)

    if job.output:
        rows = reconcile_image_task(session, task_id=job.task_id, status="success", output=job.output)
    else:
        for row in rows:
            session.refresh(row)
    return {"task_id": job.task_id, "eta": job.eta, "nuts_spent": cost, "images": rows}


def reconcile_image_task(
    session: Session,
    *,
    task_id: str,
    status: str,
    output: list[str] | None = None,
    eta: float | None = None,
) -> list[GeneratedImage]:
    """
    Apply a provider status to the pending rows of a task

    - "success" with output: row i takes output i, copied to the CDN; a row
      without an output fails; a CDN failure completes the row with an
      empty image_url
    - "processing": eta is stored
    - anything else: every pending row fails

    Raises:
        AppError: 404 "No pending images found with this task ID"
    """
    rows = crud.media.images_by_task(session=session, task_id=task_id, status=MediaStatus.processing)
    if not rows:
        raise AppError(code=404205, message="No pending images found with this task ID", status_code=404)

    now = utc_now()
    if status == "success" and output:
        for i, row in enumerate(rows):
            if i >= len(output):
                row.status = MediaStatus.failed
            else:
                row.status = MediaStatus.completed
                row.progress = 100
                try:
                    stored = cdn_client.upload_from_url(url=output[i], folder="images", owner=row.user_id)
                    row.image_url = stored.cdn_url
                    row.path = stored.path
                    row.verified = now
                except AppError as e:
                    logger.error("CDN copy of %s failed for image %s: %s", output[i], row.id, e.message)
                    row.image_url = ""
            row.updated_at = now
            session.add(row)
    elif status == "processing":
        for row in rows:
            row.eta = eta
            row.updated_at = now
            session.add(row)
    else:
        for row in rows:
            row.status = MediaStatus.failed
            row.updated_at = now
            session.add(row)
    session.commit()
    for row in rows:
        session.refresh(row)
    logger.info("Task %s reconciled with status %s (%s rows)", task_id, status, len(rows))
    return rows


def task_status(session: Session, *, user: User, task_id: str) -> dict[str, Any]:
    """
    Status of a generation task, polling the provider while rows are pending

    Raises:
        AppError: 404 "No images found with this task ID"
    """
    rows = crud.media.images_by_task(session=session, task_id=task_id)
    if not (user.is_admin or user.is_bot):
        rows = [r for r in rows if r.user_id == user.id]
    if not rows:
        raise AppError(code=404203, message="No images found with this task ID", status_code=404)

    if not any(r.status == MediaStatus.processing for r in rows):
        return {"status": "completed", "progress": 100, "eta": None, "images": rows}

    job = image_provider.fetch(task_id=task_id)
    if job.status == "success" and job.output:
        reconcile_image_task(session, task_id=task_id, status="success", output=job.output)
    elif job.status in ("failed", "error"):
        reconcile_image_task(session, task_id=task_id, status="failed")
    elif job.eta is not None:
        reconcile_image_task(session, task_id=task_id, status="processing", eta=job.eta)

    progress = job.progress if job.progress is not None else STATUS_PROGRESS.get(job.status, DEFAULT_PROGRESS)
    rows = [r for r in crud.media.images_by_task(session=session, task_id=task_id) if r.id in {x.id for x in rows}]
    status = "completed" if job.status == "success" else job.status
    return {"status": status, "progress": progress, "eta": job.eta, "images": rows}


def delete_image(session: Session, *, image: GeneratedImage) -> None:
    """Delete the row, then the CDN object; a CDN failure is only logged"""
    path = image.path
    session.delete(image)
    session.commit()
    if path:
        try:
            cdn_client.delete_file(path=path)
        except AppError as e:
            logger.error("CDN delete of %s failed: %s", path, e.message)


def bulk_delete_images(session: Session, *, user: User, ids: list[int]) -> int:
    """
    Delete the caller's images among ids (any image for admins)

    Raises:
        AppError: 404 "No valid images found"
    """
    stmt = select(GeneratedImage).where(GeneratedImage.id.in_(ids))
    if not user.is_admin:
        stmt = stmt.where(GeneratedImage.user_id == user.id)
    images = list(session.exec(stmt).all())
    if not images:
        raise AppError(code=404204, message="No valid images found", status_code=404)
    paths = [img.path for img in images if img.path]
    for img in images:
        session.delete(img)
    session.commit()
    for path in paths:
        try:
            cdn_client.delete_file(path=path)
        except AppError as e:
            logger.error("CDN delete of %s failed: %s", path, e.message)
    logger.info("User %s bulk deleted %s images", user.id, len(images))
    return len(images)


EXPORT_FIELDS = [
    "id", "user_id", "prompt", "model", "width", "height", "status",
    "image_url", "is_public", "cost_nuts", "upvotes", "downvotes", "vote_score", "created_at",
]


def export_row(image: GeneratedImage) -> dict[str, Any]:
    row = {name: getattr(image, name) for name in EXPORT_FIELDS}
    row["id"] = str(image.id)
    row["user_id"] = str(image.user_id)
    row["status"] = image.status.value if isinstance(image.status, MediaStatus) else image.status
    row["created_at"] = image.created_at.isoformat() if image.created_at else None
    return row


def export_images_csv(images: list[GeneratedImage]) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=EXPORT_FIELDS)
    writer.writeheader()
    for image in images:
        writer.writerow(export_row(image))
    return buf.getvalue()
