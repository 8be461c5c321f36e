"""
Image routes

Generation (simple and advanced), task status, galleries, search, detail,
edit and delete.
"""
from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Query

from app import crud
from app.api.deps import ClientIp, CurrentUser, OptionalUser, SessionDep
from app.api.errors import AppError, forbidden
from app.api.schemas import (
    ApiEnvelope,
    BulkDeleteRequest,
    GenerationData,
    ImageAdvancedRequest,
    ImageCreateRequest,
    ImageData,
    ImageUpdateRequest,
    Page,
    TaskStatusData,
)
from app.enums import MediaStatus
from app.models import GeneratedImage, User, utc_now
from app.services import image_service

router = APIRouter(prefix="/images", tags=["images"])


def _page(rows: list[GeneratedImage], total: int) -> Page:
    return Page(data=[ImageData.model_validate(r) for r in rows], count=total)


def _visible_image(session: SessionDep, image_id: int, user: User | None) -> GeneratedImage:
    image = crud.media.get_image_or_404(session=session, image_id=image_id)
    if image.is_public and image.status == MediaStatus.completed:
        return image
    if user and (user.id == image.user_id or user.is_admin):
        return image
    raise AppError(code=404201, message="Image not found", status_code=404)


@router.post("", response_model=ApiEnvelope)
def create_images(session: SessionDep, current_user: CurrentUser, ip: ClientIp,
                  body: ImageCreateRequest) -> ApiEnvelope:
    """
    Generate images from a prompt

    Request: POST /api/v1/images

    Costs count x nuts_per_image. The returned rows are "processing" until
    the provider webhook (or GET /images/status/{task_id}) completes them.

    Returns:
        ApiEnvelope: GenerationData {task_id, eta, nuts_spent, images}

    Raises:
        AppError: rate limit (403/429), "Insufficient nuts", usage limits (400),
            provider failures (502)
    """
    result = image_service.generate_images(session, user=current_user, ip=ip, body=body)
    return ApiEnvelope(data=GenerationData(
        task_id=result["task_id"],
        eta=result["eta"],
        nuts_spent=result["nuts_spent"],
        images=[ImageData.model_validate(r) for r in result["images"]],
    ))


@router.post("/advanced", response_model=ApiEnvelope)
def create_images_advanced(session: SessionDep, current_user: CurrentUser, ip: ClientIp,
                           body: ImageAdvancedRequest) -> ApiEnvelope:
    """
    Generate with explicit steps, guidance, seed, LoRA and upscale

    Request: POST /api/v1/images/advanced

    Resolutions above 1024px, more than 50 steps and upscaling need the
    premium_generation feature.

    Raises:
        AppError: 403 "Premium feature required: <what>" plus the errors of
            POST /images
    """
    result = image_service.generate_images(session, user=current_user, ip=ip, body=body)
    return ApiEnvelope(data=GenerationData(
        task_id=result["task_id"],
        eta=result["eta"],
        nuts_spent=result["nuts_spent"],
        images=[ImageData.model_validate(r) for r in result["images"]],
    ))


@router.get("/status/{task_id}", response_model=ApiEnvelope)
def task_status(session: SessionDep, current_user: CurrentUser, task_id: str) -> ApiEnvelope:
    """
    Request: GET /api/v1/images/status/{task_id}

    Raises:
        AppError: 404 "No images found with this task ID"
    """
    result = image_service.task_status(session, user=current_user, task_id=task_id)
    return ApiEnvelope(data=TaskStatusData(
        status=result["status"],
        progress=result["progress"],
        eta=result["eta"],
        images=[ImageData.model_validate(r) for r in result["images"]],
    ))


@router.get("", response_model=ApiEnvelope)
def my_images(
    session: SessionDep,
    current_user: CurrentUser,
    status: MediaStatus | None = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
) -> ApiEnvelope:
    """Request: GET /api/v1/images"""
    rows, total = crud.media.list_user_images(
        session=session, user_id=current_user.id, status=status, page=page, page_size=page_size
    )
    return ApiEnvelope(data=_page(rows, total))


@router.get("/public", response_model=ApiEnvelope)
def public_images(
    session: SessionDep,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    sort: Literal["recent", "top"] = "recent",
    category_id: int | None = None,
) -> ApiEnvelope:
    """
    Public gallery; sort=top orders by vote score

    Request: GET /api/v1/images/public
    """
    rows, total = crud.media.list_public_images(
        session=session, page=page, page_size=page_size, sort=sort, category_id=category_id
    )
    return ApiEnvelope(data=_page(rows, total))


@router.get("/search", response_model=ApiEnvelope)
def search_images(
    session: SessionDep,
    q: str = Query(min_length=1, max_length=200),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
) -> ApiEnvelope:
    """Request: GET /api/v1/images/search?q="""
    rows, total = crud.media.search_public_images(session=session, query=q, page=page, page_size=page_size)
    return ApiEnvelope(data=_page(rows, total))


@router.post("/bulk-delete", response_model=ApiEnvelope)
def bulk_delete(session: SessionDep, current_user: CurrentUser, body: BulkDeleteRequest) -> ApiEnvelope:
    """
    Request: POST /api/v1/images/bulk-delete

    Ids the caller does not own are skipped (admins may delete any).

    Raises:
        AppError: 404 "No valid images found"
    """
    deleted = image_service.bulk_delete_images(session, user=current_user, ids=body.ids)
    return ApiEnvelope(data={"deleted": deleted})


@router.get("/{image_id}", response_model=ApiEnvelope)
def get_image(session: SessionDep, current_user: OptionalUser, image_id: int) -> ApiEnvelope:
    """
    Request: GET /api/v1/images/{image_id}

    Public completed images are visible to everyone, others only to the
    owner and admins.

    Raises:
        AppError: 404 "Image not found"
    """
    image = _visible_image(session, image_id, current_user)
    data = ImageData.model_validate(image)
    data.category_ids = crud.category.image_category_ids(session=session, image_id=image.id)
    return ApiEnvelope(data=data)


@router.get("/{image_id}/related", response_model=ApiEnvelope)
def related(session: SessionDep, current_user: OptionalUser, image_id: int,
            limit: int = Query(default=8, ge=1, le=50)) -> ApiEnvelope:
    """Public images sharing a category; Request: GET /api/v1/images/{image_id}/related"""
    image = _visible_image(session, image_id, current_user)
    rows = crud.media.related_images(session=session, image=image, limit=limit)
    return ApiEnvelope(data=[ImageData.model_validate(r) for r in rows])


@router.put("/{image_id}", response_model=ApiEnvelope)
def update_image(session: SessionDep, current_user: CurrentUser, image_id: int,
                 body: ImageUpdateRequest) -> ApiEnvelope:
    """
    Request: PUT /api/v1/images/{image_id}

    Owners may change prompt and visibility; status and categories are
    admin only.

    Raises:
        AppError: 404 "Image not found", 403 "Forbidden"
    """
    image = crud.media.get_image_or_404(session=session, image_id=image_id)
    if image.user_id != current_user.id and not current_user.is_admin:
        raise AppError(code=404201, message="Image not found", status_code=404)
    if (body.status is not None or body.category_ids is not None) and not current_user.is_admin:
        raise forbidden()

    if body.prompt is not None:
        image.prompt = body.prompt
    if body.is_public is not None:
        image.is_public = body.is_public
    if body.status is not None:
        image.status = MediaStatus(body.status)
    if body.category_ids is not None:
        for category_id in body.category_ids:
            crud.category.get_or_404(session=session, category_id=category_id)
        crud.category.replace_image_categories(session=session, image_id=image.id, category_ids=body.category_ids)
    image.updated_at = utc_now()
    session.add(image)
    session.commit()
    session.refresh(image)
    data = ImageData.model_validate(image)
    data.category_ids = crud.category.image_category_ids(session=session, image_id=image.id)
    return ApiEnvelope(data=data)


@router.delete("/{image_id}", response_model=ApiEnvelope)
def delete_image(session: SessionDep, current_user: CurrentUser, image_id: int) -> ApiEnvelope:
    """
    Request: DELETE /api/v1/images/{image_id}

    The CDN copy is removed after the row; a CDN failure is only logged.

    Raises:
        AppError: 404 "Image not found"
    """
    image = crud.media.get_image_or_404(session=session, image_id=image_id)
    if image.user_id != current_user.id and not current_user.is_admin:
        raise AppError(code=404201, message="Image not found", status_code=404)
    image_service.delete_image(session, image=image)
    return ApiEnvelope(data={"deleted": image_id})
