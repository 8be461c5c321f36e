"""
Admin routes

User moderation, subscription removal, image moderation and export, and
category management. Every endpoint requires the ADMIN role.
"""
from __future__ import annotations

import logging
from typing import Literal

from fastapi import APIRouter, Query, Response

from app import crud
from app.api.deps import AdminUser, SessionDep
from app.api.routes.categories import category_data
from app.api.schemas import (
    ApiEnvelope,
    BanRequest,
    CategoryRequest,
    CategoryUpdateRequest,
    ImageData,
    Page,
    SetNutsRequest,
    SuspendRequest,
    UserProfile,
)
from app.enums import MediaStatus
from app.services import image_service, moderation, subscription_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


# ============================================================
# Users
# ============================================================


@router.get("/users", response_model=ApiEnvelope)
def list_users(
    session: SessionDep,
    _: AdminUser,
    search: str | None = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
) -> ApiEnvelope:
    """
    Users matching a name/email search, newest first

    Request: GET /api/v1/admin/users
    """
    users, total = crud.user.search(session=session, query=search, page=page, page_size=page_size)
    return ApiEnvelope(data=Page(data=[UserProfile.model_validate(u) for u in users], count=total))


@router.post("/users/{user_id}/suspend", response_model=ApiEnvelope)
def suspend_user(session: SessionDep, _: AdminUser, user_id: int, body: SuspendRequest) -> ApiEnvelope:
    """
    Request: POST /api/v1/admin/users/{user_id}/suspend

    duration like "7d", "2w", "1m" or "1y"; without it the suspension is
    indefinite.
    """
    user = crud.user.get_or_404(session=session, user_id=user_id)
    user = moderation.suspend(session, user=user, reason=body.reason, duration=body.duration)
    return ApiEnvelope(data=UserProfile.model_validate(user))


@router.post("/users/{user_id}/unsuspend", response_model=ApiEnvelope)
def unsuspend_user(session: SessionDep, _: AdminUser, user_id: int) -> ApiEnvelope:
    """Request: POST /api/v1/admin/users/{user_id}/unsuspend"""
    user = crud.user.get_or_404(session=session, user_id=user_id)
    return ApiEnvelope(data=UserProfile.model_validate(moderation.unsuspend(session, user=user)))


@router.post("/users/{user_id}/ban", response_model=ApiEnvelope)
def ban_user(session: SessionDep, admin: AdminUser, user_id: int, body: BanRequest) -> ApiEnvelope:
    """
    Ban and suspend an account

    Request: POST /api/v1/admin/users/{user_id}/ban

    Raises:
        AppError: 400 when an admin bans themselves
    """
    user = crud.user.get_or_404(session=session, user_id=user_id)
    user = moderation.ban(session, user=user, reason=body.reason, admin=admin)
    return ApiEnvelope(data=UserProfile.model_validate(user))


@router.post("/users/{user_id}/unban", response_model=ApiEnvelope)
def unban_user(session: SessionDep, _: AdminUser, user_id: int) -> ApiEnvelope:
    """Clears both the ban and the suspension; Request: POST /api/v1/admin/users/{user_id}/unban"""
    user = crud.user.get_or_404(session=session, user_id=user_id)
    return ApiEnvelope(data=UserProfile.model_validate(moderation.unban(session, user=user)))


@router.put("/users/{user_id}/nuts", response_model=ApiEnvelope)
def set_user_nuts(session: SessionDep, _: AdminUser, user_id: int, body: SetNutsRequest) -> ApiEnvelope:
    """Request: PUT /api/v1/admin/users/{user_id}/nuts"""
    user = crud.user.get_or_404(session=session, user_id=user_id)
    return ApiEnvelope(data=UserProfile.model_validate(moderation.set_nuts(session, user=user, nuts=body.nuts)))


@router.delete("/users/{user_id}/votes", response_model=ApiEnvelope)
def delete_user_votes(session: SessionDep, _: AdminUser, user_id: int) -> ApiEnvelope:
    """
    Remove every vote of a user and recount the affected images

    Request: DELETE /api/v1/admin/users/{user_id}/votes
    """
    crud.user.get_or_404(session=session, user_id=user_id)
    deleted = crud.vote.delete_user_votes(session=session, user_id=user_id)
    logger.info("Deleted %s votes of user %s", deleted, user_id)
    return ApiEnvelope(data={"deleted": deleted})


@router.delete("/subscriptions/{user_id}", response_model=ApiEnvelope)
def delete_subscription(session: SessionDep, _: AdminUser, user_id: int) -> ApiEnvelope:
    """
    Drop a user's subscription and put them on the Free plan

    Request: DELETE /api/v1/admin/subscriptions/{user_id}

    Raises:
        AppError: 404 "Subscription not found"
    """
    user = crud.user.get_or_404(session=session, user_id=user_id)
    subscription_service.delete_subscription(session, user=user)
    return ApiEnvelope(data={"success": "Subscription deleted"})


# ============================================================
# Images
# ============================================================


@router.get("/images", response_model=ApiEnvelope)
def list_images(
    session: SessionDep,
    _: AdminUser,
    status: MediaStatus | None = None,
    q: str | None = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
) -> ApiEnvelope:
    """Request: GET /api/v1/admin/images"""
    rows, total = crud.media.list_admin_images(
        session=session, status=status, query=q, page=page, page_size=page_size
    )
    return ApiEnvelope(data=Page(data=[ImageData.model_validate(r) for r in rows], count=total))


@router.get("/images/stats", response_model=ApiEnvelope)
def image_stats(session: SessionDep, _: AdminUser) -> ApiEnvelope:
    """
    Request: GET /api/v1/admin/images/stats

    Returns:
        ApiEnvelope: {total, by_status, public, private, total_comments,
        avg_comments_per_image}
    """
    return ApiEnvelope(data=crud.media.image_stats(session=session))


@router.get("/images/export", response_model=None)
def export_images(
    session: SessionDep, _: AdminUser, format: Literal["csv", "json"] = "json"
) -> ApiEnvelope | Response:
    """
    Every image as CSV (attachment) or JSON

    Request: GET /api/v1/admin/images/export?format=csv|json
    """
    images = crud.media.list_all_images(session=session)
    if format == "csv":
        return Response(
            content=image_service.export_images_csv(images),
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="images.csv"'},
        )
    return ApiEnvelope(data=[image_service.export_row(i) for i in images])


@router.post("/images/{image_id}/categories/{category_id}", response_model=ApiEnvelope)
def assign_category(session: SessionDep, _: AdminUser, image_id: int, category_id: int) -> ApiEnvelope:
    """
    Request: POST /api/v1/admin/images/{image_id}/categories/{category_id}

    Raises:
        AppError: 404 image / category missing, 409 "Category already assigned"
    """
    crud.media.get_image_or_404(session=session, image_id=image_id)
    crud.category.get_or_404(session=session, category_id=category_id)
    crud.category.assign(session=session, image_id=image_id, category_id=category_id)
    return ApiEnvelope(data={"image_id": image_id, "category_id": category_id})


@router.delete("/images/{image_id}/categories/{category_id}", response_model=ApiEnvelope)
def remove_category(session: SessionDep, _: AdminUser, image_id: int, category_id: int) -> ApiEnvelope:
    """Request: DELETE /api/v1/admin/images/{image_id}/categories/{category_id}"""
    crud.category.remove(session=session, image_id=image_id, category_id=category_id)
    return ApiEnvelope(data={"image_id": image_id, "category_id": category_id})


# ============================================================
# Categories
# ============================================================


@router.post("/categories", response_model=ApiEnvelope)
def create_category(session: SessionDep, _: AdminUser, body: CategoryRequest) -> ApiEnvelope:
    """
    Request: POST /api/v1/admin/categories

    Raises:
        AppError: 409 "Category already exists"
    """
    category = crud.category.create(
        session=session, name=body.name, description=body.description, keywords=body.keywords
    )
    return ApiEnvelope(data=category_data(category))


@router.put("/categories/{category_id}", response_model=ApiEnvelope)
def update_category(session: SessionDep, _: AdminUser, category_id: int,
                    body: CategoryUpdateRequest) -> ApiEnvelope:
    """Request: PUT /api/v1/admin/categories/{category_id}"""
    category = crud.category.get_or_404(session=session, category_id=category_id)
    category = crud.category.update(
        session=session, category=category, name=body.name, description=body.description, keywords=body.keywords
    )
    count = crud.category.image_counts(session=session).get(category.id, 0)
    return ApiEnvelope(data=category_data(category, count))


@router.delete("/categories/{category_id}", response_model=ApiEnvelope)
def delete_category(session: SessionDep, _: AdminUser, category_id: int) -> ApiEnvelope:
    """Request: DELETE /api/v1/admin/categories/{category_id}"""
    category = crud.category.get_or_404(session=session, category_id=category_id)
    crud.category.delete_category(session=session, category=category)
    return ApiEnvelope(data={"deleted": category_id})
