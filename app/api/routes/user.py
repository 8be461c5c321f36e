"""
User routes

Profile, account settings, account deletion, and the generation quota
views (free credits and cooldown).
"""
from __future__ import annotations

import logging

from fastapi import APIRouter

from app import crud
from app.api.deps import CurrentUser, SessionDep
from app.api.errors import AppError
from app.api.schemas import (
    ApiEnvelope,
    CreditsData,
    RateLimitData,
    UserProfile,
    UserProfileUpdateRequest,
    UserSettingsRequest,
)
from app.core import security
from app.models import utc_now
from app.services import email_service, rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/user", tags=["user"])


@router.get("/profile", response_model=ApiEnvelope)
def profile(current_user: CurrentUser) -> ApiEnvelope:
    """
    Current user's profile

    Request: GET /api/v1/user/profile

    Returns:
        ApiEnvelope: UserProfile with nuts balance, plan limits and
        moderation flags
    """
    return ApiEnvelope(data=UserProfile.model_validate(current_user))


@router.put("/profile", response_model=ApiEnvelope)
def update_profile(session: SessionDep, current_user: CurrentUser, body: UserProfileUpdateRequest) -> ApiEnvelope:
    """
    Update name and avatar; blank strings clear the field

    Request: PUT /api/v1/user/profile
    """
    if body.name is not None:
        current_user.name = body.name.strip() or None
    if body.image is not None:
        current_user.image = body.image.strip() or None
    current_user.updated_at = utc_now()
    session.add(current_user)
    session.commit()
    session.refresh(current_user)
    return ApiEnvelope(data=UserProfile.model_validate(current_user))


@router.put("/settings", response_model=ApiEnvelope)
def update_settings(session: SessionDep, current_user: CurrentUser, body: UserSettingsRequest) -> ApiEnvelope:
    """
    Account settings

    Request: PUT /api/v1/user/settings

    A new email is only applied once the link sent to it is opened. A new
    password requires the current one.

    Returns:
        ApiEnvelope: {"success": "Verification email sent!"} for an email
        change, otherwise {"success": "Settings Updated!"}

    Raises:
        AppError: 400 "Email already in use!" or "Incorrect password!"
    """
    if body.email and body.email.lower() != current_user.email.lower():
        if crud.user.get_by_email(session=session, email=body.email):
            raise AppError(code=400001, message="Email already in use!", status_code=400)
        token = crud.token.create_verification_token(session=session, email=body.email.lower(),
                                                     user_id=current_user.id)
        email_service.send_verification_email(email=token.email, token=token.token)
        return ApiEnvelope(data={"success": "Verification email sent!"})

    if body.new_password:
        if not body.password or not current_user.hashed_password or not security.verify_password(
            body.password, current_user.hashed_password
        ):
            raise AppError(code=400010, message="Incorrect password!", status_code=400)
        current_user.hashed_password = security.get_password_hash(body.new_password)

    if body.name is not None:
        current_user.name = body.name.strip() or None
    current_user.updated_at = utc_now()
    session.add(current_user)
    session.commit()
    return ApiEnvelope(data={"success": "Settings Updated!"})


@router.delete("/me", response_model=ApiEnvelope)
def delete_me(session: SessionDep, current_user: CurrentUser) -> ApiEnvelope:
    """
    Delete the account and everything that cascades from it

    Request: DELETE /api/v1/user/me
    """
    user_id = current_user.id
    crud.vote.delete_user_votes(session=session, user_id=user_id)
    session.delete(current_user)
    session.commit()
    logger.info("User %s deleted their account", user_id)
    return ApiEnvelope(data={"success": "Account deleted"})


@router.get("/credits", response_model=ApiEnvelope)
def credits(session: SessionDep, current_user: CurrentUser) -> ApiEnvelope:
    """
    Remaining free generations; -1 for subscribers

    Request: GET /api/v1/user/credits
    """
    return ApiEnvelope(data=CreditsData(**rate_limit.get_credits(session, user=current_user)))


@router.get("/rate-limit", response_model=ApiEnvelope)
def rate_limit_info(current_user: CurrentUser) -> ApiEnvelope:
    """
    Request: GET /api/v1/user/rate-limit

    Returns:
        ApiEnvelope: {"can_generate", "reset_in"} where reset_in is the
        cooldown left in seconds
    """
    return ApiEnvelope(data=RateLimitData(**rate_limit.get_rate_limit_info(current_user)))
