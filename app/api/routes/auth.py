"""
Auth routes

Email + password accounts with email verification, a 4-digit login code for
unverified accounts, and password reset by link or code.
"""
from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter
from sqlmodel import delete

from app import crud
from app.api.deps import SessionDep
from app.api.errors import AppError
from app.api.schemas import (
    ApiEnvelope,
    EmailRequest,
    LoginChallengeData,
    LoginData,
    LoginRequest,
    NewPasswordRequest,
    RegisterRequest,
    UserProfile,
    VerifyEmailRequest,
)
from app.core import security
from app.core.config import settings
from app.enums import UserRole
from app.models import OtpConfirmation, PasswordResetToken, User, as_utc, utc_now
from app.services import email_service
from app.services.subscription_service import apply_free_plan

router = APIRouter(prefix="/auth", tags=["auth"])

CONFIRMATION_SENT = "Confirmation email sent!"


@router.post("/register", response_model=ApiEnvelope)
def register(session: SessionDep, body: RegisterRequest) -> ApiEnvelope:
    """
    Create an account and send the verification link

    Request: POST /api/v1/auth/register

    The account starts on the Free plan. Registering with ADMIN_EMAIL grants
    the ADMIN role.

    Raises:
        AppError: 400 "Email already in use!"
    """
    if crud.user.get_by_email(session=session, email=body.email):
        raise AppError(code=400001, message="Email already in use!", status_code=400)
    role = UserRole.user
    if settings.ADMIN_EMAIL and body.email.lower() == settings.ADMIN_EMAIL.lower():
        role = UserRole.admin
    user = crud.user.create(session=session, email=body.email, password=body.password, name=body.name, role=role)
    apply_free_plan(session, user)
    session.commit()

    token = crud.token.create_verification_token(session=session, email=user.email)
    email_service.send_verification_email(email=user.email, token=token.token)
    return ApiEnvelope(data={"success": CONFIRMATION_SENT})


@router.post("/login", response_model=ApiEnvelope)
def login(session: SessionDep, body: LoginRequest) -> ApiEnvelope:
    """
    Password login

    Request: POST /api/v1/auth/login

    An unverified account first receives a code by email
    ({"two_factor": true}); sending that code with the password verifies the
    email and logs in.

    Returns:
        ApiEnvelope: LoginData, or LoginChallengeData when a code was sent

    Raises:
        AppError: 400 "Email does not exist!", "Invalid credentials!",
            "Invalid code!" or "Code expired!"
    """
    user = crud.user.get_by_email(session=session, email=body.email)
    if not user or not user.hashed_password:
        raise AppError(code=400002, message="Email does not exist!", status_code=400)
    if not security.verify_password(body.password, user.hashed_password):
        raise AppError(code=400003, message="Invalid credentials!", status_code=400)

    if not user.email_verified:
        if not body.code:
            otp = crud.token.create_otp(session=session, email=user.email)
            email_service.send_otp_email(email=user.email, code=otp.code)
            return ApiEnvelope(data=LoginChallengeData(success=CONFIRMATION_SENT))
        otp = crud.token.check_otp(session=session, email=user.email, code=body.code)
        if not otp:
            raise AppError(code=400004, message="Invalid code!", status_code=400)
        if as_utc(otp.expires) < utc_now():
            raise AppError(code=400005, message="Code expired!", status_code=400)
        user.email_verified = utc_now()
        session.add(user)
        session.delete(otp)
        session.commit()
        session.refresh(user)

    expires = timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS)
    data = LoginData(
        access_token=security.create_access_token(user.id, expires_delta=expires),
        expires_in=int(expires.total_seconds()),
        user=UserProfile.model_validate(user),
    )
    return ApiEnvelope(data=data)


@router.post("/verify-email", response_model=ApiEnvelope)
def verify_email(session: SessionDep, body: VerifyEmailRequest) -> ApiEnvelope:
    """
    Open a verification link

    Request: POST /api/v1/auth/verify-email

    Raises:
        AppError: 400 "Token does not exist!", "Token has expired!",
            "Email does not exist!" or "Email already in use!"
    """
    token = crud.token.get_verification_token(session=session, token=body.token)
    if not token:
        raise AppError(code=400006, message="Token does not exist!", status_code=400)
    if as_utc(token.expires) < utc_now():
        raise AppError(code=400007, message="Token has expired!", status_code=400)

    if token.user_id is not None:
        user = session.get(User, token.user_id)
        owner = crud.user.get_by_email(session=session, email=token.email)
        if owner and user and owner.id != user.id:
            raise AppError(code=400001, message="Email already in use!", status_code=400)
    else:
        user = crud.user.get_by_email(session=session, email=token.email)
    if not user:
        raise AppError(code=400002, message="Email does not exist!", status_code=400)

    user.email = token.email
    user.email_verified = utc_now()
    user.updated_at = utc_now()
    session.add(user)
    session.delete(token)
    session.commit()
    return ApiEnvelope(data={"success": "Email verified!"})


@router.post("/send-code", response_model=ApiEnvelope)
def send_code(session: SessionDep, body: EmailRequest) -> ApiEnvelope:
    """
    Email a fresh login code

    Request: POST /api/v1/auth/send-code

    Raises:
        AppError: 400 "Email does not exist!"
    """
    user = crud.user.get_by_email(session=session, email=body.email)
    if not user:
        raise AppError(code=400002, message="Email does not exist!", status_code=400)
    otp = crud.token.create_otp(session=session, email=user.email)
    email_service.send_otp_email(email=user.email, code=otp.code)
    return ApiEnvelope(data={"success": CONFIRMATION_SENT})


@router.post("/reset", response_model=ApiEnvelope)
def reset(session: SessionDep, body: EmailRequest) -> ApiEnvelope:
    """
    Request: POST /api/v1/auth/reset

    Raises:
        AppError: 404 "Email not found!"
    """
    user = crud.user.get_by_email(session=session, email=body.email)
    if not user:
        raise AppError(code=404002, message="Email not found!", status_code=404)
    token = crud.token.create_password_reset_token(session=session, email=user.email)
    email_service.send_password_reset_email(email=user.email, token=token.token)
    return ApiEnvelope(data={"success": "Reset email sent!"})


@router.post("/new-password", response_model=ApiEnvelope)
def new_password(session: SessionDep, body: NewPasswordRequest) -> ApiEnvelope:
    """
    Set a new password from a reset link (type="token") or an emailed code
    (type="otp", with email)

    Request: POST /api/v1/auth/new-password

    Raises:
        AppError: 400 "Missing token!", "Invalid token!", "Token has expired!"
            or "Email does not exist!"
    """
    if not body.token:
        raise AppError(code=400008, message="Missing token!", status_code=400)

    if body.type == "otp":
        if not body.email:
            raise AppError(code=400008, message="Missing token!", status_code=400)
        otp = crud.token.check_otp(session=session, email=body.email.lower(), code=body.token)
        if not otp:
            raise AppError(code=400009, message="Invalid token!", status_code=400)
        email, expires = otp.email, otp.expires
        cleanup = delete(OtpConfirmation).where(OtpConfirmation.id == otp.id)
    else:
        reset_token = crud.token.get_password_reset_token(session=session, token=body.token)
        if not reset_token:
            raise AppError(code=400009, message="Invalid token!", status_code=400)
        email, expires = reset_token.email, reset_token.expires
        cleanup = delete(PasswordResetToken).where(PasswordResetToken.id == reset_token.id)

    if as_utc(expires) < utc_now():
        raise AppError(code=400007, message="Token has expired!", status_code=400)
    user = crud.user.get_by_email(session=session, email=email)
    if not user:
        raise AppError(code=400002, message="Email does not exist!", status_code=400)

    session.exec(cleanup)
    crud.user.set_password(session=session, user=user, password=body.password)
    return ApiEnvelope(data={"success": "Password updated!"})
