"""Email token CRUD operations"""
import secrets
from datetime import timedelta

from sqlmodel import Session, delete, select

from app.core.security import generate_otp, generate_token
from app.models import OtpConfirmation, PasswordResetToken, VerificationToken, utc_now

TOKEN_TTL = timedelta(hours=1)
MAX_OTP_ATTEMPTS = 5


def create_verification_token(*, session: Session, email: str, user_id: int | None = None) -> VerificationToken:
    """
    New verification token; any previous one for the email is dropped

    Pass user_id when the token confirms a change of address.
    """
    session.exec(delete(VerificationToken).where(VerificationToken.email == email))
    token = VerificationToken(email=email, user_id=user_id, token=generate_token(), expires=utc_now() + TOKEN_TTL)
    session.add(token)
    session.commit()
    session.refresh(token)
    return token


def get_verification_token(*, session: Session, token: str) -> VerificationToken | None:
    return session.exec(select(VerificationToken).where(VerificationToken.token == token)).first()


def create_password_reset_token(*, session: Session, email: str) -> PasswordResetToken:
    session.exec(delete(PasswordResetToken).where(PasswordResetToken.email == email))
    token = PasswordResetToken(email=email, token=generate_token(), expires=utc_now() + TOKEN_TTL)
    session.add(token)
    session.commit()
    session.refresh(token)
    return token


def get_password_reset_token(*, session: Session, token: str) -> PasswordResetToken | None:
    return session.exec(select(PasswordResetToken).where(PasswordResetToken.token == token)).first()


def create_otp(*, session: Session, email: str) -> OtpConfirmation:
    session.exec(delete(OtpConfirmation).where(OtpConfirmation.email == email))
    otp = OtpConfirmation(email=email, code=generate_otp(), expires=utc_now() + TOKEN_TTL)
    session.add(otp)
    session.commit()
    session.refresh(otp)
    return otp


def get_otp(*, session: Session, email: str) -> OtpConfirmation | None:
    return session.exec(select(OtpConfirmation).where(OtpConfirmation.email == email)).first()


def check_otp(*, session: Session, email: str, code: str) -> OtpConfirmation | None:
    """
    Matching OTP for the email, or None

    Every mismatch is counted on the stored code; after MAX_OTP_ATTEMPTS
    misses the code is deleted and a new one has to be requested.
    """
    otp = get_otp(session=session, email=email)
    if otp is None:
        return None
    if secrets.compare_digest(otp.code.encode(), code.encode()):
        return otp
    otp.failed_attempts += 1
    if otp.failed_attempts >= MAX_OTP_ATTEMPTS:
        session.delete(otp)
    else:
        session.add(otp)
    session.commit()
    return None
