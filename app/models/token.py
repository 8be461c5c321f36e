"""
Auth token models

Short-lived tokens delivered by email: verification links, password reset
links and 4-digit login codes. One live token per email per kind.
"""
from datetime import datetime

from sqlalchemy import BigInteger, Column, DateTime, Integer, String
from sqlmodel import Field, SQLModel

from app.core.snowflake import generate_id

from .base import utc_now


class VerificationToken(SQLModel, table=True):
    """
    Email verification link

    user_id is set for email-change tokens: email is then the new address
    and is copied onto that user when the link is opened.
    """
    __tablename__ = "verification_tokens"
    id: int = Field(
        default_factory=generate_id,
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False),
    )
    email: str = Field(sa_column=Column(String(255), index=True, nullable=False))
    user_id: int | None = Field(default=None, sa_column=Column(BigInteger, nullable=True))
    token: str = Field(sa_column=Column(String(64), unique=True, index=True, nullable=False))
    expires: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class PasswordResetToken(SQLModel, table=True):
    __tablename__ = "password_reset_tokens"
    id: int = Field(
        default_factory=generate_id,
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False),
    )
    email: str = Field(sa_column=Column(String(255), index=True, nullable=False))
    token: str = Field(sa_column=Column(String(64), unique=True, index=True, nullable=False))
    expires: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class OtpConfirmation(SQLModel, table=True):
    __tablename__ = "otp_confirmations"
    id: int = Field(
        default_factory=generate_id,
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False),
    )
    email: str = Field(sa_column=Column(String(255), index=True, nullable=False))
    code: str = Field(sa_column=Column(String(8), nullable=False))
    failed_attempts: int = Field(default=0, sa_column=Column(Integer, nullable=False, server_default="0"))
    expires: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
