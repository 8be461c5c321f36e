"""
User models

Accounts, their credit balance, plan limits and moderation flags.
"""
from datetime import datetime

from sqlalchemy import JSON, BigInteger, Column, DateTime, ForeignKey, String, UniqueConstraint
from sqlmodel import Field, SQLModel

from app.core.snowflake import generate_id
from app.enums import UserRole

from .base import utc_now


class User(SQLModel, table=True):
    """
    User account

    Field notes:
    - nuts: current credit balance, refilled when a plan is applied
    - images_per_day / images_per_generation: limits copied from the active plan
    - features: feature flags granted by the plan or by an admin
    - free_generations_used / free_generations_limit: free tier generation cap
    - last_generation_at: drives the per-user generation cooldown
    - is_banned / is_suspended: moderation state, a ban implies a suspension
    """
    __tablename__ = "users"
    id: int = Field(
        default_factory=generate_id,
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False),
    )
    email: str = Field(
        max_length=255,
        sa_column=Column(String(255), unique=True, index=True, nullable=False),
    )
    hashed_password: str | None = Field(default=None, max_length=255)
    name: str | None = Field(default=None, max_length=100)
    image: str | None = Field(default=None, max_length=512)
    role: UserRole = Field(
        default=UserRole.user, sa_column=Column(String(16), nullable=False)
    )
    email_verified: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )

    nuts: int = Field(default=0)
    images_per_day: int = Field(default=10)
    images_per_generation: int = Field(default=1)
    daily_images: int = Field(default=0)
    features: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    last_image_reset: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )

    free_generations_used: int = Field(default=0)
    free_generations_limit: int = Field(default=10)
    last_generation_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )

    is_banned: bool = Field(default=False)
    banned_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    ban_reason: str | None = Field(default=None, max_length=500)
    banned_by: int | None = Field(default=None, sa_column=Column(BigInteger, nullable=True))
    is_suspended: bool = Field(default=False)
    suspended_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    suspension_reason: str | None = Field(default=None, max_length=500)
    suspension_expires_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin

    @property
    def is_bot(self) -> bool:
        return self.role == UserRole.bot


class GenerationIp(SQLModel, table=True):
    """
    IP address seen on a generation request

    One row per (user, ip). Counting rows per ip finds shared networks,
    counting rows per user finds device hopping.
    """
    __tablename__ = "generation_ips"
    __table_args__ = (UniqueConstraint("user_id", "ip", name="uq_generation_ip_user_ip"),)

    id: int = Field(
        default_factory=generate_id,
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False),
    )
    user_id: int = Field(
        sa_column=Column(
            BigInteger, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
        )
    )
    ip: str = Field(sa_column=Column(String(64), index=True, nullable=False))
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
