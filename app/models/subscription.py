"""
Subscription models

Current subscription per user, its audit trail and monthly usage.
"""
from datetime import datetime

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, String
from sqlmodel import Field, SQLModel

from app.core.snowflake import generate_id
from app.enums import BillingCycle, SubscriptionAction, SubscriptionStatus

from .base import utc_now


class Subscription(SQLModel, table=True):
    """
    Subscription record

    A user has at most one row (unique user_id); replacing a plan rewrites it.

    Field notes:
    - status: ACTIVE / CANCELLED / EXPIRED
    - end_date: access ends here; next_billing_date mirrors it for renewals
    - payment_method: "stripe", "paypal", a gateway reference or "admin"
    """
    __tablename__ = "subscriptions"
    id: int = Field(
        default_factory=generate_id,
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False),
    )
    user_id: int = Field(
        sa_column=Column(
            BigInteger,
            ForeignKey("users.id", ondelete="CASCADE"),
            index=True,
            unique=True,
            nullable=False,
        )
    )
    plan_id: int = Field(
        sa_column=Column(BigInteger, ForeignKey("plans.id"), index=True, nullable=False)
    )
    status: SubscriptionStatus = Field(sa_column=Column(String(16), nullable=False))
    billing_cycle: BillingCycle = Field(sa_column=Column(String(16), nullable=False))

    start_date: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    end_date: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    next_billing_date: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    payment_method: str | None = Field(default=None, max_length=128)
    cancel_reason: str | None = Field(default=None, max_length=500)
    cancelled_at: datetime | None = Field(
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


class SubscriptionHistory(SQLModel, table=True):
    """
    Subscription audit trail

    One row per lifecycle event; amount is in cents for the billed cycle.
    """
    __tablename__ = "subscription_history"
    id: int = Field(
        default_factory=generate_id,
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False),
    )
    user_id: int = Field(
        sa_column=Column(
            BigInteger, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
        )
    )
    plan_id: int = Field(sa_column=Column(BigInteger, ForeignKey("plans.id"), nullable=False))
    action: SubscriptionAction = Field(sa_column=Column(String(16), nullable=False))
    billing_cycle: BillingCycle | None = Field(
        default=None, sa_column=Column(String(16), nullable=True)
    )
    amount: int = Field(default=0)
    reason: str | None = Field(default=None, max_length=500)
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class UsageRecord(SQLModel, table=True):
    """
    Monthly usage counters

    A new row starts whenever the calendar month changes.
    """
    __tablename__ = "usage_records"
    id: int = Field(
        default_factory=generate_id,
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False),
    )
    user_id: int = Field(
        sa_column=Column(
            BigInteger, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
        )
    )
    period_start: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    period_end: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    nuts_used: int = Field(default=0)
    images_generated: int = Field(default=0)
    videos_generated: int = Field(default=0)
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
