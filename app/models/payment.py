"""
Payment webhook event model

Stores processed gateway events for idempotency: Stripe and PayPal retry
deliveries with the same event id.
"""
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, BigInteger, Column, DateTime, String, UniqueConstraint
from sqlmodel import Field, SQLModel

from app.core.snowflake import generate_id
from app.enums import PaymentProvider

from .base import utc_now


class PaymentEvent(SQLModel, table=True):
    __tablename__ = "payment_events"
    __table_args__ = (UniqueConstraint("provider", "event_id", name="uq_payment_event_provider_id"),)

    id: int = Field(
        default_factory=generate_id,
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False),
    )
    provider: PaymentProvider = Field(sa_column=Column(String(16), nullable=False))
    event_id: str = Field(sa_column=Column(String(128), index=True, nullable=False))
    event_type: str = Field(max_length=64)
    payload: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
