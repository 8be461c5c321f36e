"""
Plan models

Sellable plans and the feature rows attached to them.
"""
from datetime import datetime

from sqlalchemy import JSON, BigInteger, Column, DateTime, ForeignKey, String
from sqlmodel import Field, SQLModel

from app.core.snowflake import generate_id

from .base import utc_now

# nuts_per_month value meaning "no monthly cap"
UNLIMITED_NUTS = -1
# balance written to the user when the plan is unlimited
UNLIMITED_NUTS_BALANCE = 999_999_999


class Plan(SQLModel, table=True):
    """
    Subscription plan

    Field notes:
    - nuts_per_month: monthly credit allowance, -1 for unlimited
    - monthly_price / yearly_price: prices in cents
    - features: feature flags copied onto the user when the plan is applied
    """
    __tablename__ = "plans"
    id: int = Field(
        default_factory=generate_id,
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False),
    )
    name: str = Field(sa_column=Column(String(64), unique=True, index=True, nullable=False))
    description: str | None = Field(default=None, max_length=500)
    nuts_per_month: int = Field(default=0)
    images_per_day: int = Field(default=10)
    images_per_generation: int = Field(default=1)
    monthly_price: int = Field(default=0)
    yearly_price: int = Field(default=0)
    is_active: bool = Field(default=True)
    features: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    @property
    def is_unlimited(self) -> bool:
        return self.nuts_per_month == UNLIMITED_NUTS


class PlanFeature(SQLModel, table=True):
    __tablename__ = "plan_features"
    id: int = Field(
        default_factory=generate_id,
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False),
    )
    plan_id: int = Field(
        sa_column=Column(
            BigInteger, ForeignKey("plans.id", ondelete="CASCADE"), index=True, nullable=False
        )
    )
    name: str = Field(max_length=64)
    description: str | None = Field(default=None, max_length=255)
    is_active: bool = Field(default=True)
