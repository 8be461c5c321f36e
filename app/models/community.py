"""
Community models

Votes, comments and categories attached to generated images.
"""
from datetime import datetime

from sqlalchemy import JSON, BigInteger, Column, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlmodel import Field, SQLModel

from app.core.snowflake import generate_id
from app.enums import VoteType

from .base import utc_now


class ImageVote(SQLModel, table=True):
    """
    One vote per user per image (unique user_id + image_id)
    """
    __tablename__ = "image_votes"
    __table_args__ = (UniqueConstraint("user_id", "image_id", name="uq_image_vote_user_image"),)

    id: int = Field(
        default_factory=generate_id,
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False),
    )
    user_id: int = Field(
        sa_column=Column(
            BigInteger, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
        )
    )
    image_id: int = Field(
        sa_column=Column(
            BigInteger,
            ForeignKey("generated_images.id", ondelete="CASCADE"),
            index=True,
            nullable=False,
        )
    )
    vote_type: VoteType = Field(sa_column=Column(String(16), nullable=False))
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class ImageComment(SQLModel, table=True):
    __tablename__ = "image_comments"
    id: int = Field(
        default_factory=generate_id,
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False),
    )
    user_id: int = Field(
        sa_column=Column(
            BigInteger, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
        )
    )
    image_id: int = Field(
        sa_column=Column(
            BigInteger,
            ForeignKey("generated_images.id", ondelete="CASCADE"),
            index=True,
            nullable=False,
        )
    )
    comment: str = Field(sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class Category(SQLModel, table=True):
    """
    Image category

    keywords drive automatic categorisation of prompts.
    """
    __tablename__ = "categories"
    id: int = Field(
        default_factory=generate_id,
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False),
    )
    name: str = Field(sa_column=Column(String(64), unique=True, index=True, nullable=False))
    description: str | None = Field(default=None, max_length=500)
    keywords: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class ImageCategory(SQLModel, table=True):
    """Image ↔ category link"""
    __tablename__ = "image_categories"
    image_id: int = Field(
        sa_column=Column(
            BigInteger,
            ForeignKey("generated_images.id", ondelete="CASCADE"),
            primary_key=True,
            autoincrement=False,
        )
    )
    category_id: int = Field(
        sa_column=Column(
            BigInteger,
            ForeignKey("categories.id", ondelete="CASCADE"),
            primary_key=True,
            autoincrement=False,
        )
    )
