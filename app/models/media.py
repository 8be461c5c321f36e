"""
Generated media models

Images and videos produced by the inference providers. Rows are created in
the "processing" state with the provider task id and completed by the
generation webhooks (or by status polling).
"""
from datetime import datetime

from sqlalchemy import JSON, BigInteger, Column, DateTime, ForeignKey, String, Text
from sqlmodel import Field, SQLModel

from app.core.snowflake import generate_id
from app.enums import MediaStatus

from .base import utc_now


class GeneratedImage(SQLModel, table=True):
    """
    Generated image

    Field notes:
    - task_id: provider job id, shared by every image of one request
    - future_links: URLs the provider announced before the job finished
    - path: object path on the CDN storage zone (used for deletion)
    - verified: when the CDN copy was confirmed
    - upvotes / downvotes / vote_score: denormalised vote tallies
    """
    __tablename__ = "generated_images"
    id: int = Field(
        default_factory=generate_id,
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False),
    )
    user_id: int = Field(
        sa_column=Column(
            BigInteger, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
        )
    )
    prompt: str = Field(sa_column=Column(Text, nullable=False))
    negative_prompt: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    model: str = Field(default="flux", max_length=32)
    width: int = Field(default=1024)
    height: int = Field(default=1024)
    seed: int | None = Field(default=None, sa_column=Column(BigInteger, nullable=True))
    steps: int | None = Field(default=None)
    guidance_scale: float | None = Field(default=None)

    status: MediaStatus = Field(
        default=MediaStatus.processing, sa_column=Column(String(16), index=True, nullable=False)
    )
    task_id: str | None = Field(default=None, sa_column=Column(String(128), index=True, nullable=True))
    eta: float | None = Field(default=None)
    progress: int = Field(default=0)
    future_links: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    image_url: str | None = Field(default=None, max_length=1024)
    path: str | None = Field(default=None, max_length=512)
    verified: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    is_public: bool = Field(default=True)
    cost_nuts: int = Field(default=0)

    upvotes: int | None = Field(default=0)
    downvotes: int | None = Field(default=0)
    vote_score: int | None = Field(default=0)

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), index=True, nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class GeneratedVideo(SQLModel, table=True):
    """
    Generated video

    Same lifecycle as GeneratedImage. source_image_url is set for
    image-to-video jobs.
    """
    __tablename__ = "generated_videos"
    id: int = Field(
        default_factory=generate_id,
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False),
    )
    user_id: int = Field(
        sa_column=Column(
            BigInteger, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
        )
    )
    prompt: str = Field(sa_column=Column(Text, nullable=False))
    negative_prompt: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    width: int = Field(default=848)
    height: int = Field(default=480)
    fps: int = Field(default=24)
    frames: int = Field(default=81)
    steps: int = Field(default=50)
    seed: int | None = Field(default=None, sa_column=Column(BigInteger, nullable=True))
    source_image_url: str | None = Field(default=None, max_length=1024)

    status: MediaStatus = Field(
        default=MediaStatus.processing, sa_column=Column(String(16), index=True, nullable=False)
    )
    task_id: str | None = Field(default=None, sa_column=Column(String(128), index=True, nullable=True))
    eta: float | None = Field(default=None)
    progress: int = Field(default=0)
    future_links: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    video_url: str | None = Field(default=None, max_length=1024)
    path: str | None = Field(default=None, max_length=512)
    verified: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    is_public: bool = Field(default=True)
    cost_nuts: int = Field(default=0)

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), index=True, nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
