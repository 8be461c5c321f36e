"""
Companion models

AI personas owned by a user and their chat transcript.
"""
from datetime import datetime

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, String, Text
from sqlmodel import Field, SQLModel

from app.core.snowflake import generate_id
from app.enums import Appearance, ChatRole, Personality

from .base import utc_now


class Character(SQLModel, table=True):
    """
    Companion persona

    Field notes:
    - system_prompt: built from name, personality and description at creation
    - portrait_seed: random seed reused for consistent portraits
    - voice_id: ElevenLabs voice, the configured default when empty
    - is_active: False once the owner deletes it (soft delete)
    """
    __tablename__ = "characters"
    id: int = Field(
        default_factory=generate_id,
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False),
    )
    user_id: int = Field(
        sa_column=Column(
            BigInteger, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
        )
    )
    name: str = Field(max_length=50)
    slug: str = Field(sa_column=Column(String(80), index=True, nullable=False))
    description: str | None = Field(default=None, max_length=500)
    personality: Personality = Field(sa_column=Column(String(16), nullable=False))
    appearance: Appearance = Field(sa_column=Column(String(16), nullable=False))
    system_prompt: str = Field(sa_column=Column(Text, nullable=False))
    portrait_url: str | None = Field(default=None, max_length=1024)
    portrait_seed: int = Field(sa_column=Column(BigInteger, nullable=False))
    voice_id: str | None = Field(default=None, max_length=64)
    is_active: bool = Field(default=True)

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class ChatMessage(SQLModel, table=True):
    __tablename__ = "chat_messages"
    id: int = Field(
        default_factory=generate_id,
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False),
    )
    character_id: int = Field(
        sa_column=Column(
            BigInteger, ForeignKey("characters.id", ondelete="CASCADE"), index=True, nullable=False
        )
    )
    user_id: int = Field(
        sa_column=Column(
            BigInteger, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
        )
    )
    role: ChatRole = Field(sa_column=Column(String(16), nullable=False))
    content: str = Field(sa_column=Column(Text, nullable=False))
    audio_url: str | None = Field(default=None, max_length=1024)
    video_url: str | None = Field(default=None, max_length=1024)
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), index=True, nullable=False),
    )
