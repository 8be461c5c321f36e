"""
API request / response schemas

Pydantic models for everything that crosses the HTTP boundary. These are not
tables; the ORM models live in app.models.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.enums import (
    Appearance,
    BillingCycle,
    ChatRole,
    MediaStatus,
    Personality,
    SubscriptionAction,
    SubscriptionStatus,
    UserRole,
    VoteType,
)

# ============================================================
# Common
# ============================================================


class Message(BaseModel):
    message: str


class TokenPayload(BaseModel):
    """JWT payload; sub holds the user id"""
    sub: str | None = None


class ApiEnvelope(BaseModel):
    """
    Standard response envelope

    - code: 0 on success, business error code otherwise
    - message: "success" or the error description
    - data: payload, None on error

    Examples:
        {"code": 0, "message": "success", "data": {...}}
        {"code": 404201, "message": "Image not found", "data": None}
    """
    code: int = 0
    message: str = "success"
    data: Any | None = None


class Page(BaseModel):
    data: list[Any]
    count: int


# ============================================================
# Auth
# ============================================================


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    name: str = Field(min_length=1, max_length=100)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)
    code: str | None = Field(default=None, min_length=4, max_length=8)  # emailed OTP


class VerifyEmailRequest(BaseModel):
    token: str = Field(min_length=1)


class EmailRequest(BaseModel):
    email: EmailStr


class NewPasswordRequest(BaseModel):
    password: str = Field(min_length=6, max_length=128)
    token: str | None = None
    type: Literal["token", "otp"] = "token"
    email: EmailStr | None = None  # required with type="otp"


class UserProfile(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str | None = None
    image: str | None = None
    role: UserRole
    email_verified: datetime | None = None
    nuts: int
    images_per_day: int
    images_per_generation: int
    features: list[str] = []
    free_generations_used: int
    free_generations_limit: int
    is_banned: bool
    is_suspended: bool
    suspension_reason: str | None = None
    suspension_expires_at: datetime | None = None
    created_at: datetime


class LoginData(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserProfile


class LoginChallengeData(BaseModel):
    two_factor: bool = True
    success: str


# ============================================================
# Users & moderation
# ============================================================


class UserProfileUpdateRequest(BaseModel):
    name: str | None = Field(default=None, max_length=100)
    image: str | None = Field(default=None, max_length=512)


class UserSettingsRequest(BaseModel):
    name: str | None = Field(default=None, max_length=100)
    email: EmailStr | None = None
    password: str | None = Field(default=None, max_length=128)  # current password
    new_password: str | None = Field(default=None, min_length=6, max_length=128)


class CreditsData(BaseModel):
    remaining_credits: int
    free_limit: int
    has_subscription: bool


class RateLimitData(BaseModel):
    can_generate: bool
    reset_in: int | None = None


class SuspendRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)
    duration: str | None = Field(default=None, pattern=r"^\d+[dwmy]$")  # e.g. 7d, 2w, 1m, 1y


class BanRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)


class SetNutsRequest(BaseModel):
    nuts: int = Field(ge=0)


# ============================================================
# Plans & subscriptions
# ============================================================


class PlanData(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None = None
    nuts_per_month: int
    images_per_day: int
    images_per_generation: int
    monthly_price: int
    yearly_price: int
    is_active: bool
    features: list[str] = []


class SubscriptionCreateRequest(BaseModel):
    plan_id: int
    billing_cycle: BillingCycle
    payment_method: str | None = Field(default=None, max_length=128)
    user_id: int | None = None  # admin only


class SubscriptionCancelRequest(BaseModel):
    immediate: bool = False
    reason: str | None = Field(default=None, max_length=500)


class SubscriptionReactivateRequest(BaseModel):
    extend_days: int = Field(default=30, ge=1, le=365)


class SubscriptionData(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    plan_id: int
    status: SubscriptionStatus
    billing_cycle: BillingCycle
    start_date: datetime
    end_date: datetime
    next_billing_date: datetime | None = None
    payment_method: str | None = None
    cancel_reason: str | None = None


class UsageData(BaseModel):
    nuts_used: int
    nuts_remaining: int
    nuts_per_month: int
    usage_percentage: float
    images_today: int
    images_per_day: int
    images_generated: int
    period_start: datetime | None = None
    period_end: datetime | None = None


class SubscriptionInfoData(BaseModel):
    plan: PlanData
    subscription: SubscriptionData | None = None
    status: SubscriptionStatus | None = None
    days_until_renewal: int | None = None
    is_free_plan: bool
    usage: UsageData
    can_generate_images: bool


class SubscriptionHistoryData(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    plan_id: int
    action: SubscriptionAction
    billing_cycle: BillingCycle | None = None
    amount: int
    reason: str | None = None
    created_at: datetime


class FeatureAccessData(BaseModel):
    feature: str
    has_access: bool


# ============================================================
# Images & videos
# ============================================================


class ImageCreateRequest(BaseModel):
    prompt: str = Field(min_length=1, max_length=1000)
    negative_prompt: str | None = Field(default=None, max_length=1000)
    count: int = Field(default=1, ge=1, le=10)
    width: int = Field(default=1024, ge=64, le=2048)
    height: int = Field(default=1024, ge=64, le=2048)
    model: str = Field(default="flux", max_length=32)
    is_public: bool = True


class ImageAdvancedRequest(ImageCreateRequest):
    steps: int = Field(default=30, ge=10, le=150)
    guidance_scale: float = Field(default=7.5, ge=1, le=20)
    seed: int | None = Field(default=None, ge=0)
    lora: str | None = Field(default=None, max_length=128)
    lora_strength: float = Field(default=0.8, ge=0, le=1)
    upscale: bool = False


class ImageUpdateRequest(BaseModel):
    prompt: str | None = Field(default=None, min_length=1, max_length=1000)
    is_public: bool | None = None
    status: Literal["completed", "flagged", "rejected"] | None = None
    category_ids: list[int] | None = None


class BulkDeleteRequest(BaseModel):
    ids: list[int] = Field(min_length=1, max_length=100)


class ImageData(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    prompt: str
    negative_prompt: str | None = None
    model: str
    width: int
    height: int
    seed: int | None = None
    status: MediaStatus
    task_id: str | None = None
    eta: float | None = None
    progress: int = 0
    future_links: list[str] = []
    image_url: str | None = None
    is_public: bool
    cost_nuts: int
    upvotes: int | None = 0
    downvotes: int | None = 0
    vote_score: int | None = 0
    category_ids: list[int] = []
    created_at: datetime


class GenerationData(BaseModel):
    task_id: str
    eta: float | None = None
    nuts_spent: int
    images: list[ImageData] = []
    videos: list[VideoData] = []


class TaskStatusData(BaseModel):
    status: str
    progress: int
    eta: float | None = None
    images: list[ImageData] = []
    videos: list[VideoData] = []


class VideoCreateRequest(BaseModel):
    prompt: str = Field(min_length=1, max_length=1000)
    negative_prompt: str | None = Field(default=None, max_length=1000)
    width: int = Field(default=848, ge=256, le=1920)
    height: int = Field(default=480, ge=256, le=1080)
    fps: int = Field(default=24, ge=12, le=60)
    frames: int = Field(default=81, ge=24, le=240)
    steps: int = Field(default=50, ge=10, le=100)
    image_url: str | None = Field(default=None, max_length=1024)
    is_public: bool = True


class VideoUpdateRequest(BaseModel):
    prompt: str | None = Field(default=None, min_length=1, max_length=1000)
    is_public: bool | None = None
    status: Literal["completed", "flagged", "rejected"] | None = None


class VideoData(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    prompt: str
    width: int
    height: int
    fps: int
    frames: int
    status: MediaStatus
    task_id: str | None = None
    eta: float | None = None
    progress: int = 0
    video_url: str | None = None
    source_image_url: str | None = None
    is_public: bool
    cost_nuts: int
    created_at: datetime


class GenerationWebhookPayload(BaseModel):
    """Provider callback; id and status are checked by the handler"""
    model_config = ConfigDict(extra="allow")

    id: str | int | None = None
    status: str | None = None
    output: list[str] | None = None
    eta: float | None = None


# ============================================================
# Votes, comments, categories
# ============================================================


class VoteRequest(BaseModel):
    vote_type: VoteType


class VoteResultData(BaseModel):
    upvotes: int
    downvotes: int
    vote_score: int
    user_vote: VoteType | None = None


class UserVoteData(BaseModel):
    user_vote: VoteType | None = None
    has_voted: bool


class VoteStatsData(BaseModel):
    upvotes: int
    downvotes: int
    vote_score: int
    total_votes: int
    upvote_percentage: int


class CommentCreateRequest(BaseModel):
    comment: str = Field(max_length=2000)


class CommentData(BaseModel):
    id: int
    image_id: int
    user_id: int
    user_name: str | None = None
    comment: str
    created_at: datetime


class CategoryRequest(BaseModel):
    name: str = Field(min_length=1, max_length=64)
    description: str | None = Field(default=None, max_length=500)
    keywords: list[str] = []


class CategoryUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=64)
    description: str | None = Field(default=None, max_length=500)
    keywords: list[str] | None = None


class CategoryData(BaseModel):
    id: int
    name: str
    description: str | None = None
    keywords: list[str] = []
    image_count: int = 0


# ============================================================
# Companions & chat
# ============================================================


class CharacterCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    description: str | None = Field(default=None, max_length=500)
    personality: Personality
    appearance: Appearance
    voice_id: str | None = Field(default=None, max_length=64)


class CharacterData(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    description: str | None = None
    personality: Personality
    appearance: Appearance
    portrait_url: str | None = None
    portrait_seed: int
    voice_id: str | None = None
    created_at: datetime
    updated_at: datetime


class PortraitSetRequest(BaseModel):
    portrait_url: str = Field(min_length=1, max_length=1024)


class PortraitPreviewRequest(BaseModel):
    personality: Personality
    appearance: Appearance
    description: str | None = Field(default=None, max_length=500)


class ChatSendRequest(BaseModel):
    content: str = Field(min_length=1, max_length=2000)
    with_voice: bool = False
    with_video: bool = False


class ChatMessageData(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    character_id: int
    role: ChatRole
    content: str
    audio_url: str | None = None
    video_url: str | None = None
    created_at: datetime


class ChatExchangeData(BaseModel):
    user_message: ChatMessageData
    assistant_message: ChatMessageData


class ChatHistoryData(BaseModel):
    messages: list[ChatMessageData]
    has_more: bool
    next_cursor: int | None = None


class ChatStreamRequest(BaseModel):
    character_id: int
    content: str = Field(min_length=1, max_length=2000)
    with_voice: bool = False
    nudge_voice: bool = False


# ============================================================
# GPU proxies
# ============================================================


class UpscaleRequest(BaseModel):
    image_url: str = Field(min_length=1, max_length=1024)
    scale: int = 2  # clamped to 2..4


class ImageToVideoRequest(BaseModel):
    image_url: str = Field(min_length=1, max_length=1024)
    frames: int = Field(default=25, ge=1)
    fps: int = Field(default=8, ge=1, le=60)
    motion_strength: int = 127
    noise: float = 0


class TalkingAvatarRequest(BaseModel):
    portrait_url: str = Field(min_length=1, max_length=1024)
    audio_url: str = Field(min_length=1, max_length=1024)


# ============================================================
# Payments
# ============================================================


class CheckoutRequest(BaseModel):
    plan_id: int
    billing: Literal["monthly", "yearly"]


class CheckoutData(BaseModel):
    session_id: str
    url: str | None = None


class PaypalOrderData(BaseModel):
    order_id: str
    approve_url: str | None = None


GenerationData.model_rebuild()
TaskStatusData.model_rebuild()
