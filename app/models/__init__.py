"""
Database models

Every table is declared with SQLModel and split by area:
- user.py: accounts and generation IPs
- token.py: email verification, password reset and OTP tokens
- plan.py: plans and plan features
- subscription.py: subscriptions, history and monthly usage
- media.py: generated images and videos
- community.py: votes, comments and categories
- character.py: companions and chat messages
- payment.py: processed payment webhook events
"""
from sqlmodel import SQLModel

from .base import as_utc, utc_now
from .character import Character, ChatMessage
from .community import Category, ImageCategory, ImageComment, ImageVote
from .media import GeneratedImage, GeneratedVideo
from .payment import PaymentEvent
from .plan import UNLIMITED_NUTS, UNLIMITED_NUTS_BALANCE, Plan, PlanFeature
from .subscription import Subscription, SubscriptionHistory, UsageRecord
from .token import OtpConfirmation, PasswordResetToken, VerificationToken
from .user import GenerationIp, User

__all__ = [
    "SQLModel",
    "as_utc",
    "utc_now",
    "User",
    "GenerationIp",
    "VerificationToken",
    "PasswordResetToken",
    "OtpConfirmation",
    "Plan",
    "PlanFeature",
    "UNLIMITED_NUTS",
    "UNLIMITED_NUTS_BALANCE",
    "Subscription",
    "SubscriptionHistory",
    "UsageRecord",
    "GeneratedImage",
    "GeneratedVideo",
    "ImageVote",
    "ImageComment",
    "Category",
    "ImageCategory",
    "Character",
    "ChatMessage",
    "PaymentEvent",
]
