"""
Enum definitions

Every enum subclasses both str and Enum so values serialise as plain strings
and can be stored in short String columns.
"""
from enum import Enum


class UserRole(str, Enum):
    """
    Account role

    - user: regular customer
    - admin: moderation backend access
    - bot: automation account, exempt from rate limits and nuts cost
    """
    user = "USER"
    admin = "ADMIN"
    bot = "BOT"


class SubscriptionStatus(str, Enum):
    active = "ACTIVE"
    cancelled = "CANCELLED"
    expired = "EXPIRED"


class BillingCycle(str, Enum):
    monthly = "MONTHLY"
    yearly = "YEARLY"


class SubscriptionAction(str, Enum):
    """
    Subscription history entry type
    """
    created = "CREATED"
    cancelled = "CANCELLED"
    reactivated = "REACTIVATED"
    expired = "EXPIRED"
    deleted = "DELETED"


class MediaStatus(str, Enum):
    """
    Image / video job status

    - processing: submitted to the provider, waiting for the webhook
    - completed: stored on the CDN
    - failed: provider or upload failure
    - flagged / rejected: moderation outcomes
    """
    processing = "processing"
    completed = "completed"
    failed = "failed"
    flagged = "flagged"
    rejected = "rejected"


class VoteType(str, Enum):
    upvote = "UPVOTE"
    downvote = "DOWNVOTE"


class Personality(str, Enum):
    playful = "playful"
    romantic = "romantic"
    mysterious = "mysterious"
    confident = "confident"
    caring = "caring"
    adventurous = "adventurous"


class Appearance(str, Enum):
    realistic = "realistic"
    artistic = "artistic"
    anime = "anime"


class ChatRole(str, Enum):
    user = "user"
    assistant = "assistant"


class PaymentProvider(str, Enum):
    stripe = "stripe"
    paypal = "paypal"
