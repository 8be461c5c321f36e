"""
CRUD operations

One module per area; callers use them as crud.<area>.<function>, e.g.
crud.user.get_by_email(session=session, email=email).
"""
from . import category, character, comment, media, subscription, token, usage, user, vote

__all__ = [
    "category",
    "character",
    "comment",
    "media",
    "subscription",
    "token",
    "usage",
    "user",
    "vote",
]
