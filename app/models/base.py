"""
Model base helpers

Utilities shared by every table module.
"""
from datetime import datetime, timezone

from sqlmodel import SQLModel


def utc_now() -> datetime:
    """
    Current UTC time

    Returns:
        Timezone-aware datetime in UTC
    """
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """
    Attach UTC to naive datetimes

    Some backends (SQLite) drop tzinfo on the way back; comparisons against
    utc_now() need an aware value.

    Args:
        value: datetime read from the database

    Returns:
        The same instant as an aware UTC datetime, or None
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


__all__ = ["SQLModel", "as_utc", "utc_now"]
