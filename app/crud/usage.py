"""Monthly usage record CRUD operations"""
from datetime import datetime, timezone

from sqlmodel import Session, col, select

from app.models import UsageRecord, as_utc, utc_now


def month_bounds(now: datetime) -> tuple[datetime, datetime]:
    """[first instant of the month, first instant of the next month)"""
    start = datetime(now.year, now.month, 1, tzinfo=timezone.utc)
    if now.month == 12:
        end = datetime(now.year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        end = datetime(now.year, now.month + 1, 1, tzinfo=timezone.utc)
    return start, end


def get_current(*, session: Session, user_id: int) -> UsageRecord | None:
    """Latest record of the user when it covers the current month"""
    now = utc_now()
    record = session.exec(
        select(UsageRecord)
        .where(UsageRecord.user_id == user_id)
        .order_by(col(UsageRecord.period_start).desc())
    ).first()
    if record and as_utc(record.period_start) <= now < as_utc(record.period_end):
        return record
    return None


def get_or_create_usage_record(*, session: Session, user_id: int) -> UsageRecord:
    """Current month record, rolled over when the month changed. Does not commit."""
    record = get_current(session=session, user_id=user_id)
    if record:
        return record
    start, end = month_bounds(utc_now())
    record = UsageRecord(user_id=user_id, period_start=start, period_end=end)
    session.add(record)
    session.flush()
    return record
