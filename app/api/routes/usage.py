"""
Usage routes
"""
from __future__ import annotations

from fastapi import APIRouter

from app import crud
from app.api.deps import CurrentUser, SessionDep
from app.api.schemas import ApiEnvelope

router = APIRouter(prefix="/usage", tags=["usage"])


@router.get("", response_model=ApiEnvelope)
def current_usage(session: SessionDep, current_user: CurrentUser) -> ApiEnvelope:
    """
    Usage record of the current calendar month

    Request: GET /api/v1/usage
    """
    record = crud.usage.get_or_create_usage_record(session=session, user_id=current_user.id)
    session.commit()
    session.refresh(record)
    data = {
        "period_start": record.period_start,
        "period_end": record.period_end,
        "nuts_used": record.nuts_used,
        "images_generated": record.images_generated,
        "videos_generated": record.videos_generated,
        "images_today": current_user.daily_images,
        "nuts": current_user.nuts,
    }
    return ApiEnvelope(data=data)
