"""
Config routes

Public business tunables read from the config document.
"""
from __future__ import annotations

from fastapi import APIRouter

from app.api.schemas import ApiEnvelope
from app.services.config_service import public_config

router = APIRouter(tags=["config"])


@router.get("/config", response_model=ApiEnvelope)
def config() -> ApiEnvelope:
    """
    Client-visible configuration

    Request: GET /api/v1/config

    Returns:
        ApiEnvelope: nuts prices, free tier limits, companion limit and the
        names of the image model presets
    """
    return ApiEnvelope(data=public_config())
