"""
Plan catalogue routes
"""
from __future__ import annotations

from fastapi import APIRouter
from sqlmodel import Session

from app import crud
from app.api.deps import SessionDep
from app.api.errors import AppError
from app.api.schemas import ApiEnvelope, PlanData
from app.models import Plan

router = APIRouter(prefix="/plans", tags=["plans"])


def plan_data(session: Session, plan: Plan) -> PlanData:
    data = PlanData.model_validate(plan)
    data.features = crud.subscription.plan_feature_names(session=session, plan=plan)
    return data


@router.get("", response_model=ApiEnvelope)
def list_plans(session: SessionDep) -> ApiEnvelope:
    """
    Active plans, cheapest first

    Request: GET /api/v1/plans
    """
    plans = crud.subscription.list_active_plans(session=session)
    return ApiEnvelope(data=[plan_data(session, p) for p in plans])


@router.get("/{plan_id}", response_model=ApiEnvelope)
def get_plan(session: SessionDep, plan_id: int) -> ApiEnvelope:
    """
    Request: GET /api/v1/plans/{plan_id}

    Raises:
        AppError: 404 "Plan not found"
    """
    plan = session.get(Plan, plan_id)
    if not plan:
        raise AppError(code=404111, message="Plan not found", status_code=404)
    return ApiEnvelope(data=plan_data(session, plan))
