"""
Subscription routes

Subscribe, cancel, reactivate, the subscription summary with usage, feature
checks and the audit history.
"""
from __future__ import annotations

from fastapi import APIRouter, Query

from app import crud
from app.api.deps import CurrentUser, SessionDep
from app.api.errors import forbidden
from app.api.routes.plans import plan_data
from app.api.schemas import (
    ApiEnvelope,
    FeatureAccessData,
    Page,
    SubscriptionCancelRequest,
    SubscriptionCreateRequest,
    SubscriptionData,
    SubscriptionHistoryData,
    SubscriptionInfoData,
    SubscriptionReactivateRequest,
    UsageData,
)
from app.services import subscription_service

router = APIRouter(prefix="/subscription", tags=["subscription"])


@router.get("", response_model=ApiEnvelope)
def get_subscription(session: SessionDep, current_user: CurrentUser) -> ApiEnvelope:
    """
    Subscription summary

    Request: GET /api/v1/subscription

    Returns:
        ApiEnvelope: SubscriptionInfoData; users without a subscription see
        the Free plan

    Raises:
        AppError: 500 "Free plan configuration missing"
    """
    info = subscription_service.get_subscription_info(session, user=current_user)
    sub = info["subscription"]
    data = SubscriptionInfoData(
        plan=plan_data(session, info["plan"]),
        subscription=SubscriptionData.model_validate(sub) if sub else None,
        status=info["status"],
        days_until_renewal=info["days_until_renewal"],
        is_free_plan=info["is_free_plan"],
        usage=UsageData(**info["usage"]),
        can_generate_images=info["can_generate_images"],
    )
    return ApiEnvelope(data=data)


@router.post("", response_model=ApiEnvelope)
def create_subscription(session: SessionDep, current_user: CurrentUser,
                        body: SubscriptionCreateRequest) -> ApiEnvelope:
    """
    Subscribe to a plan

    Request: POST /api/v1/subscription

    An active subscription is cancelled and replaced. Admins may subscribe
    another user through user_id.

    Raises:
        AppError: 403 banned / suspended / non-admin user_id,
            404 "Plan not found or inactive"
    """
    user = current_user
    if body.user_id is not None and body.user_id != current_user.id:
        if not current_user.is_admin:
            raise forbidden()
        user = crud.user.get_or_404(session=session, user_id=body.user_id)
    sub = subscription_service.create_subscription(
        session,
        user=user,
        plan_id=body.plan_id,
        billing_cycle=body.billing_cycle,
        payment_method=body.payment_method,
    )
    return ApiEnvelope(data=SubscriptionData.model_validate(sub))


@router.post("/cancel", response_model=ApiEnvelope)
def cancel(session: SessionDep, current_user: CurrentUser, body: SubscriptionCancelRequest) -> ApiEnvelope:
    """
    Request: POST /api/v1/subscription/cancel

    Raises:
        AppError: 404 "No active subscription found",
            400 "Subscription is already cancelled"
    """
    sub = subscription_service.cancel_subscription(
        session, user=current_user, immediate=body.immediate, reason=body.reason
    )
    return ApiEnvelope(data=SubscriptionData.model_validate(sub))


@router.post("/reactivate", response_model=ApiEnvelope)
def reactivate(session: SessionDep, current_user: CurrentUser,
               body: SubscriptionReactivateRequest) -> ApiEnvelope:
    """
    Request: POST /api/v1/subscription/reactivate

    Raises:
        AppError: 404 "No subscription found",
            400 "Only cancelled subscriptions can be reactivated"
    """
    sub = subscription_service.reactivate_subscription(session, user=current_user, extend_days=body.extend_days)
    return ApiEnvelope(data=SubscriptionData.model_validate(sub))


@router.get("/features/{feature}", response_model=ApiEnvelope)
def feature_access(session: SessionDep, current_user: CurrentUser, feature: str) -> ApiEnvelope:
    """Request: GET /api/v1/subscription/features/{feature}"""
    has_access = subscription_service.has_feature_access(session, user=current_user, feature=feature)
    return ApiEnvelope(data=FeatureAccessData(feature=feature, has_access=has_access))


@router.get("/history", response_model=ApiEnvelope)
def history(
    session: SessionDep,
    current_user: CurrentUser,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
) -> ApiEnvelope:
    """Request: GET /api/v1/subscription/history"""
    rows, total = crud.subscription.list_history(
        session=session, user_id=current_user.id, page=page, page_size=page_size
    )
    return ApiEnvelope(data=Page(data=[SubscriptionHistoryData.model_validate(r) for r in rows], count=total))
