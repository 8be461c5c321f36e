"""
Vote routes

One vote per user per image. Posting the same vote twice withdraws it,
posting the opposite vote switches it.
"""
from __future__ import annotations

from fastapi import APIRouter

from app import crud
from app.api.deps import CurrentUser, SessionDep
from app.api.schemas import ApiEnvelope, UserVoteData, VoteRequest, VoteResultData, VoteStatsData
from app.enums import VoteType
from app.models import GeneratedImage

router = APIRouter(prefix="/votes", tags=["votes"])


def _result(image: GeneratedImage, user_vote: VoteType | None) -> VoteResultData:
    return VoteResultData(
        upvotes=image.upvotes or 0,
        downvotes=image.downvotes or 0,
        vote_score=image.vote_score or 0,
        user_vote=user_vote,
    )


@router.post("/{image_id}", response_model=ApiEnvelope)
def vote(session: SessionDep, current_user: CurrentUser, image_id: int, body: VoteRequest) -> ApiEnvelope:
    """
    Toggle a vote

    Request: POST /api/v1/votes/{image_id}

    Returns:
        ApiEnvelope: {upvotes, downvotes, vote_score, user_vote}, user_vote
        is null once the vote was withdrawn

    Raises:
        AppError: 404 "Image not found"
    """
    image, user_vote = crud.vote.toggle_vote(
        session=session, user_id=current_user.id, image_id=image_id, vote_type=body.vote_type
    )
    return ApiEnvelope(data=_result(image, user_vote))


@router.delete("/{image_id}", response_model=ApiEnvelope)
def remove_vote(session: SessionDep, current_user: CurrentUser, image_id: int) -> ApiEnvelope:
    """
    Request: DELETE /api/v1/votes/{image_id}

    Raises:
        AppError: 404 "Image not found" / "Vote not found"
    """
    image = crud.vote.remove_vote(session=session, user_id=current_user.id, image_id=image_id)
    return ApiEnvelope(data=_result(image, None))


@router.get("/{image_id}", response_model=ApiEnvelope)
def my_vote(session: SessionDep, current_user: CurrentUser, image_id: int) -> ApiEnvelope:
    """Request: GET /api/v1/votes/{image_id}"""
    crud.media.get_image_or_404(session=session, image_id=image_id)
    existing = crud.vote.get_user_vote(session=session, user_id=current_user.id, image_id=image_id)
    user_vote = VoteType(existing.vote_type) if existing else None
    return ApiEnvelope(data=UserVoteData(user_vote=user_vote, has_voted=existing is not None))


@router.get("/{image_id}/stats", response_model=ApiEnvelope)
def vote_stats(session: SessionDep, image_id: int) -> ApiEnvelope:
    """
    Request: GET /api/v1/votes/{image_id}/stats

    upvote_percentage is rounded to a whole number, 0 without votes.
    """
    image = crud.media.get_image_or_404(session=session, image_id=image_id)
    up = image.upvotes or 0
    down = image.downvotes or 0
    total = up + down
    return ApiEnvelope(data=VoteStatsData(
        upvotes=up,
        downvotes=down,
        vote_score=image.vote_score or 0,
        total_votes=total,
        upvote_percentage=round(up / total * 100) if total else 0,
    ))
