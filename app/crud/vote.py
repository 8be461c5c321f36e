"""Image vote CRUD operations"""
import logging

from sqlmodel import Session, col, delete, select

from app.api.errors import AppError
from app.enums import VoteType
from app.models import GeneratedImage, ImageVote, utc_now

logger = logging.getLogger(__name__)


def _locked_image(session: Session, image_id: int) -> GeneratedImage:
    """Image row locked for the tally update, with null counters coalesced to 0"""
    image = session.exec(
        select(GeneratedImage).where(GeneratedImage.id == image_id).with_for_update()
    ).first()
    if not image:
        raise AppError(code=404201, message="Image not found", status_code=404)
    image.upvotes = image.upvotes or 0
    image.downvotes = image.downvotes or 0
    image.vote_score = image.vote_score or 0
    return image


def _undo(image: GeneratedImage, vote_type: str) -> None:
    if vote_type == VoteType.upvote:
        image.upvotes = max(0, (image.upvotes or 0) - 1)
        image.vote_score = (image.vote_score or 0) - 1
    else:
        image.downvotes = max(0, (image.downvotes or 0) - 1)
        image.vote_score = (image.vote_score or 0) + 1


def _apply(image: GeneratedImage, vote_type: str) -> None:
    if vote_type == VoteType.upvote:
        image.upvotes = (image.upvotes or 0) + 1
        image.vote_score = (image.vote_score or 0) + 1
    else:
        image.downvotes = (image.downvotes or 0) + 1
        image.vote_score = (image.vote_score or 0) - 1


def get_user_vote(*, session: Session, user_id: int, image_id: int) -> ImageVote | None:
    return session.exec(
        select(ImageVote).where(ImageVote.user_id == user_id, ImageVote.image_id == image_id)
    ).first()


def toggle_vote(
    *, session: Session, user_id: int, image_id: int, vote_type: VoteType
) -> tuple[GeneratedImage, VoteType | None]:
    """
    Cast, switch or withdraw a vote in one transaction

    - same type as the existing vote: the vote is removed
    - opposite type: the vote is switched, score moves by 2
    - no vote yet: the vote is added

    Returns:
        (image with updated tallies, the user's vote afterwards or None)

    Raises:
        AppError: 404201 when the image does not exist
    """
    image = _locked_image(session, image_id)
    existing = get_user_vote(session=session, user_id=user_id, image_id=image_id)

    user_vote: VoteType | None
    if existing and existing.vote_type == vote_type:
        session.delete(existing)
        _undo(image, vote_type)
        user_vote = None
    elif existing:
        _undo(image, existing.vote_type)
        _apply(image, vote_type)
        existing.vote_type = vote_type
        existing.updated_at = utc_now()
        session.add(existing)
        user_vote = vote_type
    else:
        session.add(ImageVote(user_id=user_id, image_id=image_id, vote_type=vote_type))
        _apply(image, vote_type)
        user_vote = vote_type

    image.updated_at = utc_now()
    session.add(image)
    session.commit()
    session.refresh(image)
    logger.debug("Vote on image %s by user %s -> %s", image_id, user_id, user_vote)
    return image, user_vote


def remove_vote(*, session: Session, user_id: int, image_id: int) -> GeneratedImage:
    """
    Withdraw the user's vote

    Raises:
        AppError: 404201 image missing, 404301 "Vote not found"
    """
    image = _locked_image(session, image_id)
    existing = get_user_vote(session=session, user_id=user_id, image_id=image_id)
    if not existing:
        session.rollback()
        raise AppError(code=404301, message="Vote not found", status_code=404)
    session.delete(existing)
    _undo(image, existing.vote_type)
    image.updated_at = utc_now()
    session.add(image)
    session.commit()
    session.refresh(image)
    return image


def recount_image(*, session: Session, image_id: int) -> None:
    """Recompute tallies of an image from its vote rows. Does not commit."""
    image = session.get(GeneratedImage, image_id)
    if not image:
        return
    votes = session.exec(select(ImageVote.vote_type).where(ImageVote.image_id == image_id)).all()
    up = sum(1 for v in votes if v == VoteType.upvote)
    down = len(votes) - up
    image.upvotes = up
    image.downvotes = down
    image.vote_score = up - down
    session.add(image)


def delete_user_votes(*, session: Session, user_id: int) -> int:
    """Delete every vote of a user and fix the affected tallies"""
    image_ids = list(session.exec(select(ImageVote.image_id).where(ImageVote.user_id == user_id)).all())
    if not image_ids:
        return 0
    session.exec(delete(ImageVote).where(col(ImageVote.user_id) == user_id))
    session.flush()
    for image_id in set(image_ids):
        recount_image(session=session, image_id=image_id)
    session.commit()
    return len(image_ids)
