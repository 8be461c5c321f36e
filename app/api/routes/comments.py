"""
Comment routes
"""
from __future__ import annotations

from fastapi import APIRouter

from app import crud
from app.api.deps import CurrentUser, SessionDep
from app.api.errors import AppError
from app.api.schemas import ApiEnvelope, CommentCreateRequest, CommentData

router = APIRouter(prefix="/comments", tags=["comments"])


@router.post("/{image_id}", response_model=ApiEnvelope)
def add_comment(session: SessionDep, current_user: CurrentUser, image_id: int,
                body: CommentCreateRequest) -> ApiEnvelope:
    """
    Request: POST /api/v1/comments/{image_id}

    Raises:
        AppError: 400 "Comment cannot be empty", 404 "Image not found"
    """
    text = body.comment.strip()
    if not text:
        raise AppError(code=400401, message="Comment cannot be empty", status_code=400)
    crud.media.get_image_or_404(session=session, image_id=image_id)
    row = crud.comment.create(session=session, user_id=current_user.id, image_id=image_id, comment=text)
    return ApiEnvelope(data=CommentData(
        id=row.id,
        image_id=row.image_id,
        user_id=row.user_id,
        user_name=current_user.name,
        comment=row.comment,
        created_at=row.created_at,
    ))


@router.get("/{image_id}", response_model=ApiEnvelope)
def list_comments(session: SessionDep, image_id: int) -> ApiEnvelope:
    """Newest first, with the author's name; Request: GET /api/v1/comments/{image_id}"""
    rows = crud.comment.list_for_image(session=session, image_id=image_id)
    data = [
        CommentData(
            id=c.id,
            image_id=c.image_id,
            user_id=c.user_id,
            user_name=name,
            comment=c.comment,
            created_at=c.created_at,
        )
        for c, name in rows
    ]
    return ApiEnvelope(data=data)


@router.delete("/{comment_id}", response_model=ApiEnvelope)
def delete_comment(session: SessionDep, current_user: CurrentUser, comment_id: int) -> ApiEnvelope:
    """
    Authors delete their own comments, admins any

    Request: DELETE /api/v1/comments/{comment_id}

    Raises:
        AppError: 404 "Comment not found"
    """
    crud.comment.delete_comment(
        session=session, comment_id=comment_id, user_id=current_user.id, is_admin=current_user.is_admin
    )
    return ApiEnvelope(data={"deleted": comment_id})
