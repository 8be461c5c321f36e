"""Image comment CRUD operations"""
from sqlmodel import Session, col, select

from app.api.errors import AppError
from app.models import ImageComment, User


def create(*, session: Session, user_id: int, image_id: int, comment: str) -> ImageComment:
    row = ImageComment(user_id=user_id, image_id=image_id, comment=comment)
    session.add(row)
    session.commit()
    session.refresh(row)
    return row


def list_for_image(*, session: Session, image_id: int) -> list[tuple[ImageComment, str | None]]:
    """Comments with the author name, newest first"""
    stmt = (
        select(ImageComment, User.name)
        .join(User, col(User.id) == col(ImageComment.user_id))
        .where(ImageComment.image_id == image_id)
        .order_by(col(ImageComment.created_at).desc(), col(ImageComment.id).desc())
    )
    return [(c, name) for c, name in session.exec(stmt).all()]


def delete_comment(*, session: Session, comment_id: int, user_id: int, is_admin: bool) -> None:
    """
    Remove a comment written by the user (any comment for admins)

    Raises:
        AppError: 404401 "Comment not found"
    """
    row = session.get(ImageComment, comment_id)
    if not row or (row.user_id != user_id and not is_admin):
        raise AppError(code=404401, message="Comment not found", status_code=404)
    session.delete(row)
    session.commit()
