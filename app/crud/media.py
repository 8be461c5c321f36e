"""Generated image and video CRUD operations"""
from typing import Any, Literal

from sqlmodel import Session, col, func, select

from app.api.errors import AppError
from app.enums import MediaStatus
from app.models import GeneratedImage, GeneratedVideo, ImageCategory, ImageComment


def paginate(*, session: Session, stmt: Any, page: int, page_size: int) -> tuple[list[Any], int]:
    """Run a select for one page and count the full result"""
    total = session.exec(select(func.count()).select_from(stmt.order_by(None).subquery())).one()
    rows = session.exec(stmt.offset((page - 1) * page_size).limit(page_size)).all()
    return list(rows), int(total)


LIKE_ESCAPE = "\\"


def contains_pattern(query: str) -> str:
    """Lower-cased LIKE pattern matching query as a literal substring; use with escape=LIKE_ESCAPE"""
    text = query.strip().lower()
    for char in (LIKE_ESCAPE, "%", "_"):
        text = text.replace(char, LIKE_ESCAPE + char)
    return f"%{text}%"


def get_image_or_404(*, session: Session, image_id: int) -> GeneratedImage:
    image = session.get(GeneratedImage, image_id)
    if not image:
        raise AppError(code=404201, message="Image not found", status_code=404)
    return image


def get_video_or_404(*, session: Session, video_id: int) -> GeneratedVideo:
    video = session.get(GeneratedVideo, video_id)
    if not video:
        raise AppError(code=404202, message="Video not found", status_code=404)
    return video


def images_by_task(*, session: Session, task_id: str, status: MediaStatus | None = None) -> list[GeneratedImage]:
    """Rows of one provider task in creation order"""
    stmt = select(GeneratedImage).where(GeneratedImage.task_id == task_id)
    if status is not None:
        stmt = stmt.where(GeneratedImage.status == status)
    return list(session.exec(stmt.order_by(col(GeneratedImage.created_at), col(GeneratedImage.id))).all())


def videos_by_task(*, session: Session, task_id: str, status: MediaStatus | None = None) -> list[GeneratedVideo]:
    stmt = select(GeneratedVideo).where(GeneratedVideo.task_id == task_id)
    if status is not None:
        stmt = stmt.where(GeneratedVideo.status == status)
    return list(session.exec(stmt.order_by(col(GeneratedVideo.created_at), col(GeneratedVideo.id))).all())


def list_user_images(
    *, session: Session, user_id: int, status: MediaStatus | None, page: int, page_size: int
) -> tuple[list[GeneratedImage], int]:
    stmt = select(GeneratedImage).where(GeneratedImage.user_id == user_id)
    if status is not None:
        stmt = stmt.where(GeneratedImage.status == status)
    stmt = stmt.order_by(col(GeneratedImage.created_at).desc())
    return paginate(session=session, stmt=stmt, page=page, page_size=page_size)


def _public_images():
    return select(GeneratedImage).where(
        GeneratedImage.is_public == True,  # noqa: E712
        GeneratedImage.status == MediaStatus.completed,
    )


def list_public_images(
    *,
    session: Session,
    page: int,
    page_size: int,
    sort: Literal["recent", "top"] = "recent",
    category_id: int | None = None,
) -> tuple[list[GeneratedImage], int]:
    """Public completed images; "top" orders by vote score, then recency"""
    stmt = _public_images()
    if category_id is not None:
        stmt = stmt.join(ImageCategory, col(ImageCategory.image_id) == col(GeneratedImage.id)).where(
            ImageCategory.category_id == category_id
        )
    if sort == "top":
        stmt = stmt.order_by(
            func.coalesce(GeneratedImage.vote_score, 0).desc(), col(GeneratedImage.created_at).desc()
        )
    else:
        stmt = stmt.order_by(col(GeneratedImage.created_at).desc())
    return paginate(session=session, stmt=stmt, page=page, page_size=page_size)


def search_public_images(*, session: Session, query: str, page: int, page_size: int) -> tuple[list[GeneratedImage], int]:
    pattern = contains_pattern(query)
    stmt = (
        _public_images()
        .where(func.lower(GeneratedImage.prompt).like(pattern, escape=LIKE_ESCAPE))
        .order_by(col(GeneratedImage.created_at).desc())
    )
    return paginate(session=session, stmt=stmt, page=page, page_size=page_size)


def related_images(*, session: Session, image: GeneratedImage, limit: int) -> list[GeneratedImage]:
    """Public images sharing at least one category with the given image"""
    category_ids = select(ImageCategory.category_id).where(ImageCategory.image_id == image.id)
    related_ids = select(ImageCategory.image_id).where(col(ImageCategory.category_id).in_(category_ids))
    stmt = (
        _public_images()
        .where(col(GeneratedImage.id).in_(related_ids), GeneratedImage.id != image.id)
        .order_by(col(GeneratedImage.created_at).desc())
        .limit(limit)
    )
    return list(session.exec(stmt).all())


def list_admin_images(
    *, session: Session, status: MediaStatus | None, query: str | None, page: int, page_size: int
) -> tuple[list[GeneratedImage], int]:
    stmt = select(GeneratedImage)
    if status is not None:
        stmt = stmt.where(GeneratedImage.status == status)
    if query:
        pattern = contains_pattern(query)
        stmt = stmt.where(func.lower(GeneratedImage.prompt).like(pattern, escape=LIKE_ESCAPE))
    stmt = stmt.order_by(col(GeneratedImage.created_at).desc())
    return paginate(session=session, stmt=stmt, page=page, page_size=page_size)


def image_stats(*, session: Session) -> dict[str, Any]:
    """Counts by status and visibility plus comment totals"""
    total = int(session.exec(select(func.count()).select_from(GeneratedImage)).one())
    by_status = {
        MediaStatus(status).value: int(count)
        for status, count in session.exec(
            select(GeneratedImage.status, func.count()).group_by(GeneratedImage.status)
        ).all()
    }
    public = int(
        session.exec(
            select(func.count()).select_from(GeneratedImage).where(GeneratedImage.is_public == True)  # noqa: E712
        ).one()
    )
    comments = int(session.exec(select(func.count()).select_from(ImageComment)).one())
    return {
        "total": total,
        "by_status": {s.value: by_status.get(s.value, 0) for s in MediaStatus},
        "public": public,
        "private": total - public,
        "total_comments": comments,
        "avg_comments_per_image": f"{comments / total:.2f}" if total else "0.00",
    }


def list_all_images(*, session: Session) -> list[GeneratedImage]:
    return list(session.exec(select(GeneratedImage).order_by(col(GeneratedImage.created_at).desc())).all())


def list_user_videos(*, session: Session, user_id: int, page: int, page_size: int) -> tuple[list[GeneratedVideo], int]:
    stmt = select(GeneratedVideo).where(GeneratedVideo.user_id == user_id).order_by(
        col(GeneratedVideo.created_at).desc()
    )
    return paginate(session=session, stmt=stmt, page=page, page_size=page_size)


def list_public_videos(*, session: Session, page: int, page_size: int) -> tuple[list[GeneratedVideo], int]:
    stmt = (
        select(GeneratedVideo)
        .where(GeneratedVideo.is_public == True, GeneratedVideo.status == MediaStatus.completed)  # noqa: E712
        .order_by(col(GeneratedVideo.created_at).desc())
    )
    return paginate(session=session, stmt=stmt, page=page, page_size=page_size)
