"""Category CRUD operations"""
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, delete, func, select

from app.api.errors import AppError
from app.models import Category, ImageCategory


def get_or_404(*, session: Session, category_id: int) -> Category:
    category = session.get(Category, category_id)
    if not category:
        raise AppError(code=404501, message="Category not found", status_code=404)
    return category


def get_by_name(*, session: Session, name: str) -> Category | None:
    return session.exec(select(Category).where(func.lower(Category.name) == name.strip().lower())).first()


def list_all(*, session: Session) -> list[Category]:
    return list(session.exec(select(Category).order_by(col(Category.name))).all())


def image_counts(*, session: Session) -> dict[int, int]:
    rows = session.exec(
        select(ImageCategory.category_id, func.count()).group_by(ImageCategory.category_id)
    ).all()
    return {int(cid): int(count) for cid, count in rows}


def list_with_counts(*, session: Session) -> list[tuple[Category, int]]:
    counts = image_counts(session=session)
    return [(c, counts.get(c.id, 0)) for c in list_all(session=session)]


def top(*, session: Session, limit: int) -> list[tuple[Category, int]]:
    """Categories with the most images"""
    rows = list_with_counts(session=session)
    rows.sort(key=lambda item: (-item[1], item[0].name))
    return rows[:limit]


def search(*, session: Session, query: str) -> list[tuple[Category, int]]:
    """Match on name or any keyword (case-insensitive substring)"""
    needle = query.strip().lower()
    return [
        (c, n)
        for c, n in list_with_counts(session=session)
        if needle in c.name.lower() or any(needle in k.lower() for k in c.keywords or [])
    ]


def create(*, session: Session, name: str, description: str | None, keywords: list[str]) -> Category:
    """
    Raises:
        AppError: 409501 when the name is taken
    """
    if get_by_name(session=session, name=name):
        raise AppError(code=409501, message="Category already exists", status_code=409)
    category = Category(name=name.strip(), description=description, keywords=keywords)
    session.add(category)
    session.commit()
    session.refresh(category)
    return category


def update(
    *,
    session: Session,
    category: Category,
    name: str | None,
    description: str | None,
    keywords: list[str] | None,
) -> Category:
    if name is not None and name.strip().lower() != category.name.lower():
        if get_by_name(session=session, name=name):
            raise AppError(code=409501, message="Category already exists", status_code=409)
        category.name = name.strip()
    if description is not None:
        category.description = description
    if keywords is not None:
        category.keywords = list(keywords)
    session.add(category)
    session.commit()
    session.refresh(category)
    return category


def delete_category(*, session: Session, category: Category) -> None:
    session.exec(delete(ImageCategory).where(col(ImageCategory.category_id) == category.id))
    session.delete(category)
    session.commit()


def image_category_ids(*, session: Session, image_id: int) -> list[int]:
    return list(session.exec(select(ImageCategory.category_id).where(ImageCategory.image_id == image_id)).all())


def assign(*, session: Session, image_id: int, category_id: int) -> None:
    """
    Raises:
        AppError: 409502 "Category already assigned"
    """
    if session.get(ImageCategory, (image_id, category_id)):
        raise AppError(code=409502, message="Category already assigned", status_code=409)
    session.add(ImageCategory(image_id=image_id, category_id=category_id))
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise AppError(code=409502, message="Category already assigned", status_code=409)


def remove(*, session: Session, image_id: int, category_id: int) -> None:
    session.exec(
        delete(ImageCategory).where(
            col(ImageCategory.image_id) == image_id, col(ImageCategory.category_id) == category_id
        )
    )
    session.commit()


def replace_image_categories(*, session: Session, image_id: int, category_ids: list[int]) -> None:
    """Set the exact category set of an image. Does not commit."""
    session.exec(delete(ImageCategory).where(col(ImageCategory.image_id) == image_id))
    for category_id in dict.fromkeys(category_ids):
        session.add(ImageCategory(image_id=image_id, category_id=category_id))
