"""
Category routes (public)

Admin management lives in admin.py.
"""
from __future__ import annotations

from fastapi import APIRouter, Query

from app import crud
from app.api.deps import SessionDep
from app.api.schemas import ApiEnvelope, CategoryData, ImageData, Page
from app.models import Category

router = APIRouter(prefix="/categories", tags=["categories"])


def category_data(category: Category, image_count: int = 0) -> CategoryData:
    return CategoryData(
        id=category.id,
        name=category.name,
        description=category.description,
        keywords=category.keywords or [],
        image_count=image_count,
    )


@router.get("", response_model=ApiEnvelope)
def list_categories(session: SessionDep) -> ApiEnvelope:
    """All categories with their image counts; Request: GET /api/v1/categories"""
    rows = crud.category.list_with_counts(session=session)
    return ApiEnvelope(data=[category_data(c, n) for c, n in rows])


@router.get("/top", response_model=ApiEnvelope)
def top_categories(session: SessionDep, limit: int = Query(default=6, ge=1, le=50)) -> ApiEnvelope:
    """Request: GET /api/v1/categories/top?limit=6"""
    rows = crud.category.top(session=session, limit=limit)
    return ApiEnvelope(data=[category_data(c, n) for c, n in rows])


@router.get("/search", response_model=ApiEnvelope)
def search_categories(session: SessionDep, q: str = Query(min_length=1, max_length=64)) -> ApiEnvelope:
    """Name or keyword match; Request: GET /api/v1/categories/search?q="""
    rows = crud.category.search(session=session, query=q)
    return ApiEnvelope(data=[category_data(c, n) for c, n in rows])


@router.get("/{category_id}/images", response_model=ApiEnvelope)
def category_images(
    session: SessionDep,
    category_id: int,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
) -> ApiEnvelope:
    """
    Public completed images of a category

    Request: GET /api/v1/categories/{category_id}/images

    Raises:
        AppError: 404 "Category not found"
    """
    crud.category.get_or_404(session=session, category_id=category_id)
    rows, total = crud.media.list_public_images(
        session=session, page=page, page_size=page_size, category_id=category_id
    )
    return ApiEnvelope(data=Page(data=[ImageData.model_validate(r) for r in rows], count=total))
