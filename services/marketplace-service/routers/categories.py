"""Categories API router."""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List

from auth import get_current_user_id
from database import get_db
from dependencies import get_catalog_service
from exceptions import MarketplaceError
from schemas import CategoryCreate, CategoryResponse, CategoryUpdate
from services.catalog_service import CatalogService

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("", response_model=List[CategoryResponse])
async def get_categories(
    db: Session = Depends(get_db),
    catalog_service: CatalogService = Depends(get_catalog_service)
):
    """Active categories, ordered by name."""
    return catalog_service.get_categories(db)


@router.post("", response_model=CategoryResponse, status_code=201)
async def create_category(
    request: CategoryCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    catalog_service: CatalogService = Depends(get_catalog_service)
):
    """Create a category - managers only."""
    try:
        return catalog_service.create_category(db, user_id, **request.model_dump())
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: int,
    request: CategoryUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    catalog_service: CatalogService = Depends(get_catalog_service)
):
    """Update a category - managers only."""
    try:
        return catalog_service.update_category(
            db, user_id, category_id, **request.model_dump(exclude_unset=True)
        )
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
