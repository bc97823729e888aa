"""Products API router."""
from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from opentelemetry import trace

from auth import get_current_user_id
from config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from database import get_db
from dependencies import get_catalog_service
from exceptions import MarketplaceError
from schemas import ProductCreate, ProductDetailResponse, ProductResponse, ProductUpdate
from services.catalog_service import CatalogService

router = APIRouter(prefix="/products", tags=["products"])


@router.get("", response_model=List[ProductResponse])
async def get_products(
    category_id: Optional[int] = Query(None, description="Restrict to one category"),
    search: Optional[str] = Query(None, description="Case-insensitive match on product name"),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    catalog_service: CatalogService = Depends(get_catalog_service)
):
    """
    Browse the active catalog, newest first.

    Examples:
    - GET /products?category_id=2 - one category
    - GET /products?search=lamp&limit=10 - name search, first page of ten
    """
    products = catalog_service.get_products(
        db, category_id=category_id, search=search, limit=limit, offset=offset
    )

    span = trace.get_current_span()
    span.set_attribute("product.count", len(products))
    span.set_attribute("endpoint.type", "product_catalog")

    return products


@router.get("/mine", response_model=List[ProductResponse])
async def get_my_products(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    catalog_service: CatalogService = Depends(get_catalog_service)
):
    """Listings the caller manages, including inactive ones - sellers and managers."""
    try:
        return catalog_service.get_managed_products(db, user_id)
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/{product_id}", response_model=ProductDetailResponse)
async def get_product(
    product_id: int = Path(..., description="Product ID"),
    db: Session = Depends(get_db),
    catalog_service: CatalogService = Depends(get_catalog_service)
):
    """Product details with reviews and rating summary."""
    span = trace.get_current_span()
    span.set_attribute("product.id", product_id)

    try:
        return catalog_service.get_product(db, product_id)
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("", response_model=ProductResponse, status_code=201)
async def create_product(
    request: ProductCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    catalog_service: CatalogService = Depends(get_catalog_service)
):
    """Create a listing - sellers and managers only."""
    try:
        return catalog_service.create_product(db, user_id, **request.model_dump())
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("/{product_id}", response_model=ProductResponse)
async def update_product(
    request: ProductUpdate,
    product_id: int = Path(..., description="Product ID"),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    catalog_service: CatalogService = Depends(get_catalog_service)
):
    """Update a listing. Sellers may only edit their own."""
    try:
        return catalog_service.update_product(
            db, user_id, product_id, **request.model_dump(exclude_unset=True)
        )
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.delete("/{product_id}", response_model=ProductResponse)
async def delete_product(
    product_id: int = Path(..., description="Product ID"),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    catalog_service: CatalogService = Depends(get_catalog_service)
):
    """Deactivate a listing. It stays in order history but leaves the catalog."""
    try:
        return catalog_service.delete_product(db, user_id, product_id)
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
