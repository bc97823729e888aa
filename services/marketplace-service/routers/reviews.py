"""Reviews API router."""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List

from auth import get_current_user_id
from database import get_db
from dependencies import get_review_service
from exceptions import MarketplaceError
from schemas import ReviewCreate, ReviewResponse, ReviewUpdate
from services.review_service import ReviewService

router = APIRouter(tags=["reviews"])


@router.get("/products/{product_id}/reviews", response_model=List[ReviewResponse])
async def get_product_reviews(
    product_id: int,
    db: Session = Depends(get_db),
    review_service: ReviewService = Depends(get_review_service)
):
    """Reviews of a product, newest first."""
    return review_service.get_product_reviews(db, product_id)


@router.post("/reviews", response_model=ReviewResponse, status_code=201)
async def create_review(
    request: ReviewCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    review_service: ReviewService = Depends(get_review_service)
):
    """Review a product from one of the caller's orders - customers only."""
    try:
        return review_service.create_review(db, user_id, **request.model_dump())
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("/reviews/{review_id}", response_model=ReviewResponse)
async def update_review(
    review_id: int,
    request: ReviewUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    review_service: ReviewService = Depends(get_review_service)
):
    try:
        return review_service.update_review(
            db, user_id, review_id, **request.model_dump(exclude_unset=True)
        )
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.delete("/reviews/{review_id}", status_code=204)
async def delete_review(
    review_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    review_service: ReviewService = Depends(get_review_service)
):
    try:
        review_service.delete_review(db, user_id, review_id)
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
