"""Users and profiles API router."""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List

from auth import get_current_user_id
from database import get_db
from dependencies import get_user_service
from exceptions import MarketplaceError
from models import Role
from schemas import (
    ProfileCreate,
    ProfileResponse,
    ProfileUpdate,
    UserStatusUpdate,
    UserWithProfileResponse,
)
from services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/profile", response_model=ProfileResponse, status_code=201)
async def create_profile(
    request: ProfileCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    user_service: UserService = Depends(get_user_service)
):
    """Create the caller's profile and choose a role."""
    try:
        return user_service.create_profile(db, user_id, **request.model_dump())
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/profile", response_model=ProfileResponse)
async def get_current_profile(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    user_service: UserService = Depends(get_user_service)
):
    try:
        return user_service.get_current_profile(db, user_id)
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("/profile", response_model=ProfileResponse)
async def update_profile(
    request: ProfileUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    user_service: UserService = Depends(get_user_service)
):
    """Update the caller's own name, phone or avatar."""
    try:
        return user_service.update_profile(db, user_id, **request.model_dump(exclude_unset=True))
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("", response_model=List[UserWithProfileResponse])
async def get_users_by_role(
    role: Role = Query(..., description="Role to list"),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    user_service: UserService = Depends(get_user_service)
):
    """List users holding a role - managers only."""
    try:
        return user_service.get_users_by_role(db, user_id, role)
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("/{target_user_id}/status", response_model=ProfileResponse)
async def set_user_active(
    target_user_id: int,
    request: UserStatusUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    user_service: UserService = Depends(get_user_service)
):
    """Activate or deactivate a user - managers only."""
    try:
        return user_service.set_user_active(db, user_id, target_user_id, request.is_active)
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
