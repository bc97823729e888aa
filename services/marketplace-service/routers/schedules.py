"""Work schedules API router."""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from auth import get_current_user_id
from database import get_db
from dependencies import get_schedule_service
from exceptions import MarketplaceError
from models import ShiftType
from schemas import ScheduleCreate, ScheduleResponse, ScheduleStatusUpdate
from services.schedule_service import ScheduleService

router = APIRouter(prefix="/schedules", tags=["schedules"])

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


@router.get("", response_model=List[ScheduleResponse])
async def get_seller_schedules(
    seller_id: Optional[int] = Query(None, description="Seller to list; required for managers"),
    start_date: Optional[str] = Query(None, pattern=DATE_PATTERN),
    end_date: Optional[str] = Query(None, pattern=DATE_PATTERN),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    schedule_service: ScheduleService = Depends(get_schedule_service)
):
    """A seller's shifts within an optional inclusive date range."""
    try:
        return schedule_service.get_seller_schedules(db, user_id, seller_id, start_date, end_date)
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/all", response_model=List[ScheduleResponse])
async def get_all_schedules(
    date: Optional[str] = Query(None, pattern=DATE_PATTERN),
    shift_type: Optional[ShiftType] = Query(None),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    schedule_service: ScheduleService = Depends(get_schedule_service)
):
    """Every shift, optionally filtered - managers only."""
    try:
        return schedule_service.get_all_schedules(db, user_id, date, shift_type)
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("", response_model=ScheduleResponse, status_code=201)
async def create_schedule(
    request: ScheduleCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    schedule_service: ScheduleService = Depends(get_schedule_service)
):
    """Assign a shift to a seller - managers only."""
    try:
        return schedule_service.create_schedule(db, user_id, **request.model_dump())
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("/{schedule_id}/status", response_model=ScheduleResponse)
async def update_schedule_status(
    schedule_id: int,
    request: ScheduleStatusUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    schedule_service: ScheduleService = Depends(get_schedule_service)
):
    try:
        return schedule_service.update_schedule_status(
            db, user_id, schedule_id, request.status, request.notes
        )
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
