"""Manager dashboard and audit log API router."""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from auth import get_current_user_id
from config import MAX_PAGE_LIMIT
from database import get_db
from dependencies import get_audit_service, get_dashboard_service
from exceptions import MarketplaceError
from schemas import AuditLogResponse, DashboardResponse
from services.audit_service import AuditService
from services.dashboard_service import DashboardService

router = APIRouter(tags=["admin"])


@router.get("/dashboard/metrics", response_model=DashboardResponse)
async def get_metrics(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    dashboard_service: DashboardService = Depends(get_dashboard_service)
):
    """Revenue, order, stock and staffing figures - managers only."""
    try:
        return dashboard_service.get_metrics(db, user_id)
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/audit-logs", response_model=List[AuditLogResponse])
async def list_audit_logs(
    resource: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    actor_id: Optional[int] = Query(None, description="Only entries written by this user"),
    limit: int = Query(50, ge=1, le=MAX_PAGE_LIMIT),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    audit_service: AuditService = Depends(get_audit_service)
):
    """Recent audit entries, newest first - managers only."""
    try:
        return audit_service.list_entries(
            db, user_id, resource=resource, action=action, actor_id=actor_id, limit=limit
        )
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
