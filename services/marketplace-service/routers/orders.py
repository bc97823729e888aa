"""Orders API router."""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from auth import get_current_user_id
from database import get_db
from dependencies import get_order_service
from exceptions import MarketplaceError
from models import OrderStatus
from schemas import (
    CreateOrderRequest,
    OrderResponse,
    OrdersListResponse,
    StaffOrderResponse,
    UpdateOrderStatusRequest,
)
from services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderResponse, status_code=201)
async def create_order(
    request: CreateOrderRequest,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    order_service: OrderService = Depends(get_order_service)
):
    """Check out the caller's cart - requires authentication."""
    try:
        return order_service.create_order(
            db=db,
            user_id=user_id,
            shipping_address=request.shipping_address.model_dump(),
            payment_method=request.payment_method,
            notes=request.notes
        )
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("", response_model=OrdersListResponse)
async def get_orders(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    order_service: OrderService = Depends(get_order_service)
):
    """Get user's orders - requires authentication."""
    orders = order_service.get_user_orders(db, user_id)

    return {"orders": orders}


@router.get("/all", response_model=List[StaffOrderResponse])
async def get_all_orders(
    status: Optional[OrderStatus] = Query(None, description="Only orders in this status"),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    order_service: OrderService = Depends(get_order_service)
):
    """Orders for fulfilment - sellers and managers only."""
    try:
        return order_service.get_all_orders(db, user_id, status)
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    order_service: OrderService = Depends(get_order_service)
):
    try:
        return order_service.get_order(db, user_id, order_id)
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: int,
    request: UpdateOrderStatusRequest,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    order_service: OrderService = Depends(get_order_service)
):
    """Move an order through its lifecycle - sellers and managers only."""
    try:
        return order_service.update_order_status(
            db,
            user_id,
            order_id,
            status=request.status,
            tracking_number=request.tracking_number,
            notes=request.notes
        )
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
