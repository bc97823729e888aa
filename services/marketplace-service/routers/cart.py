"""Cart API router."""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from auth import get_current_user_id
from database import get_db
from dependencies import get_cart_service
from exceptions import MarketplaceError
from schemas import AddToCartRequest, CartMutationResponse, CartResponse, UpdateCartItemRequest
from services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("", response_model=CartResponse)
async def get_cart(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    cart_service: CartService = Depends(get_cart_service)
):
    """Get user's cart - requires authentication."""
    return cart_service.get_cart(db, user_id)


@router.post("/items", response_model=CartMutationResponse)
async def add_to_cart(
    request: AddToCartRequest,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    cart_service: CartService = Depends(get_cart_service)
):
    """Add item to cart - requires authentication."""
    try:
        cart_item = cart_service.add_to_cart(
            db=db,
            user_id=user_id,
            product_id=request.product_id,
            quantity=request.quantity
        )
        return {
            "message": "Item added to cart",
            "cart_item_id": cart_item.id,
            "quantity": cart_item.quantity
        }
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("/items/{cart_item_id}", response_model=CartMutationResponse)
async def update_cart_item(
    cart_item_id: int,
    request: UpdateCartItemRequest,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    cart_service: CartService = Depends(get_cart_service)
):
    """Change a line's quantity. Zero or less removes the line."""
    try:
        cart_item = cart_service.update_cart_item(db, user_id, cart_item_id, request.quantity)
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    if cart_item is None:
        return {"message": "Item removed from cart", "cart_item_id": cart_item_id}
    return {
        "message": "Cart updated",
        "cart_item_id": cart_item.id,
        "quantity": cart_item.quantity
    }


@router.delete("/items/{cart_item_id}", response_model=CartMutationResponse)
async def remove_from_cart(
    cart_item_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    cart_service: CartService = Depends(get_cart_service)
):
    try:
        cart_service.remove_from_cart(db, user_id, cart_item_id)
    except MarketplaceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return {"message": "Item removed from cart", "cart_item_id": cart_item_id}


@router.delete("", response_model=CartMutationResponse)
async def clear_cart(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    cart_service: CartService = Depends(get_cart_service)
):
    """Remove every line from the caller's cart."""
    removed = cart_service.clear_cart(db, user_id)
    return {"message": f"Removed {removed} items from cart"}
