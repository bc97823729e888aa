"""Cart management service."""
import logging
from typing import List, Dict, Any, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from opentelemetry import trace

from exceptions import Conflict, InsufficientStock, MarketplaceError, NotFound
from models import CartItem, Product
from monitoring import cart_additions_counter
from services.audit_service import AuditService
from services.pricing import calculate_totals, line_total, to_money

logger = logging.getLogger(__name__)


class CartService:
    """Service for managing shopping carts."""

    def __init__(self, audit_service: AuditService):
        """
        Initialize cart service.

        Args:
            audit_service: Audit trail writer bound to the current request
        """
        self.audit_service = audit_service
        self.tracer = trace.get_tracer(__name__)

    def add_to_cart(
        self,
        db: Session,
        user_id: int,
        product_id: int,
        quantity: int
    ) -> CartItem:
        """
        Add item to user's cart.

        Adding a product already in the cart increases the existing line.

        Args:
            db: Database session
            user_id: User identifier
            product_id: Product identifier
            quantity: Quantity to add

        Returns:
            The created or updated cart line

        Raises:
            NotFound: If the product does not exist or is inactive
            InsufficientStock: If the resulting quantity exceeds stock
        """
        span = trace.get_current_span()
        span.set_attribute("product.id", product_id)
        span.set_attribute("quantity", quantity)

        if quantity < 1:
            raise MarketplaceError("Quantity must be at least 1")

        product = self._get_active_product(db, product_id)
        if quantity > product.stock:
            raise InsufficientStock("Insufficient stock")

        existing = db.query(CartItem).filter(
            CartItem.user_id == user_id,
            CartItem.product_id == product_id
        ).first()

        try:
            with self.tracer.start_as_current_span("db.query.upsert_cart_item") as db_span:
                db_span.set_attribute("db.table", "cart_items")
                db_span.set_attribute("user.id", user_id)

                if existing:
                    new_quantity = existing.quantity + quantity
                    if new_quantity > product.stock:
                        raise InsufficientStock("Insufficient stock")
                    before = {"quantity": existing.quantity}
                    existing.quantity = new_quantity
                    cart_item = existing
                    db_span.set_attribute("db.operation", "UPDATE")
                else:
                    before = None
                    cart_item = CartItem(
                        user_id=user_id,
                        product_id=product_id,
                        quantity=quantity
                    )
                    db.add(cart_item)
                    db.flush()
                    db_span.set_attribute("db.operation", "INSERT")

            self.audit_service.record(
                db, user_id, "ADD_TO_CART", "cart", cart_item.id,
                before=before,
                after={"product_id": product_id, "quantity": cart_item.quantity}
            )
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning("Concurrent cart insert rejected", extra={"user_id": user_id})
            raise Conflict("Cart was changed by another request, please retry")
        except Exception:
            db.rollback()
            raise

        cart_additions_counter.add(1, {"product_id": str(product_id)})
        logger.info("Added product to cart", extra={
            "user_id": user_id,
            "product_id": product_id,
            "product_name": product.name,
            "quantity": quantity
        })
        return cart_item

    def update_cart_item(
        self,
        db: Session,
        user_id: int,
        cart_item_id: int,
        quantity: int
    ) -> Optional[CartItem]:
        """
        Set the quantity of a cart line. A quantity of zero or less removes it.

        Returns:
            The updated line, or None if it was removed
        """
        cart_item = self._get_own_item(db, user_id, cart_item_id)

        if quantity <= 0:
            self.remove_from_cart(db, user_id, cart_item_id)
            return None

        product = self._get_active_product(db, cart_item.product_id)
        if quantity > product.stock:
            raise InsufficientStock("Insufficient stock")

        before = {"quantity": cart_item.quantity}
        cart_item.quantity = quantity
        try:
            self.audit_service.record(
                db, user_id, "UPDATE_CART_ITEM", "cart", cart_item_id,
                before=before, after={"quantity": quantity}
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        return cart_item

    def remove_from_cart(self, db: Session, user_id: int, cart_item_id: int) -> int:
        """Remove one line from the caller's cart."""
        cart_item = self._get_own_item(db, user_id, cart_item_id)

        try:
            self.audit_service.record(
                db, user_id, "REMOVE_FROM_CART", "cart", cart_item_id,
                before={"product_id": cart_item.product_id, "quantity": cart_item.quantity}
            )
            db.delete(cart_item)
            db.commit()
        except Exception:
            db.rollback()
            raise
        return cart_item_id

    def get_cart(self, db: Session, user_id: int) -> Dict[str, Any]:
        """
        Get user's cart contents.

        Lines for products that were deactivated or sold out are dropped, and
        lines whose quantity exceeds current stock are reduced to the stock
        level. Any such adjustment is committed with a CART_ADJUSTED entry.

        Args:
            db: Database session
            user_id: User identifier

        Returns:
            Cart contents with items and totals
        """
        cart_items = self.get_cart_items(db, user_id)

        items = []
        removed = []
        reduced = []
        for item in cart_items:
            product = item.product
            if product is None or not product.is_active or product.stock <= 0:
                logger.info("Dropping unavailable product from cart", extra={
                    "user_id": user_id,
                    "product_id": item.product_id
                })
                removed.append(item.product_id)
                db.delete(item)
                continue

            if item.quantity > product.stock:
                logger.info("Reducing cart quantity to available stock", extra={
                    "user_id": user_id,
                    "product_id": product.id,
                    "requested": item.quantity,
                    "stock": product.stock
                })
                reduced.append({"product_id": product.id, "from": item.quantity, "to": product.stock})
                item.quantity = product.stock

            items.append({
                "id": item.id,
                "product_id": product.id,
                "product_name": product.name,
                "product_image": product.images[0] if product.images else None,
                "price": to_money(product.price),
                "quantity": item.quantity,
                "stock": product.stock,
                "subtotal": line_total(product.price, item.quantity)
            })

        if removed or reduced:
            try:
                self.audit_service.record(
                    db, user_id, "CART_ADJUSTED", "cart",
                    metadata={"removed_products": removed, "reduced": reduced}
                )
                db.commit()
            except Exception:
                db.rollback()
                raise

        if items:
            totals = calculate_totals((line["price"], line["quantity"]) for line in items)
        else:
            totals = {key: to_money(0) for key in ("subtotal", "tax", "shipping", "total")}

        return {
            "user_id": user_id,
            "items": items,
            **totals
        }

    def clear_cart(self, db: Session, user_id: int, commit: bool = True) -> int:
        """
        Clear user's cart.

        Args:
            db: Database session
            user_id: User identifier
            commit: Commit immediately; pass False to join a larger transaction

        Returns:
            Number of lines removed
        """
        with self.tracer.start_as_current_span("db.query.delete_cart_items") as db_span:
            db_span.set_attribute("db.operation", "DELETE")
            db_span.set_attribute("db.table", "cart_items")
            db_span.set_attribute("user.id", user_id)

            cart_items = self.get_cart_items(db, user_id)
            for item in cart_items:
                db.delete(item)

            db_span.set_attribute("db.rows_affected", len(cart_items))

        if commit:
            try:
                self.audit_service.record(
                    db, user_id, "CLEAR_CART", "cart",
                    metadata={"removed": len(cart_items)}
                )
                db.commit()
            except Exception:
                db.rollback()
                raise
        return len(cart_items)

    def get_cart_items(self, db: Session, user_id: int) -> List[CartItem]:
        """
        Get cart items for user.

        Args:
            db: Database session
            user_id: User identifier

        Returns:
            List of cart items
        """
        with self.tracer.start_as_current_span("db.query.get_cart_items") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "cart_items")
            db_span.set_attribute("user.id", user_id)

            cart_items = (
                db.query(CartItem)
                .filter(CartItem.user_id == user_id)
                .order_by(CartItem.id)
                .all()
            )

            db_span.set_attribute("db.rows_returned", len(cart_items))

            return cart_items

    def _get_own_item(self, db: Session, user_id: int, cart_item_id: int) -> CartItem:
        cart_item = db.query(CartItem).filter(CartItem.id == cart_item_id).first()
        if not cart_item or cart_item.user_id != user_id:
            raise NotFound("Cart item not found")
        return cart_item

    def _get_active_product(self, db: Session, product_id: int) -> Product:
        with self.tracer.start_as_current_span("db.query.get_product") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "products")
            db_span.set_attribute("product.id", product_id)

            product = db.query(Product).filter(Product.id == product_id).first()
            db_span.set_attribute("db.rows_returned", 1 if product else 0)

        if not product or not product.is_active:
            raise NotFound("Product not found")
        return product
