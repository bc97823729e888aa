"""Order management service."""
import logging
import random
import time
from datetime import datetime
from typing import Dict, Any, List, Optional
from sqlalchemy.orm import Session, selectinload
from opentelemetry import trace

from exceptions import InsufficientStock, InvalidStatusTransition, MarketplaceError, NotFound
from models import Order, OrderItem, OrderStatus, PaymentStatus, Product, Role, User, UserProfile
from services.access import deny, get_profile, require_role
from services.audit_service import AuditService
from services.cart_service import CartService
from services.pricing import calculate_totals, to_money
from monitoring import (
    checkout_failures_counter,
    order_amount_histogram,
    order_status_transitions_counter,
    orders_created_counter,
)

logger = logging.getLogger(__name__)

# Forward lifecycle plus the cancelled/refunded side exits
ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.REFUNDED},
    OrderStatus.DELIVERED: {OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: set(),
    OrderStatus.REFUNDED: set(),
}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """Whether an order may move from ``current`` to ``target``."""
    return target in ALLOWED_TRANSITIONS[OrderStatus(current)]


def generate_order_number() -> str:
    """``ORD-`` followed by the last six digits of the epoch millis and three random digits."""
    timestamp = str(int(time.time() * 1000))
    return f"ORD-{timestamp[-6:]}{random.randint(0, 999):03d}"


class OrderService:
    """Service for checkout and order fulfilment."""

    def __init__(
        self,
        cart_service: CartService,
        audit_service: AuditService
    ):
        """
        Initialize order service.

        Args:
            cart_service: Cart service instance
            audit_service: Audit trail writer bound to the current request
        """
        self.cart_service = cart_service
        self.audit_service = audit_service
        self.tracer = trace.get_tracer(__name__)

    def create_order(
        self,
        db: Session,
        user_id: int,
        shipping_address: Dict[str, Any],
        payment_method: str,
        notes: Optional[str] = None
    ) -> Order:
        """
        Convert the user's cart into an order.

        Prices, names and images are copied onto the order lines, stock is
        decremented and the cart is cleared, all in one transaction.

        Args:
            db: Database session
            user_id: User identifier
            shipping_address: Delivery address
            payment_method: Payment method label
            notes: Optional customer notes

        Returns:
            The created order

        Raises:
            MarketplaceError: If cart is empty
            NotFound: If a product in the cart no longer exists or is inactive
            InsufficientStock: If a cart quantity exceeds current stock
        """
        span = trace.get_current_span()
        span.set_attribute("payment.method", payment_method)

        cart_items = self.cart_service.get_cart_items(db, user_id)
        if not cart_items:
            checkout_failures_counter.add(1, {"reason": "empty_cart"})
            raise MarketplaceError("Cart is empty")

        # Step 1: validate every line against live product data
        lines = []
        for item in cart_items:
            with self.tracer.start_as_current_span("db.query.get_product") as db_span:
                db_span.set_attribute("db.operation", "SELECT")
                db_span.set_attribute("db.table", "products")
                db_span.set_attribute("product.id", item.product_id)

                product = db.query(Product).filter(Product.id == item.product_id).first()

            if not product or not product.is_active:
                checkout_failures_counter.add(1, {"reason": "product_unavailable"})
                raise NotFound(f"Product {item.product_id} not found")
            if item.quantity > product.stock:
                checkout_failures_counter.add(1, {"reason": "insufficient_stock"})
                raise InsufficientStock(f"Insufficient stock for {product.name}")

            lines.append((item, product))

        totals = calculate_totals((product.price, item.quantity) for item, product in lines)

        # Step 2: write order, lines, stock and cart changes together
        try:
            with self.tracer.start_as_current_span("db.transaction.create_order") as db_span:
                db_span.set_attribute("db.operation", "INSERT")
                db_span.set_attribute("db.table", "orders")
                db_span.set_attribute("user.id", user_id)

                order = Order(
                    customer_id=user_id,
                    order_number=self._unique_order_number(db),
                    status=OrderStatus.PENDING.value,
                    shipping_address=shipping_address,
                    payment_method=payment_method,
                    payment_status=PaymentStatus.PENDING.value,
                    notes=notes,
                    **totals
                )
                db.add(order)
                db.flush()

                for item, product in lines:
                    db.add(OrderItem(
                        order_id=order.id,
                        product_id=product.id,
                        quantity=item.quantity,
                        price=to_money(product.price),
                        product_name=product.name,
                        product_image=product.images[0] if product.images else None
                    ))

                    with self.tracer.start_as_current_span("db.query.update_product_stock") as update_span:
                        update_span.set_attribute("db.operation", "UPDATE")
                        update_span.set_attribute("db.table", "products")
                        update_span.set_attribute("product.id", product.id)
                        update_span.set_attribute("product.stock.before", product.stock)
                        product.stock -= item.quantity
                        update_span.set_attribute("product.stock.after", product.stock)

                self.cart_service.clear_cart(db, user_id, commit=False)

                self.audit_service.record(
                    db, user_id, "CREATE_ORDER", "orders", order.id,
                    after={
                        "order_id": order.id,
                        "total": totals["total"],
                        "item_count": len(lines)
                    }
                )

                db.commit()
                db_span.set_attribute("order.id", order.id)
        except Exception as e:
            db.rollback()
            logger.error("Failed to create order", extra={
                "user_id": user_id,
                "amount": float(totals["total"]),
                "payment_method": payment_method,
                "error": str(e)
            })
            raise

        orders_created_counter.add(1, {"payment_method": payment_method})
        order_amount_histogram.record(float(totals["total"]), {"payment_method": payment_method})

        logger.info("Order created", extra={
            "user_id": user_id,
            "order_id": order.id,
            "order_number": order.order_number,
            "amount": float(totals["total"]),
            "payment_method": payment_method,
            "item_count": len(lines)
        })
        return order

    def get_user_orders(self, db: Session, user_id: int) -> List[Order]:
        """
        Get all orders for a user, newest first.

        Args:
            db: Database session
            user_id: User identifier

        Returns:
            List of orders with their items
        """
        with self.tracer.start_as_current_span("db.query.get_user_orders") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "orders")
            db_span.set_attribute("user.id", user_id)

            orders = (
                db.query(Order)
                .options(selectinload(Order.items))
                .filter(Order.customer_id == user_id)
                .order_by(Order.id.desc())
                .all()
            )

            db_span.set_attribute("db.rows_returned", len(orders))

            return orders

    def get_order(self, db: Session, user_id: int, order_id: int) -> Order:
        """
        Get one order with its items.

        Visible to the ordering customer, the assigned seller, and managers.
        """
        order = self._get_order(db, order_id)

        if order.customer_id == user_id:
            return order

        profile = get_profile(db, user_id)
        if profile and profile.is_active:
            if profile.role == Role.MANAGER.value:
                return order
            if profile.role == Role.SELLER.value and order.seller_id == user_id:
                return order

        raise deny(user_id, "order_visibility")

    def get_all_orders(
        self,
        db: Session,
        user_id: int,
        status: Optional[OrderStatus] = None
    ) -> List[Dict[str, Any]]:
        """
        List orders for staff, newest first.

        Sellers see orders assigned to them plus unassigned pending orders;
        managers see everything.
        """
        profile = require_role(db, user_id, Role.SELLER, Role.MANAGER)

        query = db.query(Order).options(selectinload(Order.items))
        if status is not None:
            query = query.filter(Order.status == OrderStatus(status).value)
        if profile.role == Role.SELLER.value:
            query = query.filter(
                (Order.seller_id == user_id)
                | ((Order.seller_id.is_(None)) & (Order.status == OrderStatus.PENDING.value))
            )
        orders = query.order_by(Order.id.desc()).all()

        customer_ids = {order.customer_id for order in orders}
        customers = {}
        if customer_ids:
            rows = (
                db.query(User, UserProfile)
                .outerjoin(UserProfile, UserProfile.user_id == User.id)
                .filter(User.id.in_(customer_ids))
                .all()
            )
            customers = {
                user.id: {
                    "user_id": user.id,
                    "email": user.email,
                    "name": user_profile.full_name if user_profile else user.name,
                    "phone": user_profile.phone if user_profile else None,
                }
                for user, user_profile in rows
            }

        return [{"order": order, "customer": customers.get(order.customer_id)} for order in orders]

    def update_order_status(
        self,
        db: Session,
        user_id: int,
        order_id: int,
        status: OrderStatus,
        tracking_number: Optional[str] = None,
        notes: Optional[str] = None
    ) -> Order:
        """
        Move an order through its lifecycle. Sellers and managers only.

        A seller may act only on orders assigned to them, except that
        confirming an unassigned pending order assigns it to the seller.
        Re-submitting the current status updates tracking number and notes
        without a transition.

        Raises:
            AccessDenied: If the caller may not act on this order
            InvalidStatusTransition: If the lifecycle forbids the change
        """
        profile = require_role(db, user_id, Role.SELLER, Role.MANAGER)
        order = self._get_order(db, order_id)

        current = OrderStatus(order.status)
        target = OrderStatus(status)
        claim = False

        if profile.role == Role.SELLER.value and order.seller_id != user_id:
            claim = (
                order.seller_id is None
                and current == OrderStatus.PENDING
                and target == OrderStatus.CONFIRMED
            )
            if not claim:
                raise deny(user_id, "order_assignment")

        if target != current and not can_transition(current, target):
            raise InvalidStatusTransition(
                f"Cannot change order status from {current.value} to {target.value}"
            )

        order.status = target.value
        if claim:
            order.seller_id = user_id
        if tracking_number:
            order.tracking_number = tracking_number
        if notes:
            order.notes = notes
        if target == OrderStatus.DELIVERED:
            order.payment_status = PaymentStatus.PAID.value
        elif target == OrderStatus.REFUNDED:
            order.payment_status = PaymentStatus.REFUNDED.value
        order.updated_at = datetime.utcnow()

        try:
            self.audit_service.record(
                db, user_id, "UPDATE_ORDER_STATUS", "orders", order_id,
                before={"status": current.value},
                after={"status": target.value},
                metadata={"assigned_seller": user_id} if claim else None
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        order_status_transitions_counter.add(1, {
            "from": current.value,
            "to": target.value,
            "role": profile.role
        })
        logger.info("Order status updated", extra={
            "order_id": order_id,
            "user_id": user_id,
            "from_status": current.value,
            "to_status": target.value,
            "claimed": claim
        })
        return order

    def _get_order(self, db: Session, order_id: int) -> Order:
        order = (
            db.query(Order)
            .options(selectinload(Order.items))
            .filter(Order.id == order_id)
            .first()
        )
        if not order:
            raise NotFound("Order not found")
        return order

    def _unique_order_number(self, db: Session) -> str:
        while True:
            number = generate_order_number()
            if not db.query(Order.id).filter(Order.order_number == number).first():
                return number
