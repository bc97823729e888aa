"""Manager dashboard metrics."""
from decimal import Decimal
from typing import Any, Dict
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload
from opentelemetry import trace

from config import LOW_STOCK_THRESHOLD
from models import Order, OrderStatus, Product, Role, UserProfile
from services.access import require_role
from services.pricing import to_money

RECENT_ORDER_COUNT = 5


class DashboardService:
    """Aggregate figures for the manager overview."""

    def __init__(self):
        self.tracer = trace.get_tracer(__name__)

    def get_metrics(self, db: Session, user_id: int) -> Dict[str, Any]:
        require_role(db, user_id, Role.MANAGER)

        with self.tracer.start_as_current_span("db.query.dashboard_metrics"):
            total_revenue = (
                db.query(func.coalesce(func.sum(Order.total), 0))
                .filter(Order.status == OrderStatus.DELIVERED.value)
                .scalar()
            )
            pending_orders = (
                db.query(func.count(Order.id))
                .filter(Order.status == OrderStatus.PENDING.value)
                .scalar()
            )
            active_products = (
                db.query(func.count(Product.id))
                .filter(Product.is_active.is_(True))
                .scalar()
            )
            low_stock_products = (
                db.query(func.count(Product.id))
                .filter(Product.is_active.is_(True), Product.stock <= LOW_STOCK_THRESHOLD)
                .scalar()
            )
            role_counts = dict(
                db.query(UserProfile.role, func.count(UserProfile.id))
                .group_by(UserProfile.role)
                .all()
            )
            recent_orders = (
                db.query(Order)
                .options(selectinload(Order.items))
                .order_by(Order.created_at.desc(), Order.id.desc())
                .limit(RECENT_ORDER_COUNT)
                .all()
            )

        return {
            "total_revenue": to_money(Decimal(str(total_revenue))),
            "pending_orders": pending_orders,
            "low_stock_products": low_stock_products,
            "active_products": active_products,
            "seller_count": role_counts.get(Role.SELLER.value, 0),
            "customer_count": role_counts.get(Role.CUSTOMER.value, 0),
            "recent_orders": recent_orders,
        }
