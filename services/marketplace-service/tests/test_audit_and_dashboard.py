from datetime import datetime
from decimal import Decimal

import pytest

from conftest import SHIPPING_ADDRESS
from exceptions import AccessDenied
from models import AuditLog, OrderStatus
from services.audit_service import snapshot
from services.dashboard_service import DashboardService


class TestAuditService:
    def test_record_joins_callers_transaction(self, db, audit_service, customer):
        audit_service.record(db, customer, "TEST", "things", 1, after={"x": 1})
        db.rollback()

        assert db.query(AuditLog).count() == 0

    def test_record_captures_request_context(self, db, audit_service, customer):
        audit_service.record(
            db, customer, "TEST", "things", 7,
            before={"when": datetime(2026, 1, 2, 3, 4, 5)},
            after={"amount": Decimal("1.50")},
            metadata={"note": "hi"}
        )
        db.commit()

        entry = db.query(AuditLog).one()
        assert entry.resource_id == "7"
        assert entry.user_agent == "pytest"
        assert entry.details == {
            "before": {"when": "2026-01-02T03:04:05"},
            "after": {"amount": 1.5},
            "metadata": {"note": "hi"},
        }

    def test_snapshot_is_json_safe(self, make_product):
        data = snapshot(make_product(price="12.30"))

        assert data["price"] == 12.3
        assert isinstance(data["created_at"], str)

    def test_list_entries_for_managers(self, db, audit_service, manager, customer):
        for action in ("A", "B", "A"):
            audit_service.record(db, customer, action, "things")
        audit_service.record(db, manager, "A", "other")
        db.commit()

        entries = audit_service.list_entries(db, manager, resource="things", action="A")
        assert len(entries) == 2
        assert entries[0].id > entries[1].id
        assert len(audit_service.list_entries(db, manager, actor_id=manager)) == 1
        assert len(audit_service.list_entries(db, manager, limit=2)) == 2

        with pytest.raises(AccessDenied):
            audit_service.list_entries(db, customer)


class TestDashboard:
    def test_metrics(self, db, cart_service, order_service, manager, seller, customer, make_user, make_product):
        make_user("customer")
        cheap = make_product(price="20.00", stock=4)
        make_product(price="5.00", stock=50)
        make_product(is_active=False, stock=0)

        cart_service.add_to_cart(db, customer, cheap.id, 1)
        delivered = order_service.create_order(db, customer, dict(SHIPPING_ADDRESS), "card")
        for status in ("confirmed", "processing", "shipped", "delivered"):
            order_service.update_order_status(db, manager, delivered.id, OrderStatus(status))
        cart_service.add_to_cart(db, customer, cheap.id, 1)
        order_service.create_order(db, customer, dict(SHIPPING_ADDRESS), "card")

        metrics = DashboardService().get_metrics(db, manager)

        assert metrics["total_revenue"] == Decimal("32.00")
        assert metrics["pending_orders"] == 1
        assert metrics["active_products"] == 2
        assert metrics["low_stock_products"] == 1
        assert metrics["seller_count"] == 1
        assert metrics["customer_count"] == 2
        assert len(metrics["recent_orders"]) == 2

    def test_managers_only(self, db, seller):
        with pytest.raises(AccessDenied):
            DashboardService().get_metrics(db, seller)
