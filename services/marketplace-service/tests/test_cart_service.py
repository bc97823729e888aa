from decimal import Decimal

import pytest

from exceptions import InsufficientStock, MarketplaceError, NotFound
from models import AuditLog, CartItem


class TestAddToCart:
    def test_adds_new_line(self, db, cart_service, customer, make_product):
        product = make_product(stock=5)

        item = cart_service.add_to_cart(db, customer, product.id, 2)

        assert item.quantity == 2
        assert db.query(AuditLog).filter(AuditLog.action == "ADD_TO_CART").count() == 1

    def test_merges_with_existing_line(self, db, cart_service, customer, make_product):
        product = make_product(stock=5)
        first = cart_service.add_to_cart(db, customer, product.id, 2)

        second = cart_service.add_to_cart(db, customer, product.id, 3)

        assert second.id == first.id
        assert second.quantity == 5
        assert db.query(CartItem).count() == 1

    def test_merged_quantity_cannot_exceed_stock(self, db, cart_service, customer, make_product):
        product = make_product(stock=5)
        cart_service.add_to_cart(db, customer, product.id, 4)

        with pytest.raises(InsufficientStock, match="Insufficient stock"):
            cart_service.add_to_cart(db, customer, product.id, 2)

        db.expire_all()
        assert db.query(CartItem).one().quantity == 4

    def test_quantity_must_be_positive(self, db, cart_service, customer, make_product):
        product = make_product()
        with pytest.raises(MarketplaceError):
            cart_service.add_to_cart(db, customer, product.id, 0)

    def test_inactive_product_rejected(self, db, cart_service, customer, make_product):
        product = make_product(is_active=False)
        with pytest.raises(NotFound):
            cart_service.add_to_cart(db, customer, product.id, 1)


class TestUpdateAndRemove:
    def test_update_sets_quantity(self, db, cart_service, customer, make_product):
        product = make_product(stock=5)
        item = cart_service.add_to_cart(db, customer, product.id, 1)

        updated = cart_service.update_cart_item(db, customer, item.id, 3)

        assert updated.quantity == 3

    def test_update_to_zero_removes_line(self, db, cart_service, customer, make_product):
        product = make_product()
        item = cart_service.add_to_cart(db, customer, product.id, 1)

        assert cart_service.update_cart_item(db, customer, item.id, 0) is None
        assert db.query(CartItem).count() == 0

    def test_update_above_stock_rejected(self, db, cart_service, customer, make_product):
        product = make_product(stock=2)
        item = cart_service.add_to_cart(db, customer, product.id, 1)

        with pytest.raises(InsufficientStock):
            cart_service.update_cart_item(db, customer, item.id, 3)

    def test_other_users_line_is_not_found(self, db, cart_service, customer, make_user, make_product):
        product = make_product()
        item = cart_service.add_to_cart(db, customer, product.id, 1)
        intruder = make_user("customer")

        with pytest.raises(NotFound):
            cart_service.update_cart_item(db, intruder, item.id, 2)
        with pytest.raises(NotFound):
            cart_service.remove_from_cart(db, intruder, item.id)

    def test_remove_line(self, db, cart_service, customer, make_product):
        product = make_product()
        item = cart_service.add_to_cart(db, customer, product.id, 1)

        cart_service.remove_from_cart(db, customer, item.id)

        assert db.query(CartItem).count() == 0
        assert db.query(AuditLog).filter(AuditLog.action == "REMOVE_FROM_CART").count() == 1

    def test_clear_cart(self, db, cart_service, customer, make_user, make_product):
        other = make_user("customer")
        for _ in range(2):
            cart_service.add_to_cart(db, customer, make_product().id, 1)
        cart_service.add_to_cart(db, other, make_product().id, 1)

        assert cart_service.clear_cart(db, customer) == 2
        assert db.query(CartItem).filter(CartItem.user_id == other).count() == 1
        entry = db.query(AuditLog).filter(AuditLog.action == "CLEAR_CART").one()
        assert entry.details["metadata"] == {"removed": 2}


class TestGetCart:
    def test_empty_cart_has_zero_totals(self, db, cart_service, customer):
        cart = cart_service.get_cart(db, customer)

        assert cart["items"] == []
        assert cart["total"] == Decimal("0.00")
        assert cart["shipping"] == Decimal("0.00")

    def test_totals(self, db, cart_service, customer, make_product):
        product = make_product(price="30.00", stock=10)
        cart_service.add_to_cart(db, customer, product.id, 2)

        cart = cart_service.get_cart(db, customer)

        line = cart["items"][0]
        assert line["product_name"] == product.name
        assert line["product_image"] == product.images[0]
        assert line["subtotal"] == Decimal("60.00")
        assert cart["subtotal"] == Decimal("60.00")
        assert cart["tax"] == Decimal("6.00")
        assert cart["shipping"] == Decimal("10.00")
        assert cart["total"] == Decimal("76.00")

    def test_clamps_quantity_to_current_stock(self, db, cart_service, customer, make_product):
        product = make_product(stock=5)
        cart_service.add_to_cart(db, customer, product.id, 5)
        product.stock = 2
        db.commit()

        cart = cart_service.get_cart(db, customer)

        assert cart["items"][0]["quantity"] == 2
        db.expire_all()
        assert db.query(CartItem).one().quantity == 2

    def test_drops_sold_out_lines(self, db, cart_service, customer, make_product):
        sold_out = make_product(stock=3)
        available = make_product(stock=3)
        cart_service.add_to_cart(db, customer, sold_out.id, 1)
        cart_service.add_to_cart(db, customer, available.id, 1)
        sold_out.stock = 0
        db.commit()

        cart = cart_service.get_cart(db, customer)

        assert [line["product_id"] for line in cart["items"]] == [available.id]
        assert db.query(CartItem).count() == 1

    def test_drops_inactive_products(self, db, cart_service, customer, make_product):
        product = make_product()
        cart_service.add_to_cart(db, customer, product.id, 1)
        product.is_active = False
        db.commit()

        assert cart_service.get_cart(db, customer)["items"] == []
        assert db.query(CartItem).count() == 0

    def test_adjustment_is_audited(self, db, cart_service, customer, make_product):
        retired = make_product(stock=5)
        shrinking = make_product(stock=5)
        cart_service.add_to_cart(db, customer, retired.id, 1)
        cart_service.add_to_cart(db, customer, shrinking.id, 4)
        retired.is_active = False
        shrinking.stock = 2
        db.commit()

        cart_service.get_cart(db, customer)

        entry = db.query(AuditLog).filter(AuditLog.action == "CART_ADJUSTED").one()
        assert entry.user_id == customer
        assert entry.details["metadata"] == {
            "removed_products": [retired.id],
            "reduced": [{"product_id": shrinking.id, "from": 4, "to": 2}],
        }

    def test_unchanged_cart_is_not_audited(self, db, cart_service, customer, make_product):
        cart_service.add_to_cart(db, customer, make_product(stock=5).id, 1)

        cart_service.get_cart(db, customer)

        assert db.query(AuditLog).filter(AuditLog.action == "CART_ADJUSTED").count() == 0
