from decimal import Decimal

import pytest

from exceptions import AccessDenied, Conflict, MarketplaceError, NotFound
from models import AuditLog, Category, Product, Review


def _create(catalog_service, db, user_id, category, **overrides):
    fields = {
        "name": "Desk Lamp",
        "description": "Bright",
        "price": Decimal("89.99"),
        "category_id": category.id,
        "sku": "LAMP-1",
        "stock": 5,
    }
    fields.update(overrides)
    return catalog_service.create_product(db, user_id, **fields)


class TestCategories:
    def test_manager_creates_category_with_audit(self, db, catalog_service, manager):
        category = catalog_service.create_category(db, manager, "Books", "Printed matter")

        assert category.id is not None
        entry = db.query(AuditLog).filter(AuditLog.action == "CREATE_CATEGORY").one()
        assert entry.user_id == manager
        assert entry.resource_id == str(category.id)
        assert entry.details["after"]["name"] == "Books"
        assert entry.ip_address == "127.0.0.1"

    def test_seller_cannot_create_category(self, db, catalog_service, seller):
        with pytest.raises(AccessDenied):
            catalog_service.create_category(db, seller, "Books")

    def test_listing_hides_inactive_and_sorts_by_name(self, db, catalog_service, manager):
        catalog_service.create_category(db, manager, "Toys")
        catalog_service.create_category(db, manager, "Books")
        hidden = catalog_service.create_category(db, manager, "Archive")
        catalog_service.update_category(db, manager, hidden.id, is_active=False)

        names = [c.name for c in catalog_service.get_categories(db)]
        assert names == ["Books", "Toys"]

    def test_update_records_before_and_after(self, db, catalog_service, manager):
        category = catalog_service.create_category(db, manager, "Toys")
        catalog_service.update_category(db, manager, category.id, name="Games")

        entry = db.query(AuditLog).filter(AuditLog.action == "UPDATE_CATEGORY").one()
        assert entry.details["before"]["name"] == "Toys"
        assert entry.details["after"] == {"name": "Games"}

    def test_update_missing_category(self, db, catalog_service, manager):
        with pytest.raises(NotFound):
            catalog_service.update_category(db, manager, 999, name="x")


class TestProductAdministration:
    def test_seller_owns_created_product(self, db, catalog_service, seller, category):
        product = _create(catalog_service, db, seller, category)

        assert product.seller_id == seller
        assert product.price == Decimal("89.99")
        assert product.is_active is True
        entry = db.query(AuditLog).filter(AuditLog.action == "CREATE_PRODUCT").one()
        assert entry.details["after"]["sku"] == "LAMP-1"
        assert entry.details["after"]["price"] == 89.99

    def test_manager_created_product_has_no_owner(self, db, catalog_service, manager, category):
        product = _create(catalog_service, db, manager, category)
        assert product.seller_id is None

    def test_customer_cannot_create_product(self, db, catalog_service, customer, category):
        with pytest.raises(AccessDenied):
            _create(catalog_service, db, customer, category)

    def test_duplicate_sku_conflicts(self, db, catalog_service, seller, category):
        _create(catalog_service, db, seller, category)
        with pytest.raises(Conflict):
            _create(catalog_service, db, seller, category, name="Other")

    def test_inactive_category_rejected(self, db, catalog_service, seller):
        archived = Category(name="Archive", is_active=False)
        db.add(archived)
        db.commit()

        with pytest.raises(NotFound):
            _create(catalog_service, db, seller, archived)

    def test_seller_cannot_edit_another_sellers_product(self, db, catalog_service, make_user, seller, category):
        other = make_user("seller")
        product = _create(catalog_service, db, other, category)

        with pytest.raises(AccessDenied):
            catalog_service.update_product(db, seller, product.id, stock=1)
        with pytest.raises(AccessDenied):
            catalog_service.delete_product(db, seller, product.id)

    def test_manager_can_edit_any_product(self, db, catalog_service, seller, manager, category):
        product = _create(catalog_service, db, seller, category)

        updated = catalog_service.update_product(db, manager, product.id, price=Decimal("79.5"), stock=7)

        assert updated.price == Decimal("79.50")
        assert updated.stock == 7

    def test_negative_stock_rejected(self, db, catalog_service, seller, category):
        product = _create(catalog_service, db, seller, category)
        with pytest.raises(MarketplaceError):
            catalog_service.update_product(db, seller, product.id, stock=-1)

    def test_delete_is_soft(self, db, catalog_service, seller, category):
        product = _create(catalog_service, db, seller, category)

        catalog_service.delete_product(db, seller, product.id)

        db.expire_all()
        assert db.query(Product).filter(Product.id == product.id).one().is_active is False
        with pytest.raises(NotFound):
            catalog_service.get_product(db, product.id)
        assert [p.id for p in catalog_service.get_managed_products(db, seller)] == [product.id]

    def test_managed_products_scope(self, db, catalog_service, make_user, seller, manager, category):
        mine = _create(catalog_service, db, seller, category, sku="A")
        other = make_user("seller")
        theirs = _create(catalog_service, db, other, category, sku="B")

        assert [p.id for p in catalog_service.get_managed_products(db, seller)] == [mine.id]
        assert {p.id for p in catalog_service.get_managed_products(db, manager)} == {mine.id, theirs.id}


class TestBrowsing:
    def test_newest_first_and_inactive_hidden(self, db, catalog_service, make_product):
        first = make_product()
        make_product(is_active=False)
        third = make_product()

        products = catalog_service.get_products(db)
        assert [p.id for p in products] == [third.id, first.id]
        assert products[0].category.name == "Electronics"

    def test_search_is_case_insensitive_substring(self, db, catalog_service, make_product):
        lamp = make_product(name="LED Desk Lamp")
        make_product(name="Cotton T-Shirt")

        assert [p.id for p in catalog_service.get_products(db, search="desk")] == [lamp.id]
        assert catalog_service.get_products(db, search="%") == []

    def test_filter_by_category(self, db, catalog_service, make_product):
        make_product()
        other = Category(name="Clothing", is_active=True)
        db.add(other)
        db.commit()

        assert catalog_service.get_products(db, category_id=other.id) == []

    def test_pagination(self, db, catalog_service, make_product):
        ids = [make_product().id for _ in range(5)]

        page = catalog_service.get_products(db, limit=2, offset=1)
        assert [p.id for p in page] == [ids[3], ids[2]]

    def test_product_detail_without_reviews(self, db, catalog_service, make_product):
        product = make_product()

        detail = catalog_service.get_product(db, product.id)

        assert detail["product"].id == product.id
        assert detail["reviews"] == []
        assert detail["average_rating"] == 0.0
        assert detail["review_count"] == 0

    def test_product_detail_rating_summary(self, db, catalog_service, make_product, make_user):
        product = make_product()
        for rating in (4, 5):
            db.add(Review(
                product_id=product.id,
                customer_id=make_user("customer"),
                order_id=1,
                rating=rating,
                title="t",
                comment="c",
                images=[],
            ))
        db.commit()

        detail = catalog_service.get_product(db, product.id)
        assert detail["average_rating"] == 4.5
        assert detail["review_count"] == 2

    def test_missing_product(self, db, catalog_service):
        with pytest.raises(NotFound):
            catalog_service.get_product(db, 12345)
