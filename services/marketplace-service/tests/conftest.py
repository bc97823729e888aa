import os

# Must be set before config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["OTEL_ENABLED"] = "false"
os.environ["PROFILING_ENABLED"] = "false"
os.environ["SEED_SAMPLE_DATA"] = "false"

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from auth import create_session
from database import SessionLocal, engine
from models import Base, Category, Product, Role, User, UserProfile
from services.audit_service import AuditService
from services.cart_service import CartService
from services.catalog_service import CatalogService
from services.order_service import OrderService
from services.review_service import ReviewService
from services.schedule_service import ScheduleService
from services.user_service import UserService

SHIPPING_ADDRESS = {
    "first_name": "Ada",
    "last_name": "Buyer",
    "street": "1 Main St",
    "city": "Springfield",
    "state": "IL",
    "zip_code": "62701",
    "country": "US",
}


@pytest.fixture(autouse=True)
def setup_db():
    """Fresh schema for every test."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture()
def client():
    from main import app

    return TestClient(app)


@pytest.fixture()
def audit_service():
    return AuditService(ip_address="127.0.0.1", user_agent="pytest")


@pytest.fixture()
def catalog_service(audit_service):
    return CatalogService(audit_service)


@pytest.fixture()
def cart_service(audit_service):
    return CartService(audit_service)


@pytest.fixture()
def order_service(cart_service, audit_service):
    return OrderService(cart_service, audit_service)


@pytest.fixture()
def review_service(audit_service):
    return ReviewService(audit_service)


@pytest.fixture()
def schedule_service(audit_service):
    return ScheduleService(audit_service)


@pytest.fixture()
def user_service(audit_service):
    return UserService(audit_service)


@pytest.fixture()
def make_user(db):
    """Create a user, with a profile when a role is given. Returns the user id."""
    counter = {"n": 0}

    def _make_user(role=None, first_name="Test", last_name="User", is_active=True):
        counter["n"] += 1
        user = User(email=f"user{counter['n']}@example.com", name=f"{first_name} {last_name}")
        db.add(user)
        db.flush()
        if role is not None:
            db.add(UserProfile(
                user_id=user.id,
                role=Role(role).value,
                first_name=first_name,
                last_name=last_name,
                is_active=is_active,
            ))
        db.commit()
        return user.id

    return _make_user


@pytest.fixture()
def customer(make_user):
    return make_user(Role.CUSTOMER, "Cathy", "Customer")


@pytest.fixture()
def seller(make_user):
    return make_user(Role.SELLER, "Sam", "Seller")


@pytest.fixture()
def manager(make_user):
    return make_user(Role.MANAGER, "Mia", "Manager")


@pytest.fixture()
def category(db):
    category = Category(name="Electronics", description="Gadgets", is_active=True)
    db.add(category)
    db.commit()
    return category


@pytest.fixture()
def make_product(db, category):
    """Insert a product directly. Returns the product."""
    counter = {"n": 0}

    def _make_product(price="25.00", stock=10, name=None, seller_id=None, is_active=True, images=None):
        counter["n"] += 1
        product = Product(
            name=name or f"Product {counter['n']}",
            description="A product",
            price=Decimal(price),
            category_id=category.id,
            images=images if images is not None else [f"https://img.example.com/{counter['n']}.jpg"],
            stock=stock,
            sku=f"SKU-{counter['n']:03d}",
            seller_id=seller_id,
            is_active=is_active,
        )
        db.add(product)
        db.commit()
        return product

    return _make_product


@pytest.fixture()
def auth_headers(db):
    """Issue a bearer session for a user id."""

    def _auth_headers(user_id):
        token = create_session(db, user_id)
        db.commit()
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers
