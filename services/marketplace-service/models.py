"""Database models for the marketplace service."""
import enum
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Numeric, Float, Boolean, DateTime, Text, JSON,
    ForeignKey, UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class Role(str, enum.Enum):
    CUSTOMER = "customer"
    SELLER = "seller"
    MANAGER = "manager"


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class ShiftType(str, enum.Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"


class ScheduleStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    ABSENT = "absent"
    CANCELLED = "cancelled"


class User(Base):
    """Identity record owned by the sign-in layer."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=True)
    name = Column(String, nullable=True)
    password_hash = Column(String, nullable=True)
    is_anonymous = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    profile = relationship("UserProfile", back_populates="user", uselist=False)


class AuthSession(Base):
    """Bearer session issued at sign-in."""
    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    token = Column(String, unique=True, index=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class UserProfile(Base):
    """Application profile carrying the user's role."""
    __tablename__ = "user_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    role = Column(String, index=True, nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    phone = Column(String)
    avatar = Column(String)
    is_active = Column(Boolean, default=True, nullable=False)
    # Staff fields
    employee_id = Column(String, index=True)
    department = Column(String)
    hire_date = Column(DateTime)
    salary = Column(Numeric(10, 2))
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="profile")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Category(Base):
    """Product category."""
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, index=True, nullable=False)
    description = Column(Text)
    image = Column(String)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class Product(Base):
    """Product model."""
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, index=True, nullable=False)
    description = Column(Text, nullable=False, default="")
    price = Column(Numeric(10, 2), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), index=True, nullable=False)
    images = Column(JSON, default=list, nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, default=True, nullable=False)
    seller_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=True)
    sku = Column(String, unique=True, index=True, nullable=False)
    weight = Column(Float)
    dimensions = Column(JSON)
    created_at = Column(DateTime, default=datetime.utcnow)

    category = relationship("Category")


class CartItem(Base):
    """Cart item model."""
    __tablename__ = "cart_items"
    __table_args__ = (UniqueConstraint("user_id", "product_id", name="uq_cart_user_product"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), index=True, nullable=False)
    quantity = Column(Integer, nullable=False)
    added_at = Column(DateTime, default=datetime.utcnow)

    product = relationship("Product")


class Order(Base):
    """Order model."""
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    seller_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=True)
    order_number = Column(String, unique=True, index=True, nullable=False)
    status = Column(String, index=True, nullable=False, default=OrderStatus.PENDING.value)
    subtotal = Column(Numeric(10, 2), nullable=False)
    tax = Column(Numeric(10, 2), nullable=False)
    shipping = Column(Numeric(10, 2), nullable=False)
    total = Column(Numeric(10, 2), nullable=False)
    shipping_address = Column(JSON, nullable=False)
    payment_method = Column(String, nullable=False)
    payment_status = Column(String, nullable=False, default=PaymentStatus.PENDING.value)
    notes = Column(Text)
    estimated_delivery = Column(DateTime)
    tracking_number = Column(String)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = relationship("OrderItem", back_populates="order", order_by="OrderItem.id")


class OrderItem(Base):
    """Order line with product details captured at checkout."""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), index=True, nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), index=True, nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    product_name = Column(String, nullable=False)
    product_image = Column(String)

    order = relationship("Order", back_populates="items")


class Review(Base):
    """Product review."""
    __tablename__ = "reviews"
    __table_args__ = (UniqueConstraint("customer_id", "product_id", name="uq_review_customer_product"),)

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), index=True, nullable=False)
    customer_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    order_id = Column(Integer, ForeignKey("orders.id"), index=True, nullable=False)
    rating = Column(Integer, nullable=False)
    title = Column(String, nullable=False)
    comment = Column(Text, nullable=False)
    images = Column(JSON, default=list, nullable=False)
    is_verified_purchase = Column(Boolean, default=False, nullable=False)
    helpful_votes = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class WorkSchedule(Base):
    """Seller shift assignment."""
    __tablename__ = "work_schedules"
    __table_args__ = (UniqueConstraint("seller_id", "date", name="uq_schedule_seller_date"),)

    id = Column(Integer, primary_key=True, index=True)
    seller_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    date = Column(String(10), index=True, nullable=False)
    shift_type = Column(String, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    status = Column(String, nullable=False, default=ScheduleStatus.SCHEDULED.value)
    assigned_by = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)


class AuditLog(Base):
    """Append-only record of a mutating action."""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    action = Column(String, index=True, nullable=False)
    resource = Column(String, index=True, nullable=False)
    resource_id = Column(String)
    details = Column(JSON)
    ip_address = Column(String)
    user_agent = Column(String)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
