"""Pydantic schemas for request/response validation."""
from datetime import date as date_type, datetime
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Any, Dict, List, Optional

from models import OrderStatus, Role, ScheduleStatus, ShiftType

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


# Auth

class SignUpRequest(BaseModel):
    """Schema for password sign-up."""
    email: EmailStr
    password: str = Field(min_length=8)
    name: Optional[str] = None


class SignInRequest(BaseModel):
    """Schema for password sign-in."""
    email: EmailStr
    password: str


class AuthResponse(BaseModel):
    """Schema for a newly issued session."""
    token: str
    token_type: str = "bearer"
    user_id: int
    is_anonymous: bool = False


class UserResponse(BaseModel):
    """Schema for the signed-in identity."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: Optional[str] = None
    name: Optional[str] = None
    is_anonymous: bool


# Profiles

class ProfileCreate(BaseModel):
    """Schema for creating the caller's profile."""
    role: Role
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    phone: Optional[str] = None
    employee_id: Optional[str] = None
    department: Optional[str] = None


class ProfileUpdate(BaseModel):
    """Schema for editing the caller's profile."""
    first_name: Optional[str] = Field(default=None, min_length=1)
    last_name: Optional[str] = Field(default=None, min_length=1)
    phone: Optional[str] = None
    avatar: Optional[str] = None


class ProfileResponse(BaseModel):
    """Schema for profile response."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    role: Role
    first_name: str
    last_name: str
    phone: Optional[str] = None
    avatar: Optional[str] = None
    is_active: bool
    employee_id: Optional[str] = None
    department: Optional[str] = None
    hire_date: Optional[datetime] = None
    created_at: Optional[datetime] = None


class UserWithProfileResponse(ProfileResponse):
    """Schema for a profile joined with its identity record."""
    email: Optional[str] = None
    name: Optional[str] = None


class UserStatusUpdate(BaseModel):
    is_active: bool


# Catalog

class CategoryCreate(BaseModel):
    """Schema for creating a category."""
    name: str = Field(min_length=1)
    description: Optional[str] = None
    image: Optional[str] = None


class CategoryUpdate(BaseModel):
    """Schema for updating a category."""
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    image: Optional[str] = None
    is_active: Optional[bool] = None


class CategoryResponse(BaseModel):
    """Schema for category response."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    image: Optional[str] = None
    is_active: bool


class Dimensions(BaseModel):
    length: float = Field(gt=0)
    width: float = Field(gt=0)
    height: float = Field(gt=0)


class ProductCreate(BaseModel):
    """Schema for creating a product."""
    name: str = Field(min_length=1)
    description: str = ""
    price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    category_id: int
    images: List[str] = []
    stock: int = Field(ge=0)
    sku: str = Field(min_length=1)
    weight: Optional[float] = Field(default=None, gt=0)
    dimensions: Optional[Dimensions] = None


class ProductUpdate(BaseModel):
    """Schema for updating a product."""
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    category_id: Optional[int] = None
    images: Optional[List[str]] = None
    stock: Optional[int] = Field(default=None, ge=0)
    weight: Optional[float] = Field(default=None, gt=0)
    dimensions: Optional[Dimensions] = None


class ProductResponse(BaseModel):
    """Schema for product response."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str
    price: float
    category_id: int
    images: List[str]
    stock: int
    is_active: bool
    seller_id: Optional[int] = None
    sku: str
    weight: Optional[float] = None
    dimensions: Optional[Dict[str, float]] = None
    category: Optional[CategoryResponse] = None


class ReviewResponse(BaseModel):
    """Schema for review response."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    customer_id: int
    order_id: int
    rating: int
    title: str
    comment: str
    images: List[str]
    is_verified_purchase: bool
    helpful_votes: int
    created_at: Optional[datetime] = None
    customer_name: Optional[str] = None


class ProductDetailResponse(BaseModel):
    """Schema for product detail response."""
    product: ProductResponse
    reviews: List[ReviewResponse]
    average_rating: float
    review_count: int


# Cart

class AddToCartRequest(BaseModel):
    """Schema for add to cart request."""
    product_id: int
    quantity: int = 1


class UpdateCartItemRequest(BaseModel):
    """Schema for changing a cart line quantity."""
    quantity: int


class CartItemResponse(BaseModel):
    """Schema for cart item in response."""
    id: int
    product_id: int
    product_name: str
    product_image: Optional[str] = None
    price: float
    quantity: int
    stock: int
    subtotal: float


class CartResponse(BaseModel):
    """Schema for cart response."""
    user_id: int
    items: List[CartItemResponse]
    subtotal: float
    tax: float
    shipping: float
    total: float


class CartMutationResponse(BaseModel):
    message: str
    cart_item_id: Optional[int] = None
    quantity: Optional[int] = None


# Orders

class ShippingAddress(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    street: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    zip_code: str = Field(min_length=1)
    country: str = Field(min_length=1)
    phone: Optional[str] = None


class CreateOrderRequest(BaseModel):
    """Schema for checkout request."""
    shipping_address: ShippingAddress
    payment_method: str = Field(min_length=1)
    notes: Optional[str] = None


class OrderItemResponse(BaseModel):
    """Schema for order line in response."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    quantity: int
    price: float
    product_name: str
    product_image: Optional[str] = None


class OrderResponse(BaseModel):
    """Schema for order response."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_number: str
    customer_id: int
    seller_id: Optional[int] = None
    status: OrderStatus
    subtotal: float
    tax: float
    shipping: float
    total: float
    shipping_address: ShippingAddress
    payment_method: str
    payment_status: str
    notes: Optional[str] = None
    tracking_number: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    created_at: Optional[datetime] = None
    items: List[OrderItemResponse] = []


class CustomerSummary(BaseModel):
    user_id: int
    email: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None


class StaffOrderResponse(BaseModel):
    """Schema for an order as seen by sellers and managers."""
    order: OrderResponse
    customer: Optional[CustomerSummary] = None


class OrdersListResponse(BaseModel):
    """Schema for orders list response."""
    orders: List[OrderResponse]


class UpdateOrderStatusRequest(BaseModel):
    status: OrderStatus
    tracking_number: Optional[str] = None
    notes: Optional[str] = None


# Reviews

class ReviewCreate(BaseModel):
    """Schema for creating a review."""
    product_id: int
    order_id: int
    rating: int
    title: str = Field(min_length=1)
    comment: str
    images: List[str] = []


class ReviewUpdate(BaseModel):
    """Schema for editing a review."""
    rating: Optional[int] = None
    title: Optional[str] = Field(default=None, min_length=1)
    comment: Optional[str] = None
    images: Optional[List[str]] = None


# Schedules

class ScheduleCreate(BaseModel):
    """Schema for assigning a shift."""
    seller_id: int
    date: str
    shift_type: ShiftType
    start_time: str = Field(pattern=TIME_PATTERN)
    end_time: str = Field(pattern=TIME_PATTERN)
    notes: Optional[str] = None

    @field_validator("date")
    @classmethod
    def check_date(cls, value: str) -> str:
        """Require a real calendar date in YYYY-MM-DD form."""
        try:
            parsed = date_type.fromisoformat(value)
        except ValueError:
            raise ValueError("date must be YYYY-MM-DD")
        if parsed.isoformat() != value:
            raise ValueError("date must be YYYY-MM-DD")
        return value


class ScheduleStatusUpdate(BaseModel):
    status: ScheduleStatus
    notes: Optional[str] = None


class ScheduleResponse(BaseModel):
    """Schema for schedule response."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    seller_id: int
    date: str
    shift_type: ShiftType
    start_time: str
    end_time: str
    status: ScheduleStatus
    assigned_by: int
    notes: Optional[str] = None
    seller_name: Optional[str] = None
    assigner_name: Optional[str] = None


# Audit and dashboard

class AuditLogResponse(BaseModel):
    """Schema for audit log entry."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    action: str
    resource: str
    resource_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: Optional[datetime] = None


class DashboardResponse(BaseModel):
    """Schema for manager dashboard metrics."""
    total_revenue: float
    pending_orders: int
    low_stock_products: int
    active_products: int
    seller_count: int
    customer_count: int
    recent_orders: List[OrderResponse]
