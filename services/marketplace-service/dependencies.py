"""Dependency injection for services."""
from fastapi import Request

from services.audit_service import AuditService
from services.cart_service import CartService
from services.catalog_service import CatalogService
from services.dashboard_service import DashboardService
from services.order_service import OrderService
from services.review_service import ReviewService
from services.schedule_service import ScheduleService
from services.user_service import UserService


def get_client_ip(request: Request) -> str:
    """Client address, honouring the first proxy hop."""
    if "x-forwarded-for" in request.headers:
        return request.headers["x-forwarded-for"].split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def get_audit_service(request: Request) -> AuditService:
    """Get audit service bound to the request's client address and user agent."""
    return AuditService(
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent")
    )


def get_user_service(request: Request) -> UserService:
    return UserService(get_audit_service(request))


def get_catalog_service(request: Request) -> CatalogService:
    """Get catalog service instance."""
    return CatalogService(get_audit_service(request))


def get_cart_service(request: Request) -> CartService:
    """Get cart service instance."""
    return CartService(get_audit_service(request))


def get_order_service(request: Request) -> OrderService:
    """Get order service instance."""
    audit_service = get_audit_service(request)
    return OrderService(CartService(audit_service), audit_service)


def get_review_service(request: Request) -> ReviewService:
    return ReviewService(get_audit_service(request))


def get_schedule_service(request: Request) -> ScheduleService:
    return ScheduleService(get_audit_service(request))


def get_dashboard_service() -> DashboardService:
    return DashboardService()
