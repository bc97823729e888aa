"""Marketplace domain exceptions.

Raised by the service layer when a business rule is violated. Routers
catch ``MarketplaceError`` and translate it into an ``HTTPException``
using the ``status_code`` carried by the exception class.
"""


class MarketplaceError(ValueError):
    """Base class for business-rule violations."""
    status_code = 400


class NotAuthenticated(MarketplaceError):
    status_code = 401


class AccessDenied(MarketplaceError):
    status_code = 403

    def __init__(self, message: str = "Access denied"):
        super().__init__(message)


class NotFound(MarketplaceError):
    status_code = 404


class Conflict(MarketplaceError):
    status_code = 409


class InsufficientStock(MarketplaceError):
    """Requested quantity exceeds the product's stock."""


class InvalidStatusTransition(MarketplaceError):
    """Order status change not permitted by the lifecycle."""
