# storefront/domain/errors.py
"""
Error kinds raised by the services.

Each one subclasses the builtin the services already use for that meaning, so
callers that only know about ValueError / PermissionError keep working.
Routers translate them into HTTP responses (see storefront.api.errors).
"""
from typing import Any, Dict, List


class StorefrontError(Exception):
    """Base for every error the services raise on purpose."""

    message = "Internal server error"


class Unauthenticated(StorefrontError):
    """No caller identity."""

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)
        self.message = message


class AccessDenied(StorefrontError, PermissionError):
    """Caller is known but is not the owner / not an admin."""

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message)
        self.message = message


class NotFoundError(StorefrontError, LookupError):
    def __init__(self, entity: str, message: str | None = None):
        self.entity = entity
        self.message = message or f"{entity} not found"
        super().__init__(self.message)


class ValidationError(StorefrontError, ValueError):
    def __init__(self, message: str, errors: List[str] | None = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []

    def to_detail(self) -> Dict[str, Any]:
        detail: Dict[str, Any] = {"message": self.message}
        if self.errors:
            detail["errors"] = self.errors
        return detail


class CouponRejected(ValidationError):
    """A coupon exists but does not apply to the cart; reason says which rule failed."""

    def __init__(self, reason: str, message: str):
        super().__init__(message)
        self.reason = reason

    def to_detail(self) -> Dict[str, Any]:
        return {"message": self.message, "reason": self.reason}


class ConflictError(StorefrontError, RuntimeError):
    def __init__(self, message: str, details: Dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_detail(self) -> Dict[str, Any]:
        return {"message": self.message, **self.details}


class StockConflict(ConflictError):
    def __init__(self, message: str, available_stock: int, current_in_cart: int | None = None):
        details: Dict[str, Any] = {"success": False, "availableStock": available_stock}
        if current_in_cart is not None:
            details["currentInCart"] = current_in_cart
        super().__init__(message, details)
        self.available_stock = available_stock
        self.current_in_cart = current_in_cart


class CartStockConflict(ConflictError):
    def __init__(self, issues: List[Dict[str, Any]]):
        super().__init__("Insufficient stock", {"issues": issues})
        self.issues = issues


class StorageError(StorefrontError, RuntimeError):
    """Storage failure; already logged with context, surfaced as an opaque error."""

    def __init__(self, operation: str, message: str = "Internal server error"):
        super().__init__(message)
        self.operation = operation
        self.message = message
