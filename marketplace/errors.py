"""Typed business errors raised by the service modules.

Each error carries a stable ``code`` and the HTTP status the API layer maps
it to, so callers can render feedback without parsing messages.
"""
from typing import Optional


class MarketplaceError(Exception):
    status_code = 500
    code = "error"

    def __init__(self, message: str, errors: Optional[list[dict]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []

    def to_dict(self) -> dict:
        body = {"detail": self.message, "code": self.code}
        if self.errors:
            body["errors"] = self.errors
        return body


class NotFound(MarketplaceError):
    status_code = 404
    code = "not_found"


class ValidationError(MarketplaceError):
    status_code = 400
    code = "validation_error"

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, errors=[{"field": field, "message": message}])


class Unauthorized(MarketplaceError):
    status_code = 401
    code = "unauthorized"


class Forbidden(MarketplaceError):
    status_code = 403
    code = "forbidden"


class EmptyCart(MarketplaceError):
    status_code = 400
    code = "empty_cart"

    def __init__(self, message: str = "cart is empty"):
        super().__init__(message)


class InsufficientStock(MarketplaceError):
    status_code = 409
    code = "insufficient_stock"

    def __init__(self, product_id: int, requested: int, available: int):
        super().__init__(
            f"insufficient stock for product {product_id}: requested {requested}, available {available}",
            errors=[{"field": "quantity", "message": f"only {available} left in stock"}],
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class Conflict(MarketplaceError):
    status_code = 409
    code = "conflict"


class InternalError(MarketplaceError):
    status_code = 500
    code = "internal_error"
