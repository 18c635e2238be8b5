"""Domain errors raised by crud/service code.

Route handlers let these propagate; the handlers registered in ``main.py``
turn each one into an HTTP status and a ``{"error", "kind", ...}`` body.
"""
from typing import Any, Dict, Optional


class StorefrontError(Exception):
    status_code = 500
    kind = "InternalError"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.message, "kind": self.kind}
        body.update(self.details)
        return body


class ValidationError(StorefrontError):
    status_code = 400
    kind = "ValidationError"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, field=field)
        self.field = field


class NotFound(StorefrontError):
    status_code = 404
    kind = "NotFound"

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} with id {entity_id} not found", entity=entity, id=entity_id)
        self.entity = entity
        self.entity_id = entity_id


class InsufficientStock(StorefrontError):
    status_code = 400
    kind = "InsufficientStock"

    def __init__(self, product_id: int, available: int, requested: int, product_name: Optional[str] = None):
        label = f"'{product_name}' (ID: {product_id})" if product_name else f"ID {product_id}"
        super().__init__(
            f"Insufficient stock for product {label}. Available: {available}, Requested: {requested}",
            productId=product_id,
            available=available,
            requested=requested,
        )
        self.product_id = product_id
        self.available = available
        self.requested = requested


class PermissionDenied(StorefrontError):
    status_code = 403
    kind = "PermissionDenied"


class InvalidTransition(StorefrontError):
    status_code = 400
    kind = "InvalidTransition"

    def __init__(self, current: str, requested: Any):
        super().__init__(
            f"Cannot change order status from {current} to {requested}",
            current=current,
            requested=requested,
        )
        self.current = current
        self.requested = requested


class AlreadyExists(StorefrontError):
    status_code = 409
    kind = "AlreadyExists"


class Conflict(StorefrontError):
    status_code = 409
    kind = "Conflict"


class InternalError(StorefrontError):
    status_code = 500
    kind = "InternalError"
