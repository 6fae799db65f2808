"""
Typed errors for stockroom.

Every failure a caller can act on is raised as a subclass of StockroomError.
Each class carries:
  - code: machine-readable identifier, stable across releases
  - status_code: HTTP status used by the API error handler
  - details: structured context (ids, quantities), never parsed from message

    StockroomError
    +-- NotFoundError            NOT_FOUND            404
    +-- ConflictError            CONFLICT             409
    +-- ValidationError          VALIDATION_ERROR     400
    +-- InsufficientStockError   INSUFFICIENT_STOCK   409
    +-- AuthorizationError       FORBIDDEN            403

Catch by type, report by code:

    try:
        record_sale(...)
    except InsufficientStockError as e:
        return {"error": e.code, "requested": e.requested, "available": e.available}
"""

from __future__ import annotations


class StockroomError(Exception):
    """Base class for all typed stockroom errors."""

    code: str = "STOCKROOM_ERROR"
    status_code: int = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(StockroomError):
    """Referenced product, warehouse, category, entry or transaction is absent."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, entity_id, message: str | None = None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            message or f"{entity} {entity_id} not found",
            details={"entity": entity, "id": entity_id},
        )


class ConflictError(StockroomError):
    """Uniqueness or dependency violation (duplicate entry, delete blocked by references)."""

    code = "CONFLICT"
    status_code = 409


class ValidationError(StockroomError):
    """Malformed input: negative quantity, missing price, reserved above on-hand."""

    code = "VALIDATION_ERROR"
    status_code = 400


class InsufficientStockError(StockroomError):
    """Requested debit exceeds the entry's available (on_hand - reserved) quantity."""

    code = "INSUFFICIENT_STOCK"
    status_code = 409

    def __init__(self, product_id: int, warehouse_id: int, requested: int, available: int):
        self.product_id = product_id
        self.warehouse_id = warehouse_id
        self.requested = requested
        self.available = available
        self.shortfall = requested - available
        super().__init__(
            f"Insufficient stock: requested {requested}, available {available} "
            f"(short by {self.shortfall})",
            details={
                "product_id": product_id,
                "warehouse_id": warehouse_id,
                "requested": requested,
                "available": available,
                "shortfall": self.shortfall,
            },
        )


class AuthorizationError(StockroomError):
    """Caller lacks the role required for a mutating operation."""

    code = "FORBIDDEN"
    status_code = 403
