# Overview: Flask API routes for the stock ledger; parses input and returns JSON responses.

# backend/stockroom/routes/stock.py
"""
Stock ledger routes.

Entries are addressed by (product_id, warehouse_id). Every write maps to a
single ledger operation, so each request either applies completely or
returns a typed error with the entry unchanged.
"""
from flask import Blueprint, request

from ..decorators import require_auth, require_role
from ..errors import ValidationError
from ..services import stock_ledger_service
from ..validation import coerce_datetime, coerce_int

stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


def _payload() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def _required(payload: dict, key: str):
    if key not in payload or payload[key] is None:
        raise ValidationError(f"Missing required fields: {key}")
    return payload[key]


def _optional_datetime(payload: dict, key: str):
    value = payload.get(key)
    return coerce_datetime(key, value) if value is not None else None


@stock_bp.get("")
@require_auth
def list_stock():
    """
    Query params:
    - product_id: int (optional)
    - warehouse_id: int (optional)
    """
    entries = stock_ledger_service.list_entries(
        product_id=request.args.get("product_id", type=int),
        warehouse_id=request.args.get("warehouse_id", type=int),
    )
    return {"items": [e.to_dict() for e in entries]}


@stock_bp.post("")
@require_auth
@require_role("admin")
def create_entry_route():
    """Assign a product to a warehouse: {product_id, warehouse_id, initial_on_hand}."""
    payload = _payload()
    entry = stock_ledger_service.create_entry(
        coerce_int("product_id", _required(payload, "product_id")),
        coerce_int("warehouse_id", _required(payload, "warehouse_id")),
        payload.get("initial_on_hand", 0),
    )
    return entry.to_dict(), 201


@stock_bp.get("/<int:product_id>/<int:warehouse_id>")
@require_auth
def get_entry_route(product_id: int, warehouse_id: int):
    return stock_ledger_service.get_entry(product_id, warehouse_id).to_dict()


@stock_bp.delete("/<int:product_id>/<int:warehouse_id>")
@require_auth
@require_role("admin")
def remove_entry_route(product_id: int, warehouse_id: int):
    stock_ledger_service.remove_entry(product_id, warehouse_id)
    return {"ok": True}


@stock_bp.put("/<int:product_id>/<int:warehouse_id>/on-hand")
@require_auth
@require_role("admin")
def adjust_on_hand_route(product_id: int, warehouse_id: int):
    """Body: {quantity_on_hand, counted_at?}"""
    payload = _payload()
    entry = stock_ledger_service.adjust_on_hand(
        product_id,
        warehouse_id,
        _required(payload, "quantity_on_hand"),
        counted_at=_optional_datetime(payload, "counted_at"),
    )
    return entry.to_dict()


@stock_bp.post("/<int:product_id>/<int:warehouse_id>/reserved")
@require_auth
@require_role("admin")
def adjust_reserved_route(product_id: int, warehouse_id: int):
    """Body: {delta} (positive reserves, negative releases)."""
    payload = _payload()
    entry = stock_ledger_service.adjust_reserved(product_id, warehouse_id, _required(payload, "delta"))
    return entry.to_dict()


@stock_bp.put("/<int:product_id>/<int:warehouse_id>/quantities")
@require_auth
@require_role("admin")
def set_quantities_route(product_id: int, warehouse_id: int):
    """Body: {quantity_on_hand, quantity_reserved, last_counted_at?}"""
    payload = _payload()
    entry = stock_ledger_service.set_quantities(
        product_id,
        warehouse_id,
        _required(payload, "quantity_on_hand"),
        _required(payload, "quantity_reserved"),
        last_counted_at=_optional_datetime(payload, "last_counted_at"),
    )
    return entry.to_dict()


@stock_bp.post("/<int:product_id>/<int:warehouse_id>/debit")
@require_auth
@require_role("admin")
def debit_route(product_id: int, warehouse_id: int):
    """Body: {quantity}. Sales should go through /api/sales, which also records the transaction."""
    payload = _payload()
    entry = stock_ledger_service.debit(product_id, warehouse_id, _required(payload, "quantity"))
    return entry.to_dict()


@stock_bp.post("/<int:product_id>/<int:warehouse_id>/credit")
@require_auth
@require_role("admin")
def credit_route(product_id: int, warehouse_id: int):
    """Body: {quantity} (goods received)."""
    payload = _payload()
    entry = stock_ledger_service.credit(product_id, warehouse_id, _required(payload, "quantity"))
    return entry.to_dict()
