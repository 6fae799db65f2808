# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_role
from ..errors import ValidationError
from ..services import transaction_service
from ..validation import coerce_int

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
@require_auth
def list_sales():
    """
    Query params:
    - product_id: int (optional)
    - transaction_type: retail | wholesale (optional)
    - limit: int (optional)
    """
    txs = transaction_service.list_transactions(
        product_id=request.args.get("product_id", type=int),
        transaction_type=request.args.get("transaction_type") or None,
        limit=request.args.get("limit", type=int),
    )
    return {"items": [t.to_dict() for t in txs]}


@sales_bp.post("")
@require_auth
@require_role("admin")
def record_sale_route():
    """
    Record a sale: debit the entry and append the transaction atomically.

    Body: {product_id, warehouse_id, transaction_type, quantity}
    """
    payload = request.get_json(silent=True) or {}
    missing = sorted(
        k for k in ("product_id", "warehouse_id", "transaction_type", "quantity")
        if payload.get(k) is None
    )
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    tx = transaction_service.record_sale(
        coerce_int("product_id", payload["product_id"]),
        coerce_int("warehouse_id", payload["warehouse_id"]),
        str(payload["transaction_type"]).strip().lower(),
        payload["quantity"],
        created_by_user_id=g.current_user.id,
    )
    return tx.to_dict(), 201


@sales_bp.get("/<int:transaction_id>")
@require_auth
def get_sale_route(transaction_id: int):
    return transaction_service.get_transaction(transaction_id).to_dict()
