# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/stockroom/routes/products.py
"""
Product routes.

POST accepts two extra, non-column fields:
- warehouse_id: assign the new product to its first warehouse
- initial_on_hand: opening quantity for that assignment (default 0)
Both writes happen in one transaction.
"""
from flask import Blueprint, g, request

from ..decorators import require_auth, require_role
from ..models import Product
from ..services import catalog_service, stock_ledger_service
from ..services.aggregation_service import margin_percent, sold_counts
from ..validation import (
    ModelValidationPolicy,
    coerce_int,
    enforce_rules_product,
    validate_payload,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "description",
        "purchase_price_cents",
        "retail_price_cents",
        "wholesale_price_cents",
        "unit",
        "category_id",
    },
    required_on_create={"name", "purchase_price_cents"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products():
    """
    Query params:
    - category_id: int (optional)
    """
    category_id = request.args.get("category_id", type=int)
    return {"items": [p.to_dict() for p in catalog_service.list_products(category_id=category_id)]}


@products_bp.post("")
@require_auth
@require_role("admin")
def create_product_route():
    payload = dict(request.get_json(silent=True) or {})

    warehouse_id = payload.pop("warehouse_id", None)
    initial_on_hand = payload.pop("initial_on_hand", 0)
    if warehouse_id is not None:
        warehouse_id = coerce_int("warehouse_id", warehouse_id)

    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)

    product = catalog_service.create_product(
        patch=patch,
        warehouse_id=warehouse_id,
        initial_on_hand=initial_on_hand,
        created_by_user_id=g.current_user.id,
    )
    return product.to_dict(), 201


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    """Product with its stock entries, sold counts and margin."""
    product = catalog_service.get_product(product_id)
    entries = stock_ledger_service.list_entries(product_id=product_id)

    body = product.to_dict()
    body["stock"] = [e.to_dict() for e in entries]
    body["total_quantity"] = sum(e.quantity_on_hand for e in entries)
    body["sold"] = sold_counts(product_id)
    body["margin_percent"] = str(margin_percent(product.retail_price_cents, product.purchase_price_cents))
    return body


@products_bp.patch("/<int:product_id>")
@require_auth
@require_role("admin")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(patch)
    return catalog_service.update_product(product_id, patch=patch).to_dict()


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role("admin")
def delete_product_route(product_id: int):
    catalog_service.delete_product(product_id)
    return {"ok": True}
