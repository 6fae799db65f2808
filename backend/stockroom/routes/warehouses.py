# Overview: Flask API routes for warehouses; parses input and returns JSON responses.

"""
Warehouse routes.

Reads are open to any signed-in operator; create, rename and delete are
admin-only. A warehouse that still holds stock entries cannot be deleted.
"""
from flask import Blueprint, g, request

from ..decorators import require_auth, require_role
from ..models import Warehouse
from ..services import catalog_service, stock_ledger_service
from ..validation import ModelValidationPolicy, validate_payload

WAREHOUSE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "location"},
    required_on_create={"name"},
)

warehouses_bp = Blueprint("warehouses", __name__, url_prefix="/api/warehouses")


@warehouses_bp.get("")
@require_auth
def list_warehouses():
    return {"items": [w.to_dict() for w in catalog_service.list_warehouses()]}


@warehouses_bp.post("")
@require_auth
@require_role("admin")
def create_warehouse_route():
    payload = request.get_json(silent=True) or {}
    patch = validate_payload(model=Warehouse, payload=payload, policy=WAREHOUSE_POLICY, partial=False)
    warehouse = catalog_service.create_warehouse(patch=patch, created_by_user_id=g.current_user.id)
    return warehouse.to_dict(), 201


@warehouses_bp.get("/<int:warehouse_id>")
@require_auth
def get_warehouse_route(warehouse_id: int):
    warehouse = catalog_service.get_warehouse(warehouse_id)
    body = warehouse.to_dict()
    body["stock_entry_count"] = stock_ledger_service.count_entries_for_warehouse(warehouse_id)
    return body


@warehouses_bp.patch("/<int:warehouse_id>")
@require_auth
@require_role("admin")
def update_warehouse_route(warehouse_id: int):
    payload = request.get_json(silent=True) or {}
    patch = validate_payload(model=Warehouse, payload=payload, policy=WAREHOUSE_POLICY, partial=True)
    return catalog_service.update_warehouse(warehouse_id, patch=patch).to_dict()


@warehouses_bp.delete("/<int:warehouse_id>")
@require_auth
@require_role("admin")
def delete_warehouse_route(warehouse_id: int):
    catalog_service.delete_warehouse(warehouse_id)
    return {"ok": True}
