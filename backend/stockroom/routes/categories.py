# Overview: Flask API routes for categories; parses input and returns JSON responses.

from flask import Blueprint, request

from ..decorators import require_auth, require_role
from ..models import Category
from ..services import catalog_service
from ..validation import ModelValidationPolicy, validate_payload

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description"},
    required_on_create={"name"},
)

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
@require_auth
def list_categories():
    return {"items": [c.to_dict() for c in catalog_service.list_categories()]}


@categories_bp.post("")
@require_auth
@require_role("admin")
def create_category_route():
    payload = request.get_json(silent=True) or {}
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
    category = catalog_service.create_category(patch=patch)
    return category.to_dict(), 201


@categories_bp.get("/<int:category_id>")
@require_auth
def get_category_route(category_id: int):
    return catalog_service.get_category(category_id).to_dict()


@categories_bp.patch("/<int:category_id>")
@require_auth
@require_role("admin")
def update_category_route(category_id: int):
    payload = request.get_json(silent=True) or {}
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=True)
    return catalog_service.update_category(category_id, patch=patch).to_dict()


@categories_bp.delete("/<int:category_id>")
@require_auth
@require_role("admin")
def delete_category_route(category_id: int):
    catalog_service.delete_category(category_id)
    return {"ok": True}
