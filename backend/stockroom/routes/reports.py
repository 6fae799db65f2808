# Overview: Flask API routes for derived inventory figures; read-only.

from flask import Blueprint

from ..decorators import require_auth
from ..services import aggregation_service

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/dashboard")
@require_auth
def dashboard_report():
    return aggregation_service.dashboard()


@reports_bp.get("/valuation")
@require_auth
def valuation_report():
    return aggregation_service.inventory_valuation()


@reports_bp.get("/products")
@require_auth
def products_report():
    return {"items": aggregation_service.product_summaries()}
