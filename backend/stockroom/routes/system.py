# backend/stockroom/routes/system.py
"""
System health endpoint.

Reports database connectivity and row counts for the core tables.
"""

import time

from flask import Blueprint, current_app

from ..extensions import db
from ..models import Product, SalesTransaction, StockEntry, Warehouse
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        details = {
            "products": db.session.query(Product).count(),
            "warehouses": db.session.query(Warehouse).count(),
            "stock_entries": db.session.query(StockEntry).count(),
            "sales_transactions": db.session.query(SalesTransaction).count(),
        }
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": details,
        }
    except Exception:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    body = {
        "status": "ok" if healthy else "degraded",
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database},
    }
    return body, (200 if healthy else 503)
