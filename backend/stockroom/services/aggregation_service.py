# Overview: Read-only aggregates over catalog, stock ledger and sales; recomputed on every call.

from __future__ import annotations

from collections import defaultdict
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import func

from ..extensions import db
from ..models import Product, SalesTransaction, StockEntry, Warehouse
from ..time_utils import to_utc_z, utcnow

RATIO_PLACES = Decimal("0.0001")
PERCENT_PLACES = Decimal("0.01")


def profit_margin(profit_cents: int, retail_value_cents: int) -> Decimal:
    """profit / retail value as a ratio; a zero or negative denominator yields 0."""
    if not retail_value_cents or retail_value_cents <= 0:
        return Decimal("0").quantize(RATIO_PLACES)
    ratio = Decimal(profit_cents) / Decimal(retail_value_cents)
    return ratio.quantize(RATIO_PLACES, rounding=ROUND_HALF_UP)


def margin_percent(retail_price_cents: int | None, purchase_price_cents: int) -> Decimal:
    """(retail - purchase) / retail * 100; 0 when the retail price is unset or 0."""
    if not retail_price_cents:
        return Decimal("0").quantize(PERCENT_PLACES)
    pct = Decimal(retail_price_cents - purchase_price_cents) * 100 / Decimal(retail_price_cents)
    return pct.quantize(PERCENT_PLACES, rounding=ROUND_HALF_UP)


def inventory_totals() -> dict:
    product_count = db.session.query(func.count(Product.id)).scalar() or 0
    warehouse_count = db.session.query(func.count(Warehouse.id)).scalar() or 0
    on_hand, reserved = db.session.query(
        func.coalesce(func.sum(StockEntry.quantity_on_hand), 0),
        func.coalesce(func.sum(StockEntry.quantity_reserved), 0),
    ).one()
    on_hand = int(on_hand or 0)
    reserved = int(reserved or 0)
    return {
        "product_count": int(product_count),
        "warehouse_count": int(warehouse_count),
        "total_on_hand": on_hand,
        "total_reserved": reserved,
        "total_available": on_hand - reserved,
    }


def inventory_valuation() -> dict:
    """
    Cost and retail value of everything on hand.

    Entries whose product has no retail price contribute 0 to retail value
    but their full cost to total cost.
    """
    cost, retail = db.session.query(
        func.coalesce(func.sum(Product.purchase_price_cents * StockEntry.quantity_on_hand), 0),
        func.coalesce(
            func.sum(func.coalesce(Product.retail_price_cents, 0) * StockEntry.quantity_on_hand),
            0,
        ),
    ).join(Product, Product.id == StockEntry.product_id).one()

    total_cost_cents = int(cost or 0)
    total_retail_value_cents = int(retail or 0)
    profit_cents = total_retail_value_cents - total_cost_cents
    return {
        "total_cost_cents": total_cost_cents,
        "total_retail_value_cents": total_retail_value_cents,
        "potential_profit_cents": profit_cents,
        "profit_margin": str(profit_margin(profit_cents, total_retail_value_cents)),
    }


def sold_counts(product_id: int) -> dict:
    counts = {"retail": 0, "wholesale": 0}
    rows = (
        db.session.query(
            SalesTransaction.transaction_type,
            func.coalesce(func.sum(SalesTransaction.quantity), 0),
        )
        .filter(SalesTransaction.product_id == product_id)
        .group_by(SalesTransaction.transaction_type)
        .all()
    )
    for tx_type, qty in rows:
        counts[tx_type] = int(qty or 0)
    return counts


def product_summaries() -> list[dict]:
    """Per-product quantities, sold counts and values (products page)."""
    products = db.session.query(Product).order_by(Product.created_at.desc(), Product.id.desc()).all()

    qty_by_product: dict[int, int] = defaultdict(int)
    warehouses_by_product: dict[int, list[dict]] = defaultdict(list)
    entry_rows = (
        db.session.query(StockEntry.product_id, StockEntry.quantity_on_hand, Warehouse.id, Warehouse.name)
        .join(Warehouse, Warehouse.id == StockEntry.warehouse_id)
        .order_by(Warehouse.name.asc())
        .all()
    )
    for product_id, on_hand, warehouse_id, warehouse_name in entry_rows:
        qty_by_product[product_id] += int(on_hand)
        warehouses_by_product[product_id].append({"id": warehouse_id, "name": warehouse_name})

    sold: dict[int, dict[str, int]] = defaultdict(lambda: {"retail": 0, "wholesale": 0})
    sold_rows = (
        db.session.query(
            SalesTransaction.product_id,
            SalesTransaction.transaction_type,
            func.sum(SalesTransaction.quantity),
        )
        .group_by(SalesTransaction.product_id, SalesTransaction.transaction_type)
        .all()
    )
    for product_id, tx_type, qty in sold_rows:
        sold[product_id][tx_type] = int(qty or 0)

    rows = []
    for p in products:
        qty = qty_by_product.get(p.id, 0)
        wholesale = p.wholesale_price_cents or 0
        retail = p.retail_price_cents or 0
        rows.append(
            {
                "product_id": p.id,
                "name": p.name,
                "category_name": p.category.name if p.category else None,
                "unit": p.unit,
                "total_quantity": qty,
                "warehouses": warehouses_by_product.get(p.id, []),
                "retail_sold": sold[p.id]["retail"],
                "wholesale_sold": sold[p.id]["wholesale"],
                "total_purchase_value_cents": p.purchase_price_cents * qty,
                "total_wholesale_value_cents": wholesale * qty,
                "total_retail_value_cents": retail * qty,
                "wholesale_profit_cents": (wholesale - p.purchase_price_cents) * qty,
                "retail_profit_cents": (retail - p.purchase_price_cents) * qty,
                "margin_percent": str(margin_percent(p.retail_price_cents, p.purchase_price_cents)),
            }
        )
    return rows


def dashboard() -> dict:
    return {
        "generated_at": to_utc_z(utcnow()),
        **inventory_totals(),
        **inventory_valuation(),
    }
