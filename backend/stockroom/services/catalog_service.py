# backend/stockroom/services/catalog_service.py
"""
Catalog Service: categories, warehouses and products.

Catalog rows change rarely and use last-writer-wins updates. Deletes are
the exception: the dependency check and the delete are one conditional
statement (DELETE ... WHERE NOT EXISTS (...)) inside the delete's own
transaction, so a StockEntry or Product created between "check" and
"delete" cannot slip through.
"""
from __future__ import annotations

import logging

from sqlalchemy import delete, exists, func, select
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import Category, Product, SalesTransaction, StockEntry, Warehouse
from ..validation import enforce_rules_product, require_quantity
from . import stock_ledger_service
from .concurrency import lock_for_update, run_with_retry

logger = logging.getLogger(__name__)

CATEGORY_MUTABLE_FIELDS = {"name", "description"}
WAREHOUSE_MUTABLE_FIELDS = {"name", "location"}
PRODUCT_MUTABLE_FIELDS = {
    "name",
    "description",
    "purchase_price_cents",
    "retail_price_cents",
    "wholesale_price_cents",
    "unit",
    "category_id",
}


def _apply_patch(obj, patch: dict, allowed: set[str]) -> None:
    for k, v in patch.items():
        if k not in allowed:
            continue
        setattr(obj, k, v)


def _unit_of_work(op):
    def _unit():
        try:
            result = op()
            db.session.commit()
            return result
        except Exception:
            db.session.rollback()
            raise
    return run_with_retry(_unit)


def _flush_unique(entity: str, name: str) -> None:
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"A {entity} named {name!r} already exists", details={"name": name})


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

def list_categories() -> list[Category]:
    return list(db.session.execute(select(Category).order_by(Category.name.asc())).scalars().all())


def get_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if category is None:
        raise NotFoundError("category", category_id)
    return category


def create_category(*, patch: dict) -> Category:
    def _op():
        name = patch["name"]
        if db.session.execute(select(Category.id).where(Category.name == name)).first():
            raise ConflictError(f"A category named {name!r} already exists", details={"name": name})
        category = Category()
        _apply_patch(category, patch, CATEGORY_MUTABLE_FIELDS)
        db.session.add(category)
        _flush_unique("category", name)
        return category

    category = _unit_of_work(_op)
    logger.info("category created id=%s name=%s", category.id, category.name)
    return category


def update_category(category_id: int, *, patch: dict) -> Category:
    def _op():
        category = get_category(category_id)
        _apply_patch(category, patch, CATEGORY_MUTABLE_FIELDS)
        _flush_unique("category", patch.get("name", category.name))
        return category

    return _unit_of_work(_op)


def delete_category(category_id: int) -> None:
    """Delete a category; ConflictError while any product references it."""
    def _op():
        stmt = (
            delete(Category)
            .where(
                Category.id == category_id,
                ~exists().where(Product.category_id == category_id),
            )
            .execution_options(synchronize_session=False)
        )
        if db.session.execute(stmt).rowcount == 1:
            return
        get_category(category_id)
        product_count = db.session.execute(
            select(func.count(Product.id)).where(Product.category_id == category_id)
        ).scalar_one()
        raise ConflictError(
            f"Category {category_id} is used by {product_count} product(s) and cannot be deleted",
            details={"category_id": category_id, "product_count": int(product_count)},
        )

    _unit_of_work(_op)
    db.session.expunge_all()
    logger.info("category deleted id=%s", category_id)


# ---------------------------------------------------------------------------
# Warehouses
# ---------------------------------------------------------------------------

def list_warehouses() -> list[Warehouse]:
    return list(db.session.execute(select(Warehouse).order_by(Warehouse.name.asc())).scalars().all())


def get_warehouse(warehouse_id: int) -> Warehouse:
    warehouse = db.session.get(Warehouse, warehouse_id)
    if warehouse is None:
        raise NotFoundError("warehouse", warehouse_id)
    return warehouse


def create_warehouse(*, patch: dict, created_by_user_id: int | None = None) -> Warehouse:
    def _op():
        name = patch["name"]
        if db.session.execute(select(Warehouse.id).where(Warehouse.name == name)).first():
            raise ConflictError(f"A warehouse named {name!r} already exists", details={"name": name})
        warehouse = Warehouse(created_by_user_id=created_by_user_id)
        _apply_patch(warehouse, patch, WAREHOUSE_MUTABLE_FIELDS)
        db.session.add(warehouse)
        _flush_unique("warehouse", name)
        return warehouse

    warehouse = _unit_of_work(_op)
    logger.info("warehouse created id=%s name=%s", warehouse.id, warehouse.name)
    return warehouse


def update_warehouse(warehouse_id: int, *, patch: dict) -> Warehouse:
    def _op():
        warehouse = lock_for_update(select(Warehouse).where(Warehouse.id == warehouse_id))
        warehouse = db.session.execute(warehouse).scalar_one_or_none()
        if warehouse is None:
            raise NotFoundError("warehouse", warehouse_id)
        _apply_patch(warehouse, patch, WAREHOUSE_MUTABLE_FIELDS)
        _flush_unique("warehouse", patch.get("name", warehouse.name))
        return warehouse

    return _unit_of_work(_op)


def delete_warehouse(warehouse_id: int) -> None:
    """
    Delete a warehouse.

    ConflictError while any stock entry references it, or while any sale
    was recorded against it (sales history keeps its warehouse_id).
    """
    def _op():
        stmt = (
            delete(Warehouse)
            .where(
                Warehouse.id == warehouse_id,
                ~exists().where(StockEntry.warehouse_id == warehouse_id),
                ~exists().where(SalesTransaction.warehouse_id == warehouse_id),
            )
            .execution_options(synchronize_session=False)
        )
        if db.session.execute(stmt).rowcount == 1:
            return
        get_warehouse(warehouse_id)
        entry_count = stock_ledger_service.count_entries_for_warehouse(warehouse_id)
        if entry_count:
            raise ConflictError(
                f"Warehouse {warehouse_id} holds {entry_count} stock entr{'y' if entry_count == 1 else 'ies'} "
                "and cannot be deleted",
                details={"warehouse_id": warehouse_id, "stock_entry_count": entry_count},
            )
        sale_count = db.session.execute(
            select(func.count(SalesTransaction.id)).where(SalesTransaction.warehouse_id == warehouse_id)
        ).scalar_one()
        raise ConflictError(
            f"Warehouse {warehouse_id} is referenced by {sale_count} sales transaction(s) and cannot be deleted",
            details={"warehouse_id": warehouse_id, "sales_transaction_count": sale_count},
        )

    _unit_of_work(_op)
    db.session.expunge_all()
    logger.info("warehouse deleted id=%s", warehouse_id)


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

def _require_category(category_id: int | None) -> None:
    if category_id is not None and db.session.get(Category, category_id) is None:
        raise NotFoundError("category", category_id)


def list_products(category_id: int | None = None) -> list[Product]:
    stmt = select(Product)
    if category_id is not None:
        stmt = stmt.where(Product.category_id == category_id)
    stmt = stmt.order_by(Product.created_at.desc(), Product.id.desc())
    return list(db.session.execute(stmt).scalars().all())


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("product", product_id)
    return product


def create_product(
    *,
    patch: dict,
    warehouse_id: int | None = None,
    initial_on_hand: int = 0,
    created_by_user_id: int | None = None,
) -> Product:
    """
    Create a product, optionally assigning it to its first warehouse.

    The product row and its first StockEntry are written in one transaction:
    if the entry cannot be created (missing warehouse, bad quantity) the
    product is not created either.
    """
    initial_on_hand = require_quantity(
        "initial_on_hand", 0 if initial_on_hand is None else initial_on_hand, minimum=0
    )
    if warehouse_id is None and initial_on_hand:
        raise ValidationError("initial_on_hand requires warehouse_id")
    if not patch.get("name"):
        raise ValidationError("Missing required fields: name")
    enforce_rules_product(patch)

    def _op():
        _require_category(patch.get("category_id"))
        product = Product(created_by_user_id=created_by_user_id)
        _apply_patch(product, patch, PRODUCT_MUTABLE_FIELDS)
        db.session.add(product)
        db.session.flush()
        if warehouse_id is not None:
            stock_ledger_service.create_entry(product.id, warehouse_id, initial_on_hand, commit=False)
        return product

    product = _unit_of_work(_op)
    logger.info("product created id=%s name=%s warehouse_id=%s", product.id, product.name, warehouse_id)
    return product


def update_product(product_id: int, *, patch: dict) -> Product:
    enforce_rules_product(patch)

    def _op():
        product = db.session.execute(
            lock_for_update(select(Product).where(Product.id == product_id))
        ).scalar_one_or_none()
        if product is None:
            raise NotFoundError("product", product_id)
        if "category_id" in patch:
            _require_category(patch["category_id"])
        _apply_patch(product, patch, PRODUCT_MUTABLE_FIELDS)
        return product

    return _unit_of_work(_op)


def delete_product(product_id: int) -> None:
    """
    Delete a product and its stock entries in one transaction.

    Refused with ConflictError while any of its entries holds a reservation
    or any sales transaction references it (sales history is append-only).
    """
    def _op():
        get_product(product_id)

        sold = db.session.execute(
            select(exists().where(SalesTransaction.product_id == product_id))
        ).scalar()
        if sold:
            raise ConflictError(
                f"Product {product_id} has recorded sales and cannot be deleted",
                details={"product_id": product_id},
            )

        removed = stock_ledger_service.remove_entries_for_product(product_id)

        # Any entry still present is reserved, or was assigned after the purge
        stmt = (
            delete(Product)
            .where(
                Product.id == product_id,
                ~exists().where(StockEntry.product_id == product_id),
                ~exists().where(SalesTransaction.product_id == product_id),
            )
            .execution_options(synchronize_session=False)
        )
        if db.session.execute(stmt).rowcount != 1:
            raise ConflictError(
                f"Product {product_id} has reserved stock and cannot be deleted",
                details={"product_id": product_id},
            )
        return removed

    removed = _unit_of_work(_op)
    db.session.expunge_all()
    logger.info("product deleted id=%s stock_entries_removed=%s", product_id, removed)
