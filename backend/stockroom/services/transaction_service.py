# Overview: Service-layer operations for recording sales against the stock ledger.

# backend/stockroom/services/transaction_service.py
"""
Sale recording.

A sale is two writes that must land together:
  1. stock_ledger_service.debit(...)  conditional UPDATE on the entry
  2. _append_transaction(...)         INSERT into sales_transactions

Both run in ONE database transaction that is flushed and then committed.
If anything fails after the debit (the insert, the flush, the commit) the
transaction is rolled back. That rollback is the compensation: the debit was
never committed, so no other session could see it, and no credit is issued
afterwards (a credit on top of a rollback would count the units twice).
"""
from __future__ import annotations

import logging

from sqlalchemy import select

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import Product, SalesTransaction, TRANSACTION_TYPES
from ..time_utils import utcnow
from ..validation import require_quantity
from . import stock_ledger_service
from .concurrency import run_with_retry

logger = logging.getLogger(__name__)


def _resolve_unit_price(product: Product, transaction_type: str) -> int:
    price = product.price_for(transaction_type)
    if price is None:
        raise ValidationError(
            f"Product {product.id} has no {transaction_type} price set",
            details={"product_id": product.id, "transaction_type": transaction_type},
        )
    return price


def _append_transaction(
    *,
    product_id: int,
    warehouse_id: int,
    transaction_type: str,
    quantity: int,
    unit_price_cents: int,
    created_by_user_id: int | None,
) -> SalesTransaction:
    """Insert the immutable sale record; total is fixed here and never recomputed."""
    tx = SalesTransaction(
        product_id=product_id,
        warehouse_id=warehouse_id,
        transaction_type=transaction_type,
        quantity=quantity,
        unit_price_cents=unit_price_cents,
        total_amount_cents=unit_price_cents * quantity,
        created_by_user_id=created_by_user_id,
        created_at=utcnow(),
    )
    db.session.add(tx)
    db.session.flush()
    return tx


def record_sale(
    product_id: int,
    warehouse_id: int,
    transaction_type: str,
    quantity: int,
    *,
    created_by_user_id: int | None = None,
) -> SalesTransaction:
    """
    Debit the entry and append the sale record as one atomic unit.

    Raises:
      ValidationError         quantity <= 0, unknown type, price unset
      NotFoundError           product or stock entry missing
      InsufficientStockError  quantity > on_hand - reserved (nothing written)
    """
    quantity = require_quantity("quantity", quantity, minimum=1)
    if transaction_type not in TRANSACTION_TYPES:
        raise ValidationError(
            f"transaction_type must be one of: {', '.join(TRANSACTION_TYPES)}",
            details={"transaction_type": transaction_type},
        )

    def _unit() -> SalesTransaction:
        product = db.session.get(Product, product_id)
        if product is None:
            raise NotFoundError("product", product_id)
        unit_price_cents = _resolve_unit_price(product, transaction_type)

        debited = False
        try:
            stock_ledger_service.debit(product_id, warehouse_id, quantity, commit=False)
            debited = True
            tx = _append_transaction(
                product_id=product_id,
                warehouse_id=warehouse_id,
                transaction_type=transaction_type,
                quantity=quantity,
                unit_price_cents=unit_price_cents,
                created_by_user_id=created_by_user_id,
            )
            db.session.commit()
        except Exception:
            db.session.rollback()
            if debited:
                logger.warning(
                    "sale rolled back after debit product_id=%s warehouse_id=%s quantity=%s",
                    product_id, warehouse_id, quantity,
                )
            raise
        return tx

    tx = run_with_retry(_unit)
    logger.info(
        "sale recorded id=%s product_id=%s warehouse_id=%s type=%s quantity=%s total_cents=%s",
        tx.id, product_id, warehouse_id, transaction_type, quantity, tx.total_amount_cents,
    )
    return tx


def get_transaction(transaction_id: int) -> SalesTransaction:
    tx = db.session.get(SalesTransaction, transaction_id)
    if tx is None:
        raise NotFoundError("sales_transaction", transaction_id)
    return tx


def list_transactions(
    product_id: int | None = None,
    transaction_type: str | None = None,
    limit: int | None = None,
) -> list[SalesTransaction]:
    """Sales, newest first."""
    if transaction_type is not None and transaction_type not in TRANSACTION_TYPES:
        raise ValidationError(
            f"transaction_type must be one of: {', '.join(TRANSACTION_TYPES)}",
            details={"transaction_type": transaction_type},
        )

    stmt = select(SalesTransaction)
    if product_id is not None:
        stmt = stmt.where(SalesTransaction.product_id == product_id)
    if transaction_type is not None:
        stmt = stmt.where(SalesTransaction.transaction_type == transaction_type)
    stmt = stmt.order_by(SalesTransaction.created_at.desc(), SalesTransaction.id.desc())
    if limit is not None:
        stmt = stmt.limit(require_quantity("limit", limit, minimum=1))
    return list(db.session.execute(stmt).scalars().all())
