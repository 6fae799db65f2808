# Overview: Service-layer operations for the stock ledger; single source of truth for per-warehouse quantities.

# backend/stockroom/services/stock_ledger_service.py
"""
Stock Ledger Invariants (authoritative)

Model:
- One StockEntry per (product_id, warehouse_id); the unique constraint is the
  final arbiter, the pre-check only produces a friendlier error.
- 0 <= quantity_reserved <= quantity_on_hand at all times.
- available = on_hand - reserved.

Serialization:
- Every mutation is ONE conditional UPDATE/DELETE whose WHERE clause encodes
  the invariant it must preserve, e.g.

      UPDATE stock_entries
         SET quantity_on_hand = quantity_on_hand - :q, version = version + 1
       WHERE product_id = :p AND warehouse_id = :w
         AND quantity_on_hand - quantity_reserved >= :q

  The database applies the check and the write atomically, so two debits
  racing on the same entry can never both pass on a stale read. Writes to
  different entries touch different rows and do not contend.
- When the statement affects no row, the entry is re-read only to pick the
  right typed error (missing entry vs. violated bound); state is unchanged.

Units of work:
- Public mutators take commit=True. Callers composing a larger transaction
  (product creation, sale recording) pass commit=False and own the commit,
  the rollback and the retry.
"""
from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

from ..extensions import db
from ..errors import ConflictError, InsufficientStockError, NotFoundError, ValidationError
from ..models import Product, StockEntry, Warehouse
from ..time_utils import utcnow
from ..validation import MAX_QUANTITY, coerce_int, require_quantity
from .concurrency import run_with_retry

logger = logging.getLogger(__name__)


def _entry_not_found(product_id: int, warehouse_id: int) -> NotFoundError:
    err = NotFoundError(
        "stock_entry",
        f"{product_id}:{warehouse_id}",
        message=f"No stock entry for product {product_id} in warehouse {warehouse_id}",
    )
    err.details.update({"product_id": product_id, "warehouse_id": warehouse_id})
    return err


def _run(op, commit: bool, message: str, *args):
    """
    Run op as its own retried transaction, or inline in the caller's.

    message is logged at INFO once the write is committed. Inline writes are
    only staged, so they log at DEBUG and the caller reports its own commit.
    """
    if not commit:
        result = op()
        logger.debug("staged: " + message, *args)
        return result

    def _unit():
        try:
            result = op()
            db.session.commit()
            return result
        except Exception:
            db.session.rollback()
            raise

    result = run_with_retry(_unit)
    logger.info(message, *args)
    return result


def _load_entry(product_id: int, warehouse_id: int) -> StockEntry | None:
    stmt = (
        select(StockEntry)
        .where(StockEntry.product_id == product_id, StockEntry.warehouse_id == warehouse_id)
        .execution_options(populate_existing=True)
    )
    return db.session.execute(stmt).scalar_one_or_none()


def _require_entry(product_id: int, warehouse_id: int) -> StockEntry:
    entry = _load_entry(product_id, warehouse_id)
    if entry is None:
        raise _entry_not_found(product_id, warehouse_id)
    return entry


def _conditional_update(product_id: int, warehouse_id: int, conditions: list, values: dict) -> bool:
    stmt = (
        update(StockEntry)
        .where(
            StockEntry.product_id == product_id,
            StockEntry.warehouse_id == warehouse_id,
            *conditions,
        )
        .values(version=StockEntry.version + 1, updated_at=utcnow(), **values)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    return result.rowcount == 1


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_entry(product_id: int, warehouse_id: int) -> StockEntry:
    return _require_entry(product_id, warehouse_id)


def list_entries(product_id: int | None = None, warehouse_id: int | None = None) -> list[StockEntry]:
    """Entries, most recently changed first, optionally filtered by product and/or warehouse."""
    stmt = select(StockEntry).options(
        joinedload(StockEntry.product),
        joinedload(StockEntry.warehouse),
    )
    if product_id is not None:
        stmt = stmt.where(StockEntry.product_id == product_id)
    if warehouse_id is not None:
        stmt = stmt.where(StockEntry.warehouse_id == warehouse_id)
    stmt = stmt.order_by(StockEntry.updated_at.desc(), StockEntry.id.desc())
    return list(db.session.execute(stmt).scalars().all())


def count_entries_for_warehouse(warehouse_id: int) -> int:
    return int(
        db.session.execute(
            select(func.count(StockEntry.id)).where(StockEntry.warehouse_id == warehouse_id)
        ).scalar_one()
    )


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

def create_entry(
    product_id: int,
    warehouse_id: int,
    initial_on_hand: int = 0,
    *,
    commit: bool = True,
) -> StockEntry:
    """
    Assign a product to a warehouse with an opening on-hand quantity.

    Raises NotFoundError if the product or warehouse is missing and
    ConflictError if the pair already has an entry.
    """
    initial_on_hand = require_quantity("initial_on_hand", initial_on_hand, minimum=0)

    def _op():
        if db.session.get(Product, product_id) is None:
            raise NotFoundError("product", product_id)
        if db.session.get(Warehouse, warehouse_id) is None:
            raise NotFoundError("warehouse", warehouse_id)
        if _load_entry(product_id, warehouse_id) is not None:
            raise ConflictError(
                f"Product {product_id} already has a stock entry in warehouse {warehouse_id}",
                details={"product_id": product_id, "warehouse_id": warehouse_id},
            )

        now = utcnow()
        entry = StockEntry(
            product_id=product_id,
            warehouse_id=warehouse_id,
            quantity_on_hand=initial_on_hand,
            quantity_reserved=0,
            created_at=now,
            updated_at=now,
        )
        db.session.add(entry)
        try:
            db.session.flush()
        except IntegrityError:
            # Lost a race with a concurrent assignment or catalog delete; the unit is void
            db.session.rollback()
            raise ConflictError(
                f"Stock entry for product {product_id} in warehouse {warehouse_id} conflicts with a concurrent change",
                details={"product_id": product_id, "warehouse_id": warehouse_id},
            )
        return entry

    return _run(
        _op, commit,
        "stock entry created product_id=%s warehouse_id=%s on_hand=%s",
        product_id, warehouse_id, initial_on_hand,
    )


def adjust_on_hand(
    product_id: int,
    warehouse_id: int,
    new_on_hand: int,
    *,
    counted_at: datetime | None = None,
    commit: bool = True,
) -> StockEntry:
    """
    Overwrite on-hand (manual edit or physical count).

    Raises ValidationError when new_on_hand would drop below the reserved
    quantity; counted_at, when given, becomes last_counted_at.
    """
    new_on_hand = require_quantity("quantity_on_hand", new_on_hand, minimum=0)

    def _op():
        values = {"quantity_on_hand": new_on_hand}
        if counted_at is not None:
            values["last_counted_at"] = counted_at
        ok = _conditional_update(
            product_id,
            warehouse_id,
            [StockEntry.quantity_reserved <= new_on_hand],
            values,
        )
        if not ok:
            entry = _require_entry(product_id, warehouse_id)
            raise ValidationError(
                f"quantity_on_hand {new_on_hand} is below reserved quantity {entry.quantity_reserved}",
                details={
                    "product_id": product_id,
                    "warehouse_id": warehouse_id,
                    "requested_on_hand": new_on_hand,
                    "quantity_reserved": entry.quantity_reserved,
                },
            )
        return _require_entry(product_id, warehouse_id)

    return _run(
        _op, commit,
        "on-hand set product_id=%s warehouse_id=%s on_hand=%s",
        product_id, warehouse_id, new_on_hand,
    )


def adjust_reserved(
    product_id: int,
    warehouse_id: int,
    delta: int,
    *,
    commit: bool = True,
) -> StockEntry:
    """
    Move reserved by delta (positive reserves, negative releases).

    Not idempotent: applying +n twice reserves 2n. The resulting reserved
    must stay within [0, on_hand] or ValidationError is raised. A zero delta
    or one larger than MAX_QUANTITY in either direction is rejected.
    """
    if delta is None:
        raise ValidationError("delta is required")
    delta = coerce_int("delta", delta)
    if delta == 0:
        raise ValidationError("delta must be non-zero", details={"delta": delta})
    if abs(delta) > MAX_QUANTITY:
        raise ValidationError(
            f"delta must be between -{MAX_QUANTITY} and {MAX_QUANTITY}",
            details={"delta": delta},
        )

    def _op():
        new_reserved = StockEntry.quantity_reserved + delta
        ok = _conditional_update(
            product_id,
            warehouse_id,
            [new_reserved >= 0, new_reserved <= StockEntry.quantity_on_hand],
            {"quantity_reserved": new_reserved},
        )
        if not ok:
            entry = _require_entry(product_id, warehouse_id)
            resulting = entry.quantity_reserved + delta
            reason = "negative" if resulting < 0 else f"above on-hand {entry.quantity_on_hand}"
            raise ValidationError(
                f"Reserved quantity would be {resulting} ({reason})",
                details={
                    "product_id": product_id,
                    "warehouse_id": warehouse_id,
                    "delta": delta,
                    "quantity_reserved": entry.quantity_reserved,
                    "quantity_on_hand": entry.quantity_on_hand,
                },
            )
        return _require_entry(product_id, warehouse_id)

    return _run(
        _op, commit,
        "reserved adjusted product_id=%s warehouse_id=%s delta=%s",
        product_id, warehouse_id, delta,
    )


def set_quantities(
    product_id: int,
    warehouse_id: int,
    quantity_on_hand: int,
    quantity_reserved: int,
    *,
    last_counted_at: datetime | None = None,
    commit: bool = True,
) -> StockEntry:
    """Overwrite both quantities at once (inventory edit form)."""
    quantity_on_hand = require_quantity("quantity_on_hand", quantity_on_hand, minimum=0)
    quantity_reserved = require_quantity("quantity_reserved", quantity_reserved, minimum=0)
    if quantity_reserved > quantity_on_hand:
        raise ValidationError(
            "quantity_reserved cannot exceed quantity_on_hand",
            details={"quantity_on_hand": quantity_on_hand, "quantity_reserved": quantity_reserved},
        )

    def _op():
        values = {
            "quantity_on_hand": quantity_on_hand,
            "quantity_reserved": quantity_reserved,
        }
        if last_counted_at is not None:
            values["last_counted_at"] = last_counted_at
        if not _conditional_update(product_id, warehouse_id, [], values):
            raise _entry_not_found(product_id, warehouse_id)
        return _require_entry(product_id, warehouse_id)

    return _run(
        _op, commit,
        "quantities set product_id=%s warehouse_id=%s on_hand=%s reserved=%s",
        product_id, warehouse_id, quantity_on_hand, quantity_reserved,
    )


def debit(
    product_id: int,
    warehouse_id: int,
    quantity: int,
    *,
    commit: bool = True,
) -> StockEntry:
    """
    Remove sold units from on-hand, all-or-nothing.

    Raises InsufficientStockError (with requested/available) when quantity
    exceeds on_hand - reserved; nothing is written in that case.
    """
    quantity = require_quantity("quantity", quantity, minimum=1)

    def _op():
        ok = _conditional_update(
            product_id,
            warehouse_id,
            [StockEntry.quantity_on_hand - StockEntry.quantity_reserved >= quantity],
            {"quantity_on_hand": StockEntry.quantity_on_hand - quantity},
        )
        if not ok:
            entry = _require_entry(product_id, warehouse_id)
            logger.warning(
                "debit rejected product_id=%s warehouse_id=%s requested=%s available=%s",
                product_id, warehouse_id, quantity, entry.quantity_available,
            )
            raise InsufficientStockError(product_id, warehouse_id, quantity, entry.quantity_available)
        return _require_entry(product_id, warehouse_id)

    return _run(
        _op, commit,
        "stock debited product_id=%s warehouse_id=%s quantity=%s",
        product_id, warehouse_id, quantity,
    )


def credit(
    product_id: int,
    warehouse_id: int,
    quantity: int,
    *,
    commit: bool = True,
) -> StockEntry:
    """Add units to on-hand (goods received)."""
    quantity = require_quantity("quantity", quantity, minimum=1)

    def _op():
        ok = _conditional_update(
            product_id,
            warehouse_id,
            [],
            {"quantity_on_hand": StockEntry.quantity_on_hand + quantity},
        )
        if not ok:
            raise _entry_not_found(product_id, warehouse_id)
        return _require_entry(product_id, warehouse_id)

    return _run(
        _op, commit,
        "stock credited product_id=%s warehouse_id=%s quantity=%s",
        product_id, warehouse_id, quantity,
    )


def remove_entry(product_id: int, warehouse_id: int, *, commit: bool = True) -> None:
    """Unassign a product from a warehouse; refused while units are reserved."""
    def _op():
        stmt = (
            delete(StockEntry)
            .where(
                StockEntry.product_id == product_id,
                StockEntry.warehouse_id == warehouse_id,
                StockEntry.quantity_reserved == 0,
            )
            .execution_options(synchronize_session=False)
        )
        result = db.session.execute(stmt)
        if result.rowcount != 1:
            entry = _require_entry(product_id, warehouse_id)
            raise ConflictError(
                f"Stock entry has {entry.quantity_reserved} reserved units and cannot be removed",
                details={
                    "product_id": product_id,
                    "warehouse_id": warehouse_id,
                    "quantity_reserved": entry.quantity_reserved,
                },
            )

    return _run(
        _op, commit,
        "stock entry removed product_id=%s warehouse_id=%s",
        product_id, warehouse_id,
    )


def remove_entries_for_product(product_id: int) -> int:
    """
    Delete every unreserved entry of a product inside the caller's transaction.

    Returns the number of rows removed. Entries with reservations are left
    in place; the caller decides whether that blocks its operation.
    """
    stmt = (
        delete(StockEntry)
        .where(StockEntry.product_id == product_id, StockEntry.quantity_reserved == 0)
        .execution_options(synchronize_session=False)
    )
    return db.session.execute(stmt).rowcount
