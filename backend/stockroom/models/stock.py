from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class StockEntry(db.Model):
    """
    Quantities for one (product, warehouse) pair.

    Invariants (enforced by constraints here and by the conditional writes
    in stock_ledger_service):
    - at most one row per (product_id, warehouse_id)
    - 0 <= quantity_reserved <= quantity_on_hand
    - available = on_hand - reserved, never negative

    Rows are mutated only through single-statement conditional UPDATEs, so
    the ORM never holds a stale copy across a write. `version` is bumped on
    every mutation for clients doing their own optimistic checks.
    """
    __tablename__ = "stock_entries"
    __table_args__ = (
        db.UniqueConstraint("product_id", "warehouse_id", name="uq_stock_entries_product_warehouse"),
        db.CheckConstraint("quantity_on_hand >= 0", name="ck_stock_entries_on_hand_nonneg"),
        db.CheckConstraint("quantity_reserved >= 0", name="ck_stock_entries_reserved_nonneg"),
        db.CheckConstraint(
            "quantity_reserved <= quantity_on_hand",
            name="ck_stock_entries_reserved_within_on_hand",
        ),
        db.Index("ix_stock_entries_warehouse", "warehouse_id"),
        db.Index("ix_stock_entries_updated_at", "updated_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    warehouse_id = db.Column(
        db.Integer,
        db.ForeignKey("warehouses.id", ondelete="RESTRICT"),
        nullable=False,
    )

    quantity_on_hand = db.Column(db.Integer, nullable=False, default=0)
    quantity_reserved = db.Column(db.Integer, nullable=False, default=0)

    last_counted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    product = db.relationship("Product", backref=db.backref("stock_entries", lazy=True))
    warehouse = db.relationship("Warehouse", backref=db.backref("stock_entries", lazy=True))

    @property
    def quantity_available(self) -> int:
        return self.quantity_on_hand - self.quantity_reserved

    def __repr__(self) -> str:
        return (
            f"<StockEntry product_id={self.product_id} warehouse_id={self.warehouse_id} "
            f"on_hand={self.quantity_on_hand} reserved={self.quantity_reserved}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "warehouse_id": self.warehouse_id,
            "warehouse_name": self.warehouse.name if self.warehouse else None,
            "quantity_on_hand": self.quantity_on_hand,
            "quantity_reserved": self.quantity_reserved,
            "quantity_available": self.quantity_available,
            "last_counted_at": to_utc_z(self.last_counted_at),
            "version": self.version,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
