from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from ..errors import ConflictError
from ..time_utils import to_utc_z, utcnow

TRANSACTION_TYPES = ("retail", "wholesale")


class SalesTransaction(db.Model):
    """
    Append-only record of a completed sale.

    unit_price_cents is a snapshot of the product price at the time of sale and
    total_amount_cents = unit_price_cents * quantity is fixed at insert; neither
    is recomputed later. Rows are never updated or deleted.

    warehouse_id records which entry was debited; it is audit context only.
    Every reference is RESTRICT so the store never rewrites a posted row.
    """
    __tablename__ = "sales_transactions"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sales_transactions_quantity_positive"),
        db.CheckConstraint("unit_price_cents >= 0", name="ck_sales_transactions_unit_price_nonneg"),
        db.CheckConstraint(
            "transaction_type IN ('retail', 'wholesale')",
            name="ck_sales_transactions_type",
        ),
        db.Index("ix_sales_transactions_product_type", "product_id", "transaction_type"),
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
        nullable=True,
        index=True,
    )

    transaction_type = db.Column(db.String(16), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_amount_cents = db.Column(db.Integer, nullable=False)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="RESTRICT"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    product = db.relationship("Product", backref=db.backref("sales_transactions", lazy=True))

    def __repr__(self) -> str:
        return (
            f"<SalesTransaction id={self.id} product_id={self.product_id} "
            f"type={self.transaction_type} qty={self.quantity} total={self.total_amount_cents}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "warehouse_id": self.warehouse_id,
            "transaction_type": self.transaction_type,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_amount_cents": self.total_amount_cents,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


@event.listens_for(SalesTransaction, "before_update")
def _reject_update(mapper, connection, target):
    raise ConflictError(
        "Sales transactions are immutable",
        details={"transaction_id": target.id},
    )


@event.listens_for(SalesTransaction, "before_delete")
def _reject_delete(mapper, connection, target):
    raise ConflictError(
        "Sales transactions are append-only and cannot be deleted",
        details={"transaction_id": target.id},
    )
