from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Category(db.Model):
    """Product grouping. Cannot be deleted while a product references it."""
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Category id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }


class Warehouse(db.Model):
    """
    Physical stock location.

    Cannot be deleted while any StockEntry references it. The FK on
    stock_entries.warehouse_id is RESTRICT so the store refuses as well.
    """
    __tablename__ = "warehouses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    location = db.Column(db.String(255), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Warehouse id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Catalog product.

    Prices are authoritative integer cents. retail/wholesale prices are
    optional; a sale of a type whose price is unset is rejected.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("purchase_price_cents >= 0", name="ck_products_purchase_price_nonneg"),
        db.CheckConstraint(
            "retail_price_cents IS NULL OR retail_price_cents >= 0",
            name="ck_products_retail_price_nonneg",
        ),
        db.CheckConstraint(
            "wholesale_price_cents IS NULL OR wholesale_price_cents >= 0",
            name="ck_products_wholesale_price_nonneg",
        ),
        db.CheckConstraint("unit >= 1", name="ck_products_unit_positive"),
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    purchase_price_cents = db.Column(db.Integer, nullable=False, default=0)
    retail_price_cents = db.Column(db.Integer, nullable=True)
    wholesale_price_cents = db.Column(db.Integer, nullable=True)

    # Units per sellable item (e.g. a 2-pack of cables)
    unit = db.Column(db.Integer, nullable=False, default=1)

    category_id = db.Column(
        db.Integer,
        db.ForeignKey("categories.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r}>"

    def price_for(self, transaction_type: str) -> int | None:
        if transaction_type == "retail":
            return self.retail_price_cents
        if transaction_type == "wholesale":
            return self.wholesale_price_cents
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "purchase_price_cents": self.purchase_price_cents,
            "retail_price_cents": self.retail_price_cents,
            "wholesale_price_cents": self.wholesale_price_cents,
            "unit": self.unit,
            "category_id": self.category_id,
            "category_name": self.category.name if self.category else None,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
