"""
Catalog tests: categories, warehouses and products, including the delete
guards that protect stock entries and sales history.
"""

import pytest

from stockroom.errors import ConflictError, NotFoundError, ValidationError
from stockroom.extensions import db
from stockroom.models import Product, StockEntry, Warehouse
from stockroom.services import catalog_service, stock_ledger_service, transaction_service


class TestCategories:

    def test_create_and_list_by_name(self, db_session):
        catalog_service.create_category(patch={"name": "Screen protectors"})
        catalog_service.create_category(patch={"name": "Cases", "description": "Phone cases"})

        assert [c.name for c in catalog_service.list_categories()] == ["Cases", "Screen protectors"]

    def test_duplicate_name(self, db_session, category):
        with pytest.raises(ConflictError):
            catalog_service.create_category(patch={"name": category.name})

    def test_delete_unused(self, db_session):
        cat = catalog_service.create_category(patch={"name": "Temporary"})
        cat_id = cat.id
        catalog_service.delete_category(cat_id)
        with pytest.raises(NotFoundError):
            catalog_service.get_category(cat_id)

    def test_delete_refused_while_referenced(self, db_session, product, category):
        with pytest.raises(ConflictError) as exc:
            catalog_service.delete_category(category.id)
        assert exc.value.details["product_count"] == 1
        assert catalog_service.get_category(category.id).name == "Chargers"

    def test_delete_missing(self, db_session):
        with pytest.raises(NotFoundError):
            catalog_service.delete_category(31337)


class TestWarehouses:

    def test_create_unique_name(self, db_session, warehouse):
        with pytest.raises(ConflictError):
            catalog_service.create_warehouse(patch={"name": "Main"})

    def test_rename(self, db_session, warehouse):
        updated = catalog_service.update_warehouse(warehouse.id, patch={"location": "Dock 9"})
        assert updated.location == "Dock 9"

    def test_rename_onto_existing_name_conflicts(self, db_session, warehouse, second_warehouse):
        with pytest.raises(ConflictError):
            catalog_service.update_warehouse(second_warehouse.id, patch={"name": "Main"})
        assert catalog_service.get_warehouse(second_warehouse.id).name == "Overflow"

    def test_delete_refused_while_stocked(self, db_session, stocked):
        _, warehouse_id = stocked

        with pytest.raises(ConflictError) as exc:
            catalog_service.delete_warehouse(warehouse_id)

        assert exc.value.details["stock_entry_count"] == 1
        assert db.session.get(Warehouse, warehouse_id) is not None

    def test_delete_after_unassigning(self, db_session, stocked):
        product_id, warehouse_id = stocked
        stock_ledger_service.remove_entry(product_id, warehouse_id)
        catalog_service.delete_warehouse(warehouse_id)
        assert db.session.get(Warehouse, warehouse_id) is None

    def test_delete_missing(self, db_session):
        with pytest.raises(NotFoundError):
            catalog_service.delete_warehouse(4040)

    def test_delete_refused_while_sales_reference_it(self, db_session, stocked):
        product_id, warehouse_id = stocked
        tx_id = transaction_service.record_sale(product_id, warehouse_id, "retail", 2).id
        stock_ledger_service.remove_entry(product_id, warehouse_id)

        with pytest.raises(ConflictError) as exc:
            catalog_service.delete_warehouse(warehouse_id)

        assert exc.value.details["sales_transaction_count"] == 1
        assert db.session.get(Warehouse, warehouse_id) is not None
        db.session.expire_all()
        assert transaction_service.get_transaction(tx_id).warehouse_id == warehouse_id


class TestProducts:

    def test_create_with_first_warehouse(self, db_session, category, warehouse):
        p = catalog_service.create_product(
            patch={"name": "Car charger", "purchase_price_cents": 450, "retail_price_cents": 999,
                   "category_id": category.id},
            warehouse_id=warehouse.id,
            initial_on_hand=12,
        )

        entry = stock_ledger_service.get_entry(p.id, warehouse.id)
        assert entry.quantity_on_hand == 12
        assert entry.quantity_reserved == 0

    def test_create_is_all_or_nothing(self, db_session):
        before = db.session.query(Product).count()

        with pytest.raises(NotFoundError):
            catalog_service.create_product(
                patch={"name": "Orphan", "purchase_price_cents": 100},
                warehouse_id=777777,
                initial_on_hand=5,
            )

        assert db.session.query(Product).count() == before

    def test_initial_quantity_needs_warehouse(self, db_session):
        with pytest.raises(ValidationError):
            catalog_service.create_product(patch={"name": "X", "purchase_price_cents": 1}, initial_on_hand=3)

    @pytest.mark.parametrize("qty", ["0", 0, None])
    def test_zero_initial_quantity_without_warehouse(self, db_session, qty):
        p = catalog_service.create_product(patch={"name": "Loose", "purchase_price_cents": 1}, initial_on_hand=qty)
        assert db.session.query(StockEntry).filter_by(product_id=p.id).count() == 0

    def test_initial_quantity_string_needs_warehouse(self, db_session):
        with pytest.raises(ValidationError):
            catalog_service.create_product(patch={"name": "X", "purchase_price_cents": 1}, initial_on_hand="3")

    def test_missing_category(self, db_session):
        with pytest.raises(NotFoundError):
            catalog_service.create_product(patch={"name": "X", "category_id": 9999})

    @pytest.mark.parametrize(
        "patch",
        [
            {"name": "X", "purchase_price_cents": -1},
            {"name": "X", "retail_price_cents": -5},
            {"name": "X", "unit": 0},
        ],
    )
    def test_rejects_bad_numbers(self, db_session, patch):
        with pytest.raises(ValidationError):
            catalog_service.create_product(patch=patch)

    def test_update_is_last_writer_wins(self, db_session, product):
        catalog_service.update_product(product.id, patch={"retail_price_cents": 1100})
        catalog_service.update_product(product.id, patch={"retail_price_cents": 1200})
        assert catalog_service.get_product(product.id).retail_price_cents == 1200

    def test_list_newest_first(self, db_session, product):
        newer = catalog_service.create_product(patch={"name": "Newer"})
        ids = [p.id for p in catalog_service.list_products()]
        assert ids.index(newer.id) < ids.index(product.id)

    def test_delete_cascades_entries(self, db_session, stocked, second_warehouse):
        product_id, warehouse_id = stocked
        stock_ledger_service.create_entry(product_id, second_warehouse.id, 4)

        catalog_service.delete_product(product_id)

        assert db.session.get(Product, product_id) is None
        assert db.session.query(StockEntry).filter_by(product_id=product_id).count() == 0
        # the warehouses themselves are untouched
        assert db.session.get(Warehouse, warehouse_id) is not None

    def test_delete_refused_while_reserved(self, db_session, stocked, second_warehouse):
        product_id, warehouse_id = stocked
        stock_ledger_service.create_entry(product_id, second_warehouse.id, 4)
        stock_ledger_service.adjust_reserved(product_id, warehouse_id, 2)

        with pytest.raises(ConflictError):
            catalog_service.delete_product(product_id)

        # nothing was removed, including the unreserved entry
        assert db.session.query(StockEntry).filter_by(product_id=product_id).count() == 2
        assert db.session.get(Product, product_id) is not None

    def test_delete_refused_with_sales_history(self, db_session, stocked):
        product_id, warehouse_id = stocked
        transaction_service.record_sale(product_id, warehouse_id, "retail", 1)

        with pytest.raises(ConflictError):
            catalog_service.delete_product(product_id)

        assert stock_ledger_service.get_entry(product_id, warehouse_id).quantity_on_hand == 99

    def test_delete_missing(self, db_session):
        with pytest.raises(NotFoundError):
            catalog_service.delete_product(5150)
