"""
Concurrency tests for the stock ledger and sale recording.

Each worker runs in its own thread with its own app context (and so its own
session and connection) against a temp-file SQLite database.
"""

import os
import tempfile
import threading

import pytest

from stockroom import create_app
from stockroom.errors import InsufficientStockError, ValidationError
from stockroom.extensions import db
from stockroom.models import Product, SalesTransaction, Warehouse
from stockroom.services import stock_ledger_service, transaction_service


@pytest.fixture
def file_app():
    tmpdir = tempfile.TemporaryDirectory()
    db_path = os.path.join(tmpdir.name, "concurrency.db")
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
        "STOCK_WRITE_ATTEMPTS": 25,
    })

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.session.remove()
        db.engine.dispose()
    tmpdir.cleanup()


def _seed(app, on_hand: int) -> tuple[int, int]:
    with app.app_context():
        product = Product(name="Contended cable", purchase_price_cents=300, retail_price_cents=500)
        warehouse = Warehouse(name="Contended")
        db.session.add_all([product, warehouse])
        db.session.commit()
        stock_ledger_service.create_entry(product.id, warehouse.id, on_hand)
        ids = (product.id, warehouse.id)
        db.session.remove()
        return ids


def _run_workers(app, target, count: int):
    results = []
    errors = []
    lock = threading.Lock()
    start = threading.Barrier(count)

    def worker(i):
        with app.app_context():
            try:
                start.wait()
                outcome = target(i)
                with lock:
                    results.append(outcome)
            except InsufficientStockError as exc:
                with lock:
                    results.append(exc)
            except Exception as exc:
                with lock:
                    errors.append(exc)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results, errors


def test_concurrent_sales_never_oversell(file_app):
    product_id, warehouse_id = _seed(file_app, on_hand=10)

    # 8 x 3 = 24 units requested against 10 on hand
    results, errors = _run_workers(
        file_app,
        lambda i: transaction_service.record_sale(product_id, warehouse_id, "retail", 3),
        count=8,
    )

    assert not errors
    succeeded = [r for r in results if not isinstance(r, InsufficientStockError)]
    rejected = [r for r in results if isinstance(r, InsufficientStockError)]
    assert len(succeeded) == 3
    assert len(rejected) == 5

    with file_app.app_context():
        entry = stock_ledger_service.get_entry(product_id, warehouse_id)
        assert entry.quantity_on_hand == 1
        assert db.session.query(SalesTransaction).count() == 3
        db.session.remove()


def test_concurrent_debits_exhaust_exactly(file_app):
    product_id, warehouse_id = _seed(file_app, on_hand=12)

    results, errors = _run_workers(
        file_app,
        lambda i: stock_ledger_service.debit(product_id, warehouse_id, 1),
        count=20,
    )

    assert not errors
    assert sum(1 for r in results if not isinstance(r, InsufficientStockError)) == 12

    with file_app.app_context():
        assert stock_ledger_service.get_entry(product_id, warehouse_id).quantity_on_hand == 0
        db.session.remove()


def test_reservations_race_with_sales(file_app):
    product_id, warehouse_id = _seed(file_app, on_hand=20)

    def mixed(i):
        if i % 2:
            return stock_ledger_service.adjust_reserved(product_id, warehouse_id, 2)
        return transaction_service.record_sale(product_id, warehouse_id, "retail", 2)

    results, errors = _run_workers(file_app, mixed, count=16)

    # a reservation that no longer fits is rejected, never partially applied
    assert all(isinstance(e, ValidationError) for e in errors)
    with file_app.app_context():
        entry = stock_ledger_service.get_entry(product_id, warehouse_id)
        sold = sum(t.quantity for t in db.session.query(SalesTransaction).all())
        assert 0 <= entry.quantity_reserved <= entry.quantity_on_hand
        assert entry.quantity_on_hand == 20 - sold
        db.session.remove()
