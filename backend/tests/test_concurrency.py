"""
Concurrency tests for the stock ledger.

Runs against a file-backed SQLite database so each thread gets its own
connection. Every worker opens its own app context and removes its
session when done.
"""

import os
import threading

import pytest

from warehouse import create_app
from warehouse.extensions import db
from warehouse.models import Movement, Product
from warehouse.services import stock_service
from warehouse.services.concurrency import StorageUnavailableError
from warehouse.services.products_service import create_product_with_initial_stock
from warehouse.services.stock_service import InsufficientStockError


@pytest.fixture
def file_app(tmp_path):
    db_path = os.path.join(str(tmp_path), "concurrency.db")
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{db_path}",
        'BCRYPT_ROUNDS': 4,
    })

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.session.remove()
        db.engine.dispose()


def _seed_product(app, code: str, stock: int) -> int:
    with app.app_context():
        product = create_product_with_initial_stock(
            patch={"product_code": code, "name": code, "category": "Test", "current_stock": stock},
        )
        product_id = product.id
        db.session.remove()
    return product_id


def _run_parallel(app, calls):
    """Run each (kwargs) through apply_movement on its own thread; collect outcomes."""
    results = []
    lock = threading.Lock()
    barrier = threading.Barrier(len(calls))

    def worker(kwargs):
        with app.app_context():
            try:
                barrier.wait()
                movement = stock_service.apply_movement(**kwargs)
                outcome = ("ok", movement.new_stock)
            except Exception as exc:
                outcome = ("error", exc)
            finally:
                db.session.remove()
            with lock:
                results.append(outcome)

    threads = [threading.Thread(target=worker, args=(kwargs,)) for kwargs in calls]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


def _snapshot(app, product_id: int) -> tuple[int, list[Movement], dict]:
    with app.app_context():
        stock = db.session.get(Product, product_id).current_stock
        movements = (
            db.session.query(Movement)
            .filter_by(product_id=product_id)
            .order_by(Movement.id.asc())
            .all()
        )
        rows = [(m.previous_stock, m.new_stock) for m in movements]
        totals = stock_service.stock_history_totals(product_id)
        db.session.remove()
    return stock, rows, totals


def test_parallel_in_movements_are_not_lost(file_app):
    product_id = _seed_product(file_app, "PAR-IN", 0)

    results = _run_parallel(file_app, [
        {"product_id": product_id, "quantity": 1, "direction": "IN"},
        {"product_id": product_id, "quantity": 1, "direction": "IN"},
    ])

    assert all(status == "ok" for status, _ in results), results
    assert sorted(new_stock for _, new_stock in results) == [1, 2]

    stock, rows, totals = _snapshot(file_app, product_id)
    assert stock == 2
    assert rows == [(0, 1), (1, 2)]
    assert totals["derived_stock"] == 2


def test_parallel_out_movements_never_oversell(file_app):
    product_id = _seed_product(file_app, "PAR-OUT", 1)

    results = _run_parallel(file_app, [
        {"product_id": product_id, "quantity": 1, "direction": "OUT"},
        {"product_id": product_id, "quantity": 1, "direction": "OUT"},
    ])

    succeeded = [r for r in results if r[0] == "ok"]
    failed = [r for r in results if r[0] == "error"]
    assert len(succeeded) == 1
    assert len(failed) == 1
    assert isinstance(failed[0][1], InsufficientStockError)

    stock, rows, _ = _snapshot(file_app, product_id)
    assert stock == 0
    assert rows == [(0, 1), (1, 0)]


def test_ledger_stays_consistent_under_contention(file_app):
    product_id = _seed_product(file_app, "PAR-MANY", 5)

    calls = [
        {"product_id": product_id, "quantity": 1, "direction": "IN" if i % 2 else "OUT"}
        for i in range(8)
    ]
    results = _run_parallel(file_app, calls)

    for status, value in results:
        if status == "error":
            # Losing every retry is allowed; a wrong balance is not
            assert isinstance(value, (InsufficientStockError, StorageUnavailableError)), value

    stock, rows, totals = _snapshot(file_app, product_id)
    assert stock >= 0
    assert stock == totals["derived_stock"]
    assert rows[-1][1] == stock
    for (prev_before, new_before), (prev_after, _) in zip(rows, rows[1:]):
        assert prev_after == new_before
