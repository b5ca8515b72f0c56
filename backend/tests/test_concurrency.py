"""
Threaded race tests against a file-backed SQLite database.

The shared in-memory test database uses a single connection, so real
contention needs its own app with one connection per thread.
"""

import threading

import pytest

from pos_app import create_app
from pos_app.extensions import db
from pos_app.models import InventoryLogEntry, Product, Sale
from pos_app.services.checkout_service import CartLine, CheckoutError, checkout
from pos_app.services.inventory_service import AdjustError, adjust_stock
from pos_app.services.products_service import create_product


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'race.db'}",
        "POS_STORE_TIMEOUT": 10,
    })
    with app.app_context():
        db.create_all()
        product = create_product(patch={"name": "Espresso", "price_cents": 250, "stock": 5})
        app.config["RACE_PRODUCT_ID"] = product.id
        db.session.remove()

    yield app

    with app.app_context():
        db.session.remove()
        db.engine.dispose()


def _race(app, fn, args_list):
    results = []
    lock = threading.Lock()
    barrier = threading.Barrier(len(args_list))

    def worker(*args):
        with app.app_context():
            try:
                barrier.wait()
                outcome = fn(*args)
            except (CheckoutError, AdjustError) as exc:
                outcome = exc
            finally:
                db.session.remove()
            with lock:
                results.append(outcome)

    threads = [threading.Thread(target=worker, args=args) for args in args_list]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return results


class TestCheckoutRace:

    def test_two_checkouts_of_three_against_five(self, file_app):
        pid = file_app.config["RACE_PRODUCT_ID"]

        def sell(operator):
            return checkout([CartLine(product_id=pid, quantity=3, unit_price_cents=250)], operator).id

        results = _race(file_app, sell, [("register-1",), ("register-2",)])

        sold = [r for r in results if isinstance(r, int)]
        failed = [r for r in results if isinstance(r, CheckoutError)]
        assert len(results) == 2
        assert len(sold) == 1
        assert [f.code for f in failed] in (["CONFLICT"], ["INSUFFICIENT_STOCK"])

        with file_app.app_context():
            assert db.session.get(Product, pid).stock == 2
            assert db.session.query(Sale).count() == 1
            outbound = db.session.query(InventoryLogEntry).filter_by(change_type="outbound").all()
            assert [(e.quantity_change, e.new_stock) for e in outbound] == [(3, 2)]

    def test_many_registers_sell_exactly_the_stock(self, file_app):
        pid = file_app.config["RACE_PRODUCT_ID"]

        def sell(operator):
            return checkout([CartLine(product_id=pid, quantity=1, unit_price_cents=250)], operator).id

        results = _race(file_app, sell, [(f"register-{i}",) for i in range(8)])
        sold = [r for r in results if isinstance(r, int)]
        failed = [r for r in results if isinstance(r, CheckoutError)]

        assert len(results) == 8
        assert len(sold) == 5
        assert len(failed) == 3
        assert {f.code for f in failed} <= {"CONFLICT", "INSUFFICIENT_STOCK"}

        with file_app.app_context():
            stock = db.session.get(Product, pid).stock
            assert stock == 0
            assert db.session.query(Sale).count() == 5
            latest = (
                db.session.query(InventoryLogEntry)
                .filter_by(product_id=pid)
                .order_by(InventoryLogEntry.id.desc())
                .first()
            )
            assert latest.new_stock == stock


class TestAdjustmentRace:

    def test_outbound_adjustments_never_go_negative(self, file_app):
        pid = file_app.config["RACE_PRODUCT_ID"]

        results = _race(
            file_app,
            lambda qty: adjust_stock(pid, "outbound", qty).stock,
            [(2,), (2,), (2,)],
        )
        applied = [r for r in results if isinstance(r, int)]

        assert len(applied) == 2
        with file_app.app_context():
            assert db.session.get(Product, pid).stock == 1
