"""
Concurrency tests against a file-backed SQLite database.

Each worker thread gets its own app context (and therefore its own
session), like concurrent requests would.
"""

import os
import tempfile
import threading

import pytest

from posledger import create_app
from posledger.errors import CreditLimitExceededError, InsufficientStockError, OverpaymentError
from posledger.extensions import db
from posledger.models import Customer, Product, StockMovement
from posledger.services import credit_service, customer_service, products_service, sales_service


@pytest.fixture
def file_app():
    tmpdir = tempfile.TemporaryDirectory()
    db_path = os.path.join(tmpdir.name, "concurrency.db")
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
        "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"timeout": 30}},
    })
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()
    tmpdir.cleanup()


def _run_workers(app, target, args_list):
    results = []
    lock = threading.Lock()

    def worker(*args):
        with app.app_context():
            try:
                outcome = target(*args)
            except Exception as exc:
                outcome = exc
            finally:
                db.session.remove()
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=worker, args=args) for args in args_list]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


def test_concurrent_sales_never_oversell(file_app):
    with file_app.app_context():
        product = products_service.create_product(
            patch={"sku": "RACE-1", "name": "Race", "price_cents": 1000, "stock_quantity": 5}
        )
        product_id = product.id

    def buy():
        return sales_service.create_sale(cashier_id=None, items=[{"product_id": product_id, "quantity": 1}]).id

    results = _run_workers(file_app, buy, [() for _ in range(10)])

    sold = [r for r in results if isinstance(r, int)]
    rejected = [r for r in results if isinstance(r, InsufficientStockError)]
    assert len(sold) == 5
    assert len(rejected) == 5

    with file_app.app_context():
        assert db.session.get(Product, product_id).stock_quantity == 0
        outs = db.session.query(StockMovement).filter_by(product_id=product_id, movement_type="out").count()
        assert outs == 5


def test_concurrent_credit_sales_respect_limit(file_app):
    with file_app.app_context():
        product = products_service.create_product(
            patch={"sku": "RACE-2", "name": "Race", "price_cents": 1000, "stock_quantity": 100}
        )
        customer = customer_service.create_customer(patch={"name": "Racer", "credit_limit_cents": 10000})
        product_id, customer_id = product.id, customer.id

    def buy():
        return sales_service.create_sale(
            cashier_id=None,
            items=[{"product_id": product_id, "quantity": 3}],
            payment_method="credit",
            customer_id=customer_id,
            credit_due_date="2030-01-01",
        ).id

    results = _run_workers(file_app, buy, [() for _ in range(6)])

    sold = [r for r in results if isinstance(r, int)]
    assert len(sold) == 3
    assert all(isinstance(r, (int, CreditLimitExceededError)) for r in results)

    with file_app.app_context():
        customer = db.session.get(Customer, customer_id)
        assert customer.outstanding_balance_cents == 9000
        assert credit_service.verify_customer_balance(customer_id)["consistent"]
        assert db.session.get(Product, product_id).stock_quantity == 91


def test_concurrent_payments_never_overpay(file_app):
    with file_app.app_context():
        product = products_service.create_product(
            patch={"sku": "RACE-3", "name": "Race", "price_cents": 5000, "stock_quantity": 10}
        )
        customer = customer_service.create_customer(patch={"name": "Payer"})
        sale = sales_service.create_sale(
            cashier_id=None,
            items=[{"product_id": product.id, "quantity": 1}],
            payment_method="credit",
            customer_id=customer.id,
            credit_due_date="2030-01-01",
        )
        sale_id, customer_id = sale.id, customer.id

    def pay():
        return credit_service.record_payment(
            sale_id=sale_id,
            customer_id=customer_id,
            amount_cents=2000,
            payment_date="2030-01-02",
        ).id

    results = _run_workers(file_app, pay, [() for _ in range(4)])

    paid = [r for r in results if isinstance(r, int)]
    assert len(paid) == 2
    assert all(isinstance(r, (int, OverpaymentError)) for r in results)

    with file_app.app_context():
        assert credit_service.remaining_balance(sale_id) == 1000
        assert db.session.get(Customer, customer_id).outstanding_balance_cents == 1000
        assert credit_service.verify_customer_balance(customer_id)["consistent"]
