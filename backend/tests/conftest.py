"""
Pytest fixtures for the POS ledger backend tests.

Provides the app (in-memory SQLite), a clean database per test, users for
each role with bearer tokens, and small factories for products, customers
and sales.
"""

import pytest

from posledger import create_app
from posledger.extensions import db
from posledger.models import User
from posledger.models.auth import ROLE_ADMIN, ROLE_CASHIER, ROLE_MANAGER
from posledger.services import customer_service, products_service, sales_service, session_service
from posledger.services.auth_service import hash_password

TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def _make_user(db_session, username: str, role: str) -> User:
    user = User(
        username=username,
        email=f"{username}@shop.test",
        full_name=username.title(),
        # Low cost factor keeps the suite fast; production uses 12
        password_hash=hash_password(TEST_PASSWORD, rounds=4),
        role=role,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session):
    return _make_user(db_session, "admin", ROLE_ADMIN)


@pytest.fixture(scope='function')
def manager_user(db_session):
    return _make_user(db_session, "manager", ROLE_MANAGER)


@pytest.fixture(scope='function')
def cashier_user(db_session):
    return _make_user(db_session, "cashier", ROLE_CASHIER)


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def _headers_for(user: User) -> dict:
    _, token = session_service.create_session(user.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    return _headers_for(admin_user)


@pytest.fixture(scope='function')
def manager_headers(manager_user):
    return _headers_for(manager_user)


@pytest.fixture(scope='function')
def cashier_headers(cashier_user):
    return _headers_for(cashier_user)


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product(name="P", price_cents=1000, stock=5, **fields)."""
    counter = {"n": 0}

    def _make(name="P", price_cents=1000, stock=0, **fields):
        counter["n"] += 1
        patch = {
            "sku": fields.pop("sku", f"SKU-{counter['n']:03d}"),
            "name": name,
            "price_cents": price_cents,
            "stock_quantity": stock,
        }
        patch.update(fields)
        return products_service.create_product(patch=patch)

    return _make


@pytest.fixture(scope='function')
def make_customer(db_session):
    """Factory: make_customer(name="C", credit_limit_cents=0, **fields)."""
    def _make(name="C", credit_limit_cents=0, **fields):
        patch = {"name": name, "credit_limit_cents": credit_limit_cents}
        patch.update(fields)
        return customer_service.create_customer(patch=patch)

    return _make


@pytest.fixture(scope='function')
def sell(cashier_user):
    """Factory: sell(product, qty, ...) -> Sale, rung up by the cashier fixture user."""
    def _sell(*lines, **kwargs):
        items = [{"product_id": p.id, "quantity": q} for p, q in lines]
        return sales_service.create_sale(cashier_id=cashier_user.id, items=items, **kwargs)

    return _sell
