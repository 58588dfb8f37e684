"""
CLI command tests (flask system / users / ledger).
"""

from posledger.models import Customer, User


def test_system_init_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    first = runner.invoke(args=["system", "init"])
    assert first.exit_code == 0, first.output
    assert {u.username for u in db_session.query(User).all()} == {"admin", "manager", "cashier"}

    second = runner.invoke(args=["system", "init"])
    assert second.exit_code == 0
    assert "already exists" in second.output
    assert db_session.query(User).count() == 3


def test_users_create(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "users", "create",
        "--username", "tunde", "--email", "tunde@shop.test",
        "--password", "Password123!", "--role", "manager",
    ])
    assert result.exit_code == 0, result.output
    assert db_session.query(User).filter_by(username="tunde").one().role == "manager"

    weak = runner.invoke(args=[
        "users", "create",
        "--username", "weak", "--email", "weak@shop.test", "--password", "weak",
    ])
    assert weak.exit_code != 0


def test_ledger_verify(app, db_session, make_product, make_customer, sell):
    product = make_product(price_cents=1000, stock=10)
    customer = make_customer()
    sell((product, 2), payment_method="credit", customer_id=customer.id, credit_due_date="2030-01-01")
    runner = app.test_cli_runner()

    ok = runner.invoke(args=["ledger", "verify"])
    assert ok.exit_code == 0
    assert "0 inconsistent" in ok.output

    # Corrupt the denormalized balance directly
    db_session.get(Customer, customer.id).outstanding_balance_cents = 1
    db_session.commit()

    bad = runner.invoke(args=["ledger", "verify"])
    assert bad.exit_code == 1
    assert "stored ₦0.01, computed ₦20.00" in bad.output
