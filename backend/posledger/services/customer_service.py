# Overview: Service-layer operations for customers; master data around the credit account.

"""
Customer master data.

Customers are created and edited here; their outstanding balance is not.
outstanding_balance_cents is owned by credit_service and is never part of
a writable patch.

Duplicate policy: an active customer's phone and email must not be shared
with another active customer.
"""

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..errors import ConflictError, NotFoundError
from ..models import CreditPayment, Customer, Sale
from ..models.sales import PAYMENT_METHOD_CREDIT
from .activity_service import log_activity
from .concurrency import lock_for_update, run_with_retry, unit_of_work
from .pagination import paginate_query

CUSTOMER_MUTABLE_FIELDS = {"name", "phone", "email", "address", "credit_limit_cents"}

QUICK_SEARCH_MIN_CHARS = 2
QUICK_SEARCH_LIMIT = 10


def _ensure_unique_contact(phone: str | None, email: str | None, exclude_id: int | None = None) -> None:
    for field, value in (("phone", phone), ("email", email)):
        if not value:
            continue
        q = db.session.query(Customer.id).filter(
            getattr(Customer, field) == value,
            Customer.is_active.is_(True),
        )
        if exclude_id is not None:
            q = q.filter(Customer.id != exclude_id)
        if q.first() is not None:
            raise ConflictError("Customer with this phone or email already exists")


def get_customer(customer_id: int, *, require_active: bool = True) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None or (require_active and not customer.is_active):
        raise NotFoundError("Customer not found")
    return customer


def create_customer(*, patch: dict, user_id: int | None = None) -> Customer:
    """Create a customer from a validated patch (see routes/customers.py)."""
    def _op():
        with unit_of_work():
            _ensure_unique_contact(patch.get("phone"), patch.get("email"))
            customer = Customer(
                name=patch["name"],
                phone=patch.get("phone"),
                email=patch.get("email"),
                address=patch.get("address"),
                credit_limit_cents=patch.get("credit_limit_cents") or 0,
                outstanding_balance_cents=0,
            )
            db.session.add(customer)
            db.session.flush()
        return customer

    customer = run_with_retry(_op)
    log_activity(user_id, "create_customer", "customer", customer.id, f"Created customer: {customer.name}")
    return customer


def update_customer(customer_id: int, *, patch: dict, user_id: int | None = None) -> Customer:
    """
    Apply a validated patch.

    Lowering credit_limit_cents below the current balance is allowed; it
    only blocks further credit sales until the balance comes down.
    """
    def _op():
        with unit_of_work():
            customer = lock_for_update(db.session.query(Customer).filter_by(id=customer_id)).first()
            if customer is None or not customer.is_active:
                raise NotFoundError("Customer not found")

            _ensure_unique_contact(
                patch.get("phone", customer.phone),
                patch.get("email", customer.email),
                exclude_id=customer.id,
            )
            for k, v in patch.items():
                if k not in CUSTOMER_MUTABLE_FIELDS:
                    continue
                if k == "credit_limit_cents" and v is None:
                    v = 0
                setattr(customer, k, v)
            db.session.flush()
        return customer

    customer = run_with_retry(_op)
    log_activity(user_id, "update_customer", "customer", customer.id, f"Updated customer: {customer.name}")
    return customer


def list_customers(*, search: str | None = None, page: int | None = None, per_page: int | None = None) -> dict:
    q = db.session.query(Customer).filter(Customer.is_active.is_(True))
    if search:
        term = f"%{search.strip()}%"
        q = q.filter(or_(Customer.name.ilike(term), Customer.phone.ilike(term), Customer.email.ilike(term)))
    q = q.order_by(Customer.name.asc(), Customer.id.asc())
    return paginate_query(q, page, per_page, lambda c: c.to_dict())


def search_customers(query: str | None) -> list[Customer]:
    """Quick search for the cashier's customer picker."""
    if not query or len(query.strip()) < QUICK_SEARCH_MIN_CHARS:
        return []
    term = f"%{query.strip()}%"
    return (
        db.session.query(Customer)
        .filter(
            Customer.is_active.is_(True),
            or_(Customer.name.ilike(term), Customer.phone.ilike(term), Customer.email.ilike(term)),
        )
        .order_by(Customer.name.asc())
        .limit(QUICK_SEARCH_LIMIT)
        .all()
    )


def get_customer_detail(customer_id: int) -> dict:
    """Customer with all credit sales and payments, newest first."""
    customer = get_customer(customer_id)

    credit_sales = (
        db.session.query(Sale)
        .filter(Sale.customer_id == customer.id, Sale.payment_method == PAYMENT_METHOD_CREDIT)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .all()
    )
    payments = (
        db.session.query(CreditPayment)
        .filter(CreditPayment.customer_id == customer.id)
        .order_by(CreditPayment.payment_date.desc(), CreditPayment.id.desc())
        .all()
    )
    sale_rows = []
    for sale in credit_sales:
        row = sale.to_dict()
        row["cashier_name"] = sale.cashier.full_name if sale.cashier else None
        sale_rows.append(row)

    payment_rows = []
    for payment in payments:
        row = payment.to_dict()
        row["recorded_by_name"] = payment.recorder.full_name if payment.recorder else None
        payment_rows.append(row)

    return {
        "customer": customer.to_dict(),
        "credit_sales": sale_rows,
        "payments": payment_rows,
    }
