# Overview: Service-layer operations for customer credit; the only writer of Customer.outstanding_balance_cents.

"""
Credit Ledger Engine

Balance identity (authoritative):

    customer.outstanding_balance_cents
        == SUM(sales.credit_amount_cents  WHERE customer, payment_method='credit')
         - SUM(credit_payments.amount_cents WHERE customer)

Mutations:
- post_credit_sale(): +amount. Only called by the sale orchestrator,
  inside its unit of work, after the credit limit check.
- record_payment(): -amount, together with the CreditPayment insert, in
  one unit of work. A payment can never exceed what remains on its sale.

Time semantics:
- Due dates and payment dates are calendar dates.
- days_overdue = (today - credit_due_date).days, integer calendar days.
  "today" comes from the injected `now` (defaults to utcnow()).
- A sale is overdue when its due date is before today and something
  remains unpaid.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..errors import (
    CreditLimitExceededError,
    NotFoundError,
    OverpaymentError,
    ValidationError,
)
from ..models import CreditPayment, Customer, Sale
from ..models.sales import PAYMENT_METHOD_CREDIT
from ..money import coerce_cents, format_cents
from ..time_utils import parse_iso_date, today as business_today
from ..validation import require_int_id
from .activity_service import log_activity
from .concurrency import lock_for_update, run_with_retry, unit_of_work
from .pagination import paginate_query


# =============================================================================
# CONSTANTS
# =============================================================================

PAYMENT_METHODS = ("cash", "bank_transfer", "pos", "mobile_money")

SEVERITY_WARNING = "warning"
SEVERITY_DANGER = "danger"
SEVERITY_CRITICAL = "critical"

RECENT_PAYMENT_DAYS = 7
RECENT_PAYMENT_LIMIT = 10
ALERT_PREVIEW_LIMIT = 5


def overdue_severity(days_overdue: int) -> str | None:
    """1-7 days warning, 8-30 danger, 31+ critical; None when not overdue."""
    if days_overdue <= 0:
        return None
    if days_overdue <= 7:
        return SEVERITY_WARNING
    if days_overdue <= 30:
        return SEVERITY_DANGER
    return SEVERITY_CRITICAL


# =============================================================================
# BALANCE MUTATIONS
# =============================================================================

def get_customer_for_update(customer_id: int, *, require_active: bool = True) -> Customer:
    customer = lock_for_update(db.session.query(Customer).filter_by(id=customer_id)).first()
    if customer is None or (require_active and not customer.is_active):
        raise NotFoundError("Customer not found")
    return customer


def check_credit_limit(customer: Customer, amount_cents: int) -> None:
    """Raise CreditLimitExceededError if amount would push outstanding past a positive limit."""
    limit = customer.credit_limit_cents or 0
    outstanding = customer.outstanding_balance_cents or 0
    if limit > 0 and outstanding + amount_cents > limit:
        raise CreditLimitExceededError(limit, outstanding, amount_cents)


def post_credit_sale(customer: Customer, amount_cents: int) -> None:
    """
    Increase a locked customer's outstanding balance by a credit sale amount.

    No commit; runs inside the sale orchestrator's unit of work so the sale
    row and the balance can never diverge.
    """
    if amount_cents < 0:
        raise ValidationError("Credit sale amount must be >= 0")
    customer.outstanding_balance_cents = (customer.outstanding_balance_cents or 0) + amount_cents
    db.session.flush()


def _paid_on_sale(sale_id: int) -> int:
    total = (
        db.session.query(func.coalesce(func.sum(CreditPayment.amount_cents), 0))
        .filter(CreditPayment.sale_id == sale_id)
        .scalar()
    )
    return int(total or 0)


def remaining_balance(sale_id: int) -> int:
    """Unpaid part of a sale's credit amount (0 for cash sales)."""
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError("Sale not found")
    return sale.credit_amount_cents - _paid_on_sale(sale.id)


def record_payment(
    *,
    sale_id: int,
    customer_id: int,
    amount_cents,
    payment_date,
    payment_method: str = "cash",
    notes: str | None = None,
    recorded_by: int | None = None,
) -> CreditPayment:
    """
    Record a repayment against one credit sale.

    Raises:
        ValidationError: bad amount/date/method, sale is not a credit sale
            of this customer
        NotFoundError: customer (active) or sale missing
        OverpaymentError: amount exceeds the sale's remaining balance
    """
    if sale_id is None:
        raise ValidationError("sale_id is required")
    sale_id = require_int_id(sale_id, "sale_id")
    customer_id = require_int_id(customer_id, "customer_id")
    amount = coerce_cents(amount_cents, "amount_cents", allow_zero=False)

    try:
        paid_on = parse_iso_date(payment_date)
    except ValueError:
        raise ValidationError("payment_date must be a YYYY-MM-DD date")
    if paid_on is None:
        raise ValidationError("payment_date is required")

    payment_method = payment_method or "cash"
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")

    def _op():
        with unit_of_work():
            customer = get_customer_for_update(customer_id)

            sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
            if sale is None:
                raise NotFoundError("Credit sale not found")
            if sale.payment_method != PAYMENT_METHOD_CREDIT:
                raise ValidationError("Sale is not a credit sale")
            if sale.customer_id != customer.id:
                raise ValidationError("Sale belongs to a different customer")

            remaining = sale.credit_amount_cents - _paid_on_sale(sale.id)
            if amount > remaining:
                raise OverpaymentError(remaining, amount)

            payment = CreditPayment(
                sale_id=sale.id,
                customer_id=customer.id,
                amount_cents=amount,
                payment_date=paid_on,
                payment_method=payment_method,
                notes=notes,
                recorded_by=recorded_by,
            )
            db.session.add(payment)
            customer.outstanding_balance_cents -= amount
            db.session.flush()
            customer_name = customer.name
        return payment, customer_name

    payment, customer_name = run_with_retry(_op)

    current_app.logger.info(
        "Recorded credit payment id=%s sale_id=%s amount_cents=%s",
        payment.id, sale_id, amount,
    )
    log_activity(
        recorded_by,
        "record_payment",
        "credit_payment",
        payment.id,
        f"Recorded payment of {format_cents(amount)} for customer: {customer_name}",
    )
    return payment


# =============================================================================
# QUERIES
# =============================================================================

def _paid_subquery():
    return (
        db.session.query(
            CreditPayment.sale_id.label("sale_id"),
            func.sum(CreditPayment.amount_cents).label("paid"),
        )
        .group_by(CreditPayment.sale_id)
        .subquery()
    )


def _credit_row(sale: Sale, paid: int, as_of: date | None = None) -> dict:
    row = sale.to_dict()
    row["total_paid_cents"] = int(paid or 0)
    row["remaining_balance_cents"] = sale.credit_amount_cents - int(paid or 0)
    row["cashier_name"] = sale.cashier.full_name if sale.cashier else None
    if as_of is not None and sale.credit_due_date is not None:
        days = (as_of - sale.credit_due_date).days
        row["days_overdue"] = days
        row["severity"] = overdue_severity(days)
    return row


def overdue_credits(min_days_overdue: int = 0, now: datetime | None = None) -> list[dict]:
    """
    Credit sales past due with something still unpaid.

    Sorted by due date ascending (most overdue first), ties by sale id.
    Pure read; repeated calls without writes return identical results.
    """
    if min_days_overdue is None or min_days_overdue < 0:
        min_days_overdue = 0
    as_of = business_today(now)
    # due < today and (today - due).days >= min  <=>  due <= today - max(min, 1)
    latest_due = as_of - timedelta(days=max(min_days_overdue, 1))

    paid_sq = _paid_subquery()
    paid = func.coalesce(paid_sq.c.paid, 0)

    rows = (
        db.session.query(Sale, Customer, paid.label("paid"))
        .join(Customer, Sale.customer_id == Customer.id)
        .outerjoin(paid_sq, paid_sq.c.sale_id == Sale.id)
        .filter(
            Sale.payment_method == PAYMENT_METHOD_CREDIT,
            Sale.credit_due_date.isnot(None),
            Sale.credit_due_date <= latest_due,
            Sale.credit_amount_cents - paid > 0,
        )
        .order_by(Sale.credit_due_date.asc(), Sale.id.asc())
        .all()
    )

    result = []
    for sale, customer, paid_cents in rows:
        row = _credit_row(sale, paid_cents, as_of)
        row["customer_name"] = customer.name
        row["customer_phone"] = customer.phone
        row["customer_email"] = customer.email
        result.append(row)
    return result


def overdue_alerts(min_days_overdue: int = 30, now: datetime | None = None) -> dict:
    """Dashboard alert: count and amount of overdue credits plus the most overdue few."""
    rows = overdue_credits(min_days_overdue, now=now)
    return {
        "summary": {
            "overdue_count": len(rows),
            "total_overdue_amount_cents": sum(r["remaining_balance_cents"] for r in rows),
        },
        "recent_overdue": rows[:ALERT_PREVIEW_LIMIT],
    }


def _month_bounds(as_of: date) -> tuple[datetime, datetime]:
    start = datetime(as_of.year, as_of.month, 1)
    if as_of.month == 12:
        end = datetime(as_of.year + 1, 1, 1)
    else:
        end = datetime(as_of.year, as_of.month + 1, 1)
    return start, end


def credit_summary(now: datetime | None = None) -> dict:
    as_of = business_today(now)

    total_outstanding = (
        db.session.query(func.coalesce(func.sum(Customer.outstanding_balance_cents), 0)).scalar()
    )

    overdue = overdue_credits(0, now=now)

    recent_payments = (
        db.session.query(CreditPayment, Customer.name, Sale.transaction_id)
        .join(Customer, CreditPayment.customer_id == Customer.id)
        .join(Sale, CreditPayment.sale_id == Sale.id)
        .filter(CreditPayment.payment_date >= as_of - timedelta(days=RECENT_PAYMENT_DAYS))
        .order_by(CreditPayment.payment_date.desc(), CreditPayment.id.desc())
        .limit(RECENT_PAYMENT_LIMIT)
        .all()
    )

    month_start, month_end = _month_bounds(as_of)
    monthly_count, monthly_amount = (
        db.session.query(
            func.count(Sale.id),
            func.coalesce(func.sum(Sale.credit_amount_cents), 0),
        )
        .filter(
            Sale.payment_method == PAYMENT_METHOD_CREDIT,
            Sale.created_at >= month_start,
            Sale.created_at < month_end,
        )
        .one()
    )

    payments = []
    for payment, customer_name, transaction_id in recent_payments:
        data = payment.to_dict()
        data["customer_name"] = customer_name
        data["transaction_id"] = transaction_id
        payments.append(data)

    return {
        "total_outstanding_cents": int(total_outstanding or 0),
        "overdue_credits": len(overdue),
        "overdue_amount_cents": sum(r["remaining_balance_cents"] for r in overdue),
        "recent_payments": payments,
        "monthly_credits": int(monthly_count or 0),
        "monthly_amount_cents": int(monthly_amount or 0),
    }


def credit_history(customer_id: int, page: int | None = None, per_page: int | None = None) -> dict:
    """A customer's credit sales (with remaining balance), payments and totals."""
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError("Customer not found")

    paid_sq = _paid_subquery()
    paid = func.coalesce(paid_sq.c.paid, 0)

    sales_query = (
        db.session.query(Sale, paid.label("paid"))
        .outerjoin(paid_sq, paid_sq.c.sale_id == Sale.id)
        .filter(Sale.customer_id == customer_id, Sale.payment_method == PAYMENT_METHOD_CREDIT)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
    )
    credit_sales = paginate_query(
        sales_query, page, per_page, lambda row: _credit_row(row[0], row[1]), default_per_page=20
    )

    payments_query = (
        db.session.query(CreditPayment, Sale.transaction_id)
        .join(Sale, CreditPayment.sale_id == Sale.id)
        .filter(CreditPayment.customer_id == customer_id)
        .order_by(CreditPayment.payment_date.desc(), CreditPayment.id.desc())
    )
    payments = paginate_query(
        payments_query, page, per_page, _payment_row, default_per_page=20
    )

    total_credit = (
        db.session.query(func.coalesce(func.sum(Sale.credit_amount_cents), 0))
        .filter(Sale.customer_id == customer_id, Sale.payment_method == PAYMENT_METHOD_CREDIT)
        .scalar()
    )
    total_paid = (
        db.session.query(func.coalesce(func.sum(CreditPayment.amount_cents), 0))
        .filter(CreditPayment.customer_id == customer_id)
        .scalar()
    )

    return {
        "customer": customer.to_dict(),
        "credit_sales": credit_sales,
        "payments": payments,
        "totals": {
            "total_credit_cents": int(total_credit or 0),
            "total_paid_cents": int(total_paid or 0),
            "total_outstanding_cents": int(total_credit or 0) - int(total_paid or 0),
        },
    }


def _payment_row(row) -> dict:
    payment, transaction_id = row[0], row[1]
    data = payment.to_dict()
    data["transaction_id"] = transaction_id
    if len(row) > 2:
        data["customer_name"] = row[2]
        data["customer_phone"] = row[3]
    return data


def list_payments(
    *,
    start_date=None,
    end_date=None,
    customer_id: int | None = None,
    payment_method: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """All credit payments, newest first, with optional filters."""
    try:
        start = parse_iso_date(start_date)
        end = parse_iso_date(end_date)
    except ValueError:
        raise ValidationError("start_date and end_date must be YYYY-MM-DD dates")

    q = (
        db.session.query(CreditPayment, Sale.transaction_id, Customer.name, Customer.phone)
        .join(Sale, CreditPayment.sale_id == Sale.id)
        .join(Customer, CreditPayment.customer_id == Customer.id)
    )
    if start is not None:
        q = q.filter(CreditPayment.payment_date >= start)
    if end is not None:
        q = q.filter(CreditPayment.payment_date <= end)
    if customer_id is not None:
        q = q.filter(CreditPayment.customer_id == customer_id)
    if payment_method:
        q = q.filter(CreditPayment.payment_method == payment_method)

    q = q.order_by(CreditPayment.payment_date.desc(), CreditPayment.id.desc())
    return paginate_query(q, page, per_page, _payment_row)


def verify_customer_balance(customer_id: int) -> dict:
    """Recompute the balance identity for one customer."""
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError("Customer not found")

    credited = (
        db.session.query(func.coalesce(func.sum(Sale.credit_amount_cents), 0))
        .filter(Sale.customer_id == customer_id, Sale.payment_method == PAYMENT_METHOD_CREDIT)
        .scalar()
    )
    paid = (
        db.session.query(func.coalesce(func.sum(CreditPayment.amount_cents), 0))
        .filter(CreditPayment.customer_id == customer_id)
        .scalar()
    )
    computed = int(credited or 0) - int(paid or 0)
    return {
        "customer_id": customer_id,
        "stored_balance_cents": customer.outstanding_balance_cents,
        "computed_balance_cents": computed,
        "consistent": customer.outstanding_balance_cents == computed,
    }


def verify_all_balances() -> list[dict]:
    ids = [cid for (cid,) in db.session.query(Customer.id).order_by(Customer.id).all()]
    return [verify_customer_balance(cid) for cid in ids]
