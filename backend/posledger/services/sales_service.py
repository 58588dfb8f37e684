"""
Sale Transaction Orchestrator

create_sale() validates a cart, prices it from the current product rows,
checks stock and (for credit) the customer's limit, then writes the sale,
its items, the stock decrements and the credit posting in ONE unit of work.

Invariants:
- Nothing is written unless every check passes; any exception inside the
  unit of work rolls back every row touched by the call.
- Stock checks and decrements happen under the same product row locks,
  so two concurrent sales cannot both take the last unit.
- unit_price_cents is a snapshot of product.price_cents at sale time.
- total_amount_cents = max(0, sum(item totals) - discount).
"""

from __future__ import annotations

import secrets
import string
from datetime import datetime, time, timedelta, timezone

from flask import current_app

from ..extensions import db
from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..models import Customer, Sale, SaleItem
from ..models.sales import PAYMENT_METHOD_CASH, PAYMENT_METHOD_CREDIT
from ..money import MAX_QUANTITY, MAX_SALE_TOTAL_CENTS, coerce_cents, format_cents
from ..time_utils import parse_iso_date, utcnow
from ..validation import require_int_id
from . import credit_service, stock_service
from .activity_service import log_activity
from .concurrency import run_with_retry, unit_of_work
from .pagination import paginate_query

SALE_PAYMENT_METHODS = (PAYMENT_METHOD_CASH, PAYMENT_METHOD_CREDIT)

TRANSACTION_ID_ATTEMPTS = 5
_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


def generate_transaction_id(now: datetime | None = None) -> str:
    """Human-readable id: TXN-<epoch millis>-<5 random chars>."""
    moment = (now or utcnow()).replace(tzinfo=timezone.utc)
    millis = int(moment.timestamp() * 1000)
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(5))
    return f"TXN-{millis}-{suffix}"


def _unique_transaction_id() -> str:
    for _ in range(TRANSACTION_ID_ATTEMPTS):
        candidate = generate_transaction_id()
        taken = db.session.query(Sale.id).filter_by(transaction_id=candidate).first()
        if taken is None:
            return candidate
    raise RuntimeError("Could not allocate a unique transaction id")


def _normalize_cart(items) -> list[tuple[int, int]]:
    if not items or not isinstance(items, list):
        raise ValidationError("Sale items are required")

    lines = []
    for index, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            raise ValidationError(f"Invalid item data at line {index}")
        product_id = item.get("product_id")
        quantity = item.get("quantity")
        for field, value in (("product_id", product_id), ("quantity", quantity)):
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError(f"Invalid item data at line {index}: {field} must be an integer")
        if quantity <= 0:
            raise ValidationError(f"Invalid item data at line {index}: quantity must be > 0")
        if quantity > MAX_QUANTITY:
            raise ValidationError(f"Invalid item data at line {index}: quantity cannot exceed {MAX_QUANTITY}")
        lines.append((product_id, quantity))
    return lines


def create_sale(
    *,
    cashier_id: int | None,
    items,
    discount_amount_cents=0,
    payment_method: str = PAYMENT_METHOD_CASH,
    customer_id: int | None = None,
    credit_due_date=None,
) -> Sale:
    """
    Create and commit a complete sale.

    Args:
        cashier_id: User ringing up the sale
        items: [{"product_id": int, "quantity": int}, ...] in cart order
        discount_amount_cents: Whole-sale discount (never makes total negative)
        payment_method: "cash" or "credit"
        customer_id: Required for credit sales
        credit_due_date: Required for credit sales (YYYY-MM-DD)

    Raises:
        ValidationError, NotFoundError, InsufficientStockError,
        CreditLimitExceededError
    """
    lines = _normalize_cart(items)
    discount = coerce_cents(discount_amount_cents or 0, "discount_amount_cents")

    payment_method = payment_method or PAYMENT_METHOD_CASH
    if payment_method not in SALE_PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(SALE_PAYMENT_METHODS)}")

    if customer_id is not None:
        customer_id = require_int_id(customer_id, "customer_id")

    is_credit = payment_method == PAYMENT_METHOD_CREDIT
    due_date = None
    if is_credit:
        if customer_id is None:
            raise ValidationError("Customer is required for credit sales")
        try:
            due_date = parse_iso_date(credit_due_date)
        except ValueError:
            raise ValidationError("Credit due date must be a YYYY-MM-DD date")
        if due_date is None:
            raise ValidationError("Credit due date is required")

    def _op():
        with unit_of_work():
            # Ascending id order so concurrent carts lock rows in the same order
            products = {
                product_id: stock_service.get_product_for_update(product_id)
                for product_id in sorted({product_id for product_id, _ in lines})
            }
            requested: dict[int, int] = {}
            priced = []
            subtotal = 0

            for product_id, quantity in lines:
                product = products[product_id]
                requested[product_id] = requested.get(product_id, 0) + quantity
                if requested[product_id] > product.stock_quantity:
                    raise InsufficientStockError(
                        product.id, product.name, product.stock_quantity, requested[product_id]
                    )

                unit_price = product.price_cents
                line_total = unit_price * quantity
                subtotal += line_total
                priced.append((product, quantity, unit_price, line_total))

            if subtotal > MAX_SALE_TOTAL_CENTS:
                raise ValidationError(f"Sale subtotal cannot exceed {MAX_SALE_TOTAL_CENTS}")

            total = max(0, subtotal - discount)

            customer = None
            if is_credit:
                customer = credit_service.get_customer_for_update(customer_id)
                credit_service.check_credit_limit(customer, total)
            elif customer_id is not None:
                customer = db.session.get(Customer, customer_id)
                if customer is None or not customer.is_active:
                    raise NotFoundError("Customer not found")

            transaction_id = _unique_transaction_id()
            sale = Sale(
                transaction_id=transaction_id,
                cashier_id=cashier_id,
                customer_id=customer.id if customer else None,
                subtotal_cents=subtotal,
                discount_amount_cents=discount,
                total_amount_cents=total,
                payment_method=payment_method,
                credit_due_date=due_date,
                credit_amount_cents=total if is_credit else 0,
            )
            db.session.add(sale)
            db.session.flush()

            for product, quantity, unit_price, line_total in priced:
                db.session.add(SaleItem(
                    sale_id=sale.id,
                    product_id=product.id,
                    quantity=quantity,
                    unit_price_cents=unit_price,
                    total_price_cents=line_total,
                ))
                stock_service.apply_stock_delta(
                    product,
                    -quantity,
                    reason=f"Sale transaction {transaction_id}",
                    movement_type=stock_service.MOVEMENT_OUT,
                    reference_type="sale",
                    reference_id=sale.id,
                    performed_by=cashier_id,
                )

            if is_credit:
                credit_service.post_credit_sale(customer, total)

            db.session.flush()
        return sale

    sale = run_with_retry(_op)

    current_app.logger.info(
        "Committed %s sale %s total_cents=%s items=%s",
        sale.payment_method, sale.transaction_id, sale.total_amount_cents, len(lines),
    )
    payment_text = "credit" if sale.is_credit else format_cents(sale.total_amount_cents)
    log_activity(
        cashier_id,
        "create_sale",
        "sale",
        sale.id,
        f"Created {sale.payment_method} sale {sale.transaction_id} for {payment_text}",
    )
    return sale


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError("Sale not found")
    return sale


def list_sales(
    *,
    start_date=None,
    end_date=None,
    cashier_id: int | None = None,
    payment_method: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """Sales newest first. Dates are inclusive calendar days (UTC)."""
    try:
        start = parse_iso_date(start_date)
        end = parse_iso_date(end_date)
    except ValueError:
        raise ValidationError("start_date and end_date must be YYYY-MM-DD dates")

    q = db.session.query(Sale)
    if start is not None:
        q = q.filter(Sale.created_at >= datetime.combine(start, time.min))
    if end is not None:
        q = q.filter(Sale.created_at < datetime.combine(end + timedelta(days=1), time.min))
    if cashier_id is not None:
        q = q.filter(Sale.cashier_id == cashier_id)
    if payment_method:
        q = q.filter(Sale.payment_method == payment_method)

    q = q.order_by(Sale.created_at.desc(), Sale.id.desc())

    def _row(sale: Sale) -> dict:
        data = sale.to_dict()
        data["cashier_name"] = sale.cashier.full_name if sale.cashier else None
        data["cashier_username"] = sale.cashier.username if sale.cashier else None
        return data

    return paginate_query(q, page, per_page, _row)
