# Overview: Service-layer operations for stock; the only writer of Product.stock_quantity.

"""
Stock Adjustment Engine

Invariants:
- Product.stock_quantity never goes negative (checked here and by a DB
  check constraint).
- Every change appends exactly one StockMovement carrying previous_stock
  and new_stock, in the same DB transaction as the change.
- The product row is locked (and version-checked on flush) for the whole
  read-check-write sequence.

apply_stock_delta() is the inner form: no locking, no commit. The sale
orchestrator calls it inside its own unit of work. adjust_stock() and
restock() own their transaction.
"""

from __future__ import annotations

from ..extensions import db
from ..errors import InvalidAdjustmentError, NotFoundError, ValidationError
from ..models import Product, StockMovement
from ..money import MAX_QUANTITY
from .activity_service import log_activity
from .concurrency import lock_for_update, run_with_retry, unit_of_work

MOVEMENT_IN = "in"
MOVEMENT_OUT = "out"
MOVEMENT_ADJUSTMENT = "adjustment"

VALID_MOVEMENT_TYPES = (MOVEMENT_IN, MOVEMENT_OUT, MOVEMENT_ADJUSTMENT)


def get_product_for_update(product_id: int, *, require_active: bool = True) -> Product:
    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if product is None or (require_active and not product.is_active):
        raise NotFoundError(f"Product with ID {product_id} not found")
    return product


def apply_stock_delta(
    product: Product,
    quantity_delta: int,
    *,
    reason: str | None = None,
    movement_type: str | None = None,
    reference_type: str | None = None,
    reference_id: int | None = None,
    performed_by: int | None = None,
) -> StockMovement:
    """Core stock change without locking, retry or commit."""
    previous = product.stock_quantity
    if quantity_delta == 0:
        raise InvalidAdjustmentError(
            "Stock adjustment quantity must be non-zero",
            product_id=product.id,
            current_stock=previous,
            quantity_delta=quantity_delta,
        )

    new_stock = previous + quantity_delta
    if new_stock < 0:
        raise InvalidAdjustmentError(
            f"Adjustment would make stock negative for {product.name}. Current: {previous}",
            product_id=product.id,
            current_stock=previous,
            quantity_delta=quantity_delta,
        )
    if new_stock > MAX_QUANTITY:
        raise InvalidAdjustmentError(
            f"Adjustment would take stock for {product.name} above {MAX_QUANTITY}. Current: {previous}",
            product_id=product.id,
            current_stock=previous,
            quantity_delta=quantity_delta,
        )

    if movement_type is None:
        movement_type = MOVEMENT_IN if quantity_delta > 0 else MOVEMENT_OUT

    product.stock_quantity = new_stock

    movement = StockMovement(
        product_id=product.id,
        movement_type=movement_type,
        quantity=abs(quantity_delta),
        previous_stock=previous,
        new_stock=new_stock,
        reason=reason,
        reference_type=reference_type,
        reference_id=reference_id,
        performed_by=performed_by,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def adjust_stock(
    product_id: int,
    quantity_delta: int,
    *,
    reason: str | None = None,
    movement_type: str | None = None,
    reference_type: str | None = None,
    reference_id: int | None = None,
    performed_by: int | None = None,
) -> StockMovement:
    """
    Apply a signed stock delta in its own transaction.

    Raises:
        ValidationError: bad delta or movement type
        NotFoundError: product missing or inactive
        InvalidAdjustmentError: zero delta, or stock would leave [0, MAX_QUANTITY]
    """
    if isinstance(quantity_delta, bool) or not isinstance(quantity_delta, int):
        raise ValidationError("quantity_delta must be an integer")
    if abs(quantity_delta) > MAX_QUANTITY:
        raise ValidationError(f"quantity_delta cannot exceed {MAX_QUANTITY} in either direction")
    if movement_type is not None and movement_type not in VALID_MOVEMENT_TYPES:
        raise ValidationError(f"movement_type must be one of: {', '.join(VALID_MOVEMENT_TYPES)}")
    if movement_type == MOVEMENT_IN and quantity_delta < 0:
        raise ValidationError("'in' movements require a positive quantity")
    if movement_type == MOVEMENT_OUT and quantity_delta > 0:
        raise ValidationError("'out' movements require a negative quantity")

    def _op():
        with unit_of_work():
            product = get_product_for_update(product_id)
            movement = apply_stock_delta(
                product,
                quantity_delta,
                reason=reason,
                movement_type=movement_type,
                reference_type=reference_type,
                reference_id=reference_id,
                performed_by=performed_by,
            )
        return movement

    movement = run_with_retry(_op)

    log_activity(
        performed_by,
        "adjust_stock",
        "product",
        product_id,
        f"Stock {movement.movement_type} {movement.quantity}: "
        f"{movement.previous_stock} -> {movement.new_stock} ({reason or 'no reason'})",
    )
    return movement


def restock(product_id: int, quantity: int, *, reason: str | None = None, performed_by: int | None = None) -> StockMovement:
    """Manual restock ('in' movement)."""
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("quantity must be a positive integer")
    if quantity > MAX_QUANTITY:
        raise ValidationError(f"quantity cannot exceed {MAX_QUANTITY}")
    return adjust_stock(
        product_id,
        quantity,
        reason=reason or "Restock",
        movement_type=MOVEMENT_IN,
        performed_by=performed_by,
    )


def list_movements(product_id: int, limit: int = 200) -> list[StockMovement]:
    if db.session.get(Product, product_id) is None:
        raise NotFoundError("Product not found")
    return (
        db.session.query(StockMovement)
        .filter_by(product_id=product_id)
        .order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .limit(limit)
        .all()
    )


def low_stock_report() -> dict:
    """Active products at or below their minimum level, split into low and out of stock."""
    low = (
        db.session.query(Product)
        .filter(
            Product.is_active.is_(True),
            Product.stock_quantity > 0,
            Product.stock_quantity <= Product.min_stock_level,
        )
        .order_by(Product.stock_quantity.asc(), Product.id.asc())
        .all()
    )
    out = (
        db.session.query(Product)
        .filter(Product.is_active.is_(True), Product.stock_quantity == 0)
        .order_by(Product.name.asc())
        .all()
    )
    return {
        "low_stock": [p.to_dict() for p in low],
        "out_of_stock": [p.to_dict() for p in out],
    }
