# Overview: Typed business errors shared by services and routes.

"""
Ledger error taxonomy.

Every error raised by the sale orchestrator, stock engine and credit ledger
is a LedgerError. Routes translate them to JSON using status_code and
to_dict(); anything else is an internal error.
"""

from __future__ import annotations

from .money import format_cents


class LedgerError(Exception):
    """Base class for expected business failures."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details}


class ValidationError(LedgerError, ValueError):
    """400-level input problem."""


class NotFoundError(LedgerError):
    """Referenced product/customer/sale is missing or inactive."""
    status_code = 404


class ConflictError(LedgerError, ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""
    status_code = 409


class InsufficientStockError(LedgerError):
    def __init__(self, product_id: int, product_name: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for {product_name}. Available: {available}",
            details={
                "product_id": product_id,
                "product_name": product_name,
                "available": available,
                "requested": requested,
            },
        )
        self.product_name = product_name
        self.available = available


class CreditLimitExceededError(LedgerError):
    def __init__(self, credit_limit_cents: int, outstanding_cents: int, attempted_cents: int):
        super().__init__(
            "Credit limit exceeded. "
            f"Credit limit: {format_cents(credit_limit_cents)}, "
            f"Outstanding: {format_cents(outstanding_cents)}, "
            f"New purchase: {format_cents(attempted_cents)}",
            details={
                "credit_limit_cents": credit_limit_cents,
                "outstanding_cents": outstanding_cents,
                "attempted_cents": attempted_cents,
            },
        )
        self.credit_limit_cents = credit_limit_cents
        self.outstanding_cents = outstanding_cents
        self.attempted_cents = attempted_cents


class OverpaymentError(LedgerError):
    def __init__(self, remaining_cents: int, attempted_cents: int):
        super().__init__(
            "Payment amount exceeds remaining balance. "
            f"Remaining: {format_cents(remaining_cents)}",
            details={
                "remaining_cents": remaining_cents,
                "attempted_cents": attempted_cents,
            },
        )
        self.remaining_cents = remaining_cents


class InvalidAdjustmentError(LedgerError):
    def __init__(self, message: str, *, product_id: int, current_stock: int, quantity_delta: int):
        super().__init__(
            message,
            details={
                "product_id": product_id,
                "current_stock": current_stock,
                "quantity_delta": quantity_delta,
            },
        )
