# Overview: Integer minor-unit money helpers (display formatting and input coercion).

from __future__ import annotations

from flask import current_app, has_app_context

DEFAULT_CURRENCY_SYMBOL = "₦"

# Maximum single amount: 9,999,999.99 in major units
MAX_AMOUNT_CENTS = 999_999_999

# Largest sale subtotal: 999,999,999.99 in major units
MAX_SALE_TOTAL_CENTS = 99_999_999_999

# Largest stock level, stock delta or cart line quantity
MAX_QUANTITY = 1_000_000


def currency_symbol() -> str:
    if has_app_context():
        return current_app.config.get("CURRENCY_SYMBOL", DEFAULT_CURRENCY_SYMBOL)
    return DEFAULT_CURRENCY_SYMBOL


def format_cents(cents: int, symbol: str | None = None) -> str:
    """Format minor units for messages, e.g. 8000 -> '₦80.00'."""
    if symbol is None:
        symbol = currency_symbol()
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(int(cents)), 100)
    return f"{sign}{symbol}{whole}.{frac:02d}"


def coerce_cents(value, field: str, *, allow_zero: bool = True) -> int:
    """
    Strict integer-cents coercion for API input.

    Rejects floats, booleans, decimals-in-strings and negatives; amounts are
    always sent as integer minor units.
    """
    from .errors import ValidationError

    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be an integer amount in cents")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer amount in cents, not a decimal")
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped or not stripped.lstrip("-").isdigit():
            raise ValidationError(f"{field} must be an integer amount in cents")
        value = int(stripped)
    if not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer amount in cents")

    if value < 0:
        raise ValidationError(f"{field} must be >= 0")
    if value == 0 and not allow_zero:
        raise ValidationError(f"{field} must be > 0")
    if value > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT_CENTS}")
    return value
