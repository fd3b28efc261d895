"""Fixed-point currency helpers."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Any) -> Decimal:
    """Convert a store value (float, int, str, None) to a cent-quantized Decimal.

    Floats go through str() so 19.99 stays 19.99 rather than its binary expansion.

    Raises:
        InvalidOperation: If the value is not numeric.
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        amount = value
    else:
        amount = Decimal(str(value))
    if not amount.is_finite():
        raise InvalidOperation(f"Non-finite amount: {value}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(amount: Decimal) -> int:
    """Convert a money amount to integer cents."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    """Convert integer cents to a money amount."""
    return (Decimal(cents) / 100).quantize(CENT, rounding=ROUND_HALF_UP)


def format_usd(amount: Decimal) -> str:
    """Format an amount for notes, e.g. $1,234.50."""
    return f"${amount:,.2f}"
