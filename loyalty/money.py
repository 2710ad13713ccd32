"""
Conversions between point amounts and integer cents.

Amounts are stored and summed as integer cents so folds and live balance
reads are exact. Decimal amounts only exist at the edges: JSON request and
response bodies, and the accrual service payload.
"""

from decimal import Decimal, ROUND_HALF_EVEN

CENT = Decimal("0.01")


def to_cents(amount: Decimal | float | int | str) -> int:
    """Convert a point amount to integer cents, rounding half to even."""
    value = Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_EVEN)
    return int(value * 100)


def from_cents(cents: int) -> Decimal:
    """Convert integer cents back to a two-place Decimal amount."""
    return (Decimal(cents) / 100).quantize(CENT)
