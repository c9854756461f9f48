"""Fixed-point money helpers.

Balances and amounts are persisted as integer cents. Decimal is the only
type that crosses the Python API.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

CENT = Decimal("0.01")

# Cents are stored in a signed 64-bit INTEGER column.
MAX_CENTS = 2 ** 63 - 1


def to_cents(amount: Union[Decimal, int, str]) -> int:
    value = Decimal(str(amount))
    if not value.is_finite():
        raise ValueError(f"Amount must be finite, got {amount}")
    if value != value.quantize(CENT, rounding=ROUND_HALF_UP):
        raise ValueError(f"Amount {amount} has more than two decimal places")
    cents = int(value * 100)
    if not -MAX_CENTS <= cents <= MAX_CENTS:
        raise ValueError(f"Amount {amount} is out of range")
    return cents


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)


def positive_cents(amount: Union[Decimal, int, str]) -> int:
    cents = to_cents(amount)
    if cents <= 0:
        raise ValueError(f"Amount must be positive, got {amount}")
    return cents
