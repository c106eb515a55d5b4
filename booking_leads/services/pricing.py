"""
Currency unit conversion.

Prices cross the API boundary in major units (dollars) and are stored as
integer minor units (cents).
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

Number = Union[int, float, Decimal]

MINOR_UNITS_PER_MAJOR = 100


def to_minor_units(amount: Number) -> int:
    """Convert a major-unit amount to integer minor units, rounding half up.

    The amount goes through its decimal string form so ``123.45`` becomes
    ``12345`` rather than inheriting binary float drift.
    """
    if isinstance(amount, bool):
        raise TypeError("amount must be a number")
    value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    cents = (value * MINOR_UNITS_PER_MAJOR).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return int(cents)


def from_minor_units(cents: int) -> float:
    return cents / MINOR_UNITS_PER_MAJOR
