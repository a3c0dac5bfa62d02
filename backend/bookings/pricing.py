from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

MIN_DEPOSIT_PERCENT = 10
MAX_DEPOSIT_PERCENT = 50

_WHOLE = Decimal("1")
_CENTS = Decimal("0.01")


def to_decimal(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    if isinstance(value, Decimal):
        return value
    try:
        # str() keeps floats like 0.1 from dragging binary noise along
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def calculate_deposit_amount(total_price: Decimal, deposit_percent: int) -> Decimal:
    """
    Deposit owed up front, rounded half-up to whole major units.

    1000 at 30% -> 300; 999.99 at 25% -> 250.
    """
    raw = Decimal(deposit_percent) / Decimal(100) * total_price
    return raw.quantize(_WHOLE, rounding=ROUND_HALF_UP).quantize(_CENTS)


def remaining_amount(total_price: Decimal, deposit_amount: Decimal | None) -> Decimal:
    remainder = total_price - (deposit_amount or Decimal("0"))
    return max(Decimal("0.00"), remainder.quantize(_CENTS, rounding=ROUND_HALF_UP))


def to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).quantize(_WHOLE, rounding=ROUND_HALF_UP))


def from_minor_units(amount_cents: int) -> Decimal:
    return (Decimal(amount_cents) / 100).quantize(_CENTS)
