"""
Domain: Money arithmetic (single currency).

All amounts are Decimals quantized to two places with half-up rounding.
Accumulation rounds after every step so long runs of small payments
never drift.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Any) -> Decimal:
    """
    Coerce an int, float, str or Decimal into a two-decimal amount.

    Floats go through str() first so 0.1 becomes Decimal("0.10"), not
    the binary expansion.
    """

    if isinstance(value, bool):
        raise ValueError(f"Invalid monetary amount: {value!r}")
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"Invalid monetary amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Invalid monetary amount: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def add_money(total: Decimal, amount: Any) -> Decimal:
    return (total + to_money(amount)).quantize(CENT, rounding=ROUND_HALF_UP)


def sum_money(amounts: Iterable[Any]) -> Decimal:
    total = ZERO
    for amount in amounts:
        total = add_money(total, amount)
    return total
