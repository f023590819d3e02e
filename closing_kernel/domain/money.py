"""
Money -- integer amounts in the local currency's smallest unit.

Responsibility:
    Every amount the engine posts or displays is a whole number of the
    local currency unit.  This module is the single place where fractional
    intermediate values (cost / life, foreign amount x rate) are rounded
    and where amounts are formatted for display.

Invariants enforced:
    - Floats are rejected; intermediate arithmetic uses Decimal.
    - Rounding is half-up toward positive infinity (``floor(x + 0.5)``),
      so ``-2.5`` rounds to ``-2`` and ``2.5`` rounds to ``3``.
"""

from __future__ import annotations

from decimal import ROUND_FLOOR, Decimal, InvalidOperation

_HALF = Decimal("0.5")


def to_decimal(value: Decimal | int | str) -> Decimal:
    """
    Convert a monetary or rate input to Decimal.

    Raises:
        TypeError: If ``value`` is a float or other unsupported type.
        ValueError: If ``value`` is a string that is not a number.
    """
    if isinstance(value, bool):
        raise TypeError("bool is not a monetary value")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, str):
        try:
            return Decimal(value.strip())
        except InvalidOperation as e:
            raise ValueError(f"Invalid amount: {value!r}") from e
    raise TypeError(f"amount must be Decimal, int or str, got {type(value).__name__}")


def round_amount(value: Decimal | int | str) -> int:
    """Round to a whole currency unit (half toward +infinity)."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    dec = to_decimal(value)
    return int((dec + _HALF).to_integral_value(rounding=ROUND_FLOOR))


def format_amount(amount: Decimal | int | str) -> str:
    """
    Render an amount with vi-VN digit grouping.

    >>> format_amount(1200000)
    '1.200.000'
    >>> format_amount(-1500)
    '-1.500'
    """
    value = round_amount(amount)
    grouped = f"{abs(value):,}".replace(",", ".")
    return f"-{grouped}" if value < 0 else grouped
