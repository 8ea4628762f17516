"""Money helpers shared by every calculator."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

ZERO = Decimal("0")
CENT = Decimal("0.01")


def to_decimal(value: Decimal | int | float | str | None) -> Decimal:
    """Coerce a stored or literal amount to Decimal; None becomes zero."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_cents(value: Decimal | int | float | str | None) -> Decimal:
    """Round to the cent, half up. Applied at every tax line."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def sum_cents(values: Iterable[Decimal | int | float | str | None]) -> Decimal:
    return round_cents(sum((to_decimal(v) for v in values), ZERO))


def capped_taxable(wages: Decimal, cap: Decimal, ytd_before: Decimal) -> Decimal:
    """Portion of ``wages`` still under an annual wage base."""
    remaining = cap - ytd_before
    if remaining <= 0:
        return ZERO
    return min(wages, remaining)


def format_amount(value: Decimal) -> str:
    """Two-decimal string; never renders negative zero."""
    text = f"{round_cents(value):.2f}"
    return "0.00" if text == "-0.00" else text
