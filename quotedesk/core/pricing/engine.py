"""Pricing engine: currency/quantity parsing and option totals.

Totals are pure functions of the line-item sequence: recomputing from the same
input always yields the same result.  Only ``item`` rows are priced; ``header``
rows are labels and never interrupt the running sums.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from quotedesk.core.pricing.schemas import HeaderLine, ItemLine

CENTS = Decimal("0.01")
ZERO = Decimal("0")

_NON_NUMERIC = re.compile(r"[^0-9.]")
_LEADING_DECIMAL = re.compile(r"\d*(?:\.\d*)?")
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


@dataclass(frozen=True)
class OptionTotals:
    total_mrc: Decimal
    total_nrc: Decimal


def parse_currency(value: Any) -> Decimal:
    """``"$1,250.50"`` -> 1250.50.  Anything unreadable or negative is 0."""
    if value is None or isinstance(value, bool):
        return ZERO

    if isinstance(value, (int, float, Decimal)):
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            return ZERO
        if not amount.is_finite() or amount < 0:
            return ZERO
        return amount

    cleaned = _NON_NUMERIC.sub("", str(value))
    number = _LEADING_DECIMAL.match(cleaned).group(0)
    if number in ("", "."):
        return ZERO
    if number.endswith("."):
        number = number[:-1]
    if number.startswith("."):
        number = "0" + number
    return Decimal(number)


def parse_quantity(value: Any) -> int:
    """Whole units, at least 1."""
    if value is None or isinstance(value, bool):
        return 1

    if isinstance(value, (int, float, Decimal)):
        try:
            qty = int(value)
        except (ValueError, OverflowError, InvalidOperation):
            return 1
    else:
        match = _LEADING_INT.match(str(value))
        if not match:
            return 1
        qty = int(match.group(1))

    return qty if qty >= 1 else 1


def compute_totals(line_items: Iterable[HeaderLine | ItemLine | Mapping[str, Any]]) -> OptionTotals:
    from quotedesk.core.pricing.schemas import ItemLine, parse_line_item

    total_mrc = ZERO
    total_nrc = ZERO
    for raw in line_items:
        item = parse_line_item(raw)
        if not isinstance(item, ItemLine):
            continue
        total_mrc += item.qty * item.mrc
        total_nrc += item.qty * item.nrc

    return OptionTotals(
        total_mrc=total_mrc.quantize(CENTS, rounding=ROUND_HALF_UP),
        total_nrc=total_nrc.quantize(CENTS, rounding=ROUND_HALF_UP),
    )


def format_money(amount: Decimal | float | int) -> str:
    return f"{Decimal(str(amount)).quantize(CENTS, rounding=ROUND_HALF_UP):,.2f}"
