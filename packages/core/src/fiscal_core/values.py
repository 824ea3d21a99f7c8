"""Locale-aware number parsing and rounding.

Amounts in the source documents follow the Brazilian convention
("1.234,56"), but spreadsheet exports sometimes carry plain numbers or
US-style strings. Everything here is best effort: unparseable input is
worth zero, never an exception.
"""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Union

Number = Union[int, float, Decimal]

ZERO = Decimal("0")
CENT = Decimal("0.01")
EPSILON = Decimal("1e-10")

_CURRENCY_RE = re.compile(r"R\$|US\$|\$|BRL", re.IGNORECASE)
_SPACE_RE = re.compile(r"\s+")


def to_decimal(value: Number) -> Decimal:
    """Convert a native number to Decimal without float artifacts."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def parse_value(value: Any) -> Decimal:
    """Parse a monetary string into a Decimal.

    Rules:
        - numbers pass through unchanged
        - a leading currency symbol and all whitespace are stripped
        - "." is a thousands separator only when a "," follows it
        - when "," comes before "." the commas are thousands separators
        - a lone "," is the decimal marker
        - "-", empty and unparseable input are 0

    Example:
        >>> parse_value("R$ 1.234,56")
        Decimal('1234.56')
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, (int, float, Decimal)):
        try:
            result = to_decimal(value)
        except (InvalidOperation, ValueError):
            return ZERO
        return result if result.is_finite() else ZERO

    text = _SPACE_RE.sub("", _CURRENCY_RE.sub("", str(value)))
    if text in ("", "-", "--"):
        return ZERO

    last_comma = text.rfind(",")
    last_dot = text.rfind(".")
    if last_comma != -1 and last_dot != -1:
        if last_dot < last_comma:
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif last_comma != -1:
        text = text.replace(",", ".")
        if text.count(".") > 1:
            head, _, tail = text.rpartition(".")
            text = head.replace(".", "") + "." + tail
    elif text.count(".") > 1:
        text = text.replace(".", "")

    try:
        result = Decimal(text)
    except InvalidOperation:
        return ZERO
    return result if result.is_finite() else ZERO


def parse_percentage(value: Any) -> Decimal:
    """Parse a percentage cell.

    A trailing "%" means the figure is in percent and is divided by 100
    ("1,5%" -> 0.015). Bare numbers are returned as given; callers decide
    whether they hold a fraction or a percent.
    """
    if isinstance(value, str) and value.strip().endswith("%"):
        return parse_value(value.strip()[:-1]) / 100
    return parse_value(value)


def round2(value: Number) -> Decimal:
    """Round to cents, half away from zero.

    Magnitudes below 1e-10 snap to exactly zero.
    """
    amount = to_decimal(value)
    if abs(amount) < EPSILON:
        return Decimal("0.00")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


__all__ = [
    "ZERO",
    "parse_percentage",
    "parse_value",
    "round2",
    "to_decimal",
]
