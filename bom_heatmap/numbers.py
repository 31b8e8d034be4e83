"""
numbers.py: lenient numeric parsing and display formatting for BOM values.

Parsing never raises: anything that is not a number becomes None, the
absent-value marker that the rest of the package checks for. Infinite values
are returned as-is so row validation can report them; sanitizing clears them.
"""

from __future__ import annotations

import math
import re
from typing import Any, Optional

PLACEHOLDER = "—"
CURRENCY_SYMBOL = "₹"
MAX_SAFE_INTEGER = 2**53 - 1

# Longest leading decimal literal, the way a lenient float parser reads "12.5kg".
_LEADING_NUMBER = re.compile(r"[+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def parse_numeric(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            number = math.inf if value > 0 else -math.inf
        return None if math.isnan(number) else number
    text = str(value)
    if not text.strip():
        return None
    match = _LEADING_NUMBER.match(text.replace(",", "").lstrip())
    if not match:
        return None
    try:
        parsed = float(match.group(0))
    except ValueError:
        return None
    return None if math.isnan(parsed) else parsed


def format_plain_number(value: float) -> str:
    """Shortest text for a number: ``5`` for 5.0, ``2.5`` for 2.5."""
    if is_finite_number(value) and float(value).is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(float(value))


def _group_indian(digits: str) -> str:
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups: list[str] = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])


def format_currency_value(value: Optional[float]) -> str:
    """Two-decimal amount with lakh/crore grouping (``12,34,567.89``)."""
    if value is None:
        return PLACEHOLDER
    rendered = f"{abs(float(value)):.2f}"
    whole, fraction = rendered.split(".")
    sign = "-" if value < 0 and rendered.strip("0.") else ""
    return f"{sign}{_group_indian(whole)}.{fraction}"


def format_currency(value: Optional[float]) -> str:
    if value is None:
        return PLACEHOLDER
    return f"{CURRENCY_SYMBOL} {format_currency_value(value)}"


def format_quantity(value: Optional[float]) -> str:
    if value is None:
        return PLACEHOLDER
    rendered = f"{float(value):,.3f}"
    return rendered.rstrip("0").rstrip(".")


def calculate_percentage_diff(supplier_rate: Optional[float], estimated_rate: Optional[float]) -> Optional[float]:
    if supplier_rate is None or estimated_rate is None or estimated_rate == 0:
        return None
    return (supplier_rate - estimated_rate) / estimated_rate * 100


def format_percentage_diff(diff: Optional[float]) -> str:
    if diff is None:
        return PLACEHOLDER
    sign = "+" if diff >= 0 else ""
    return f"{sign}{diff:.1f}%"


def is_valid_numeric_range(
    value: Optional[float],
    minimum: float = 0,
    maximum: float = MAX_SAFE_INTEGER,
) -> bool:
    if value is None:
        return True
    if not is_finite_number(value):
        return False
    return minimum <= value <= maximum


def safe_divide(numerator: Optional[float], denominator: Optional[float]) -> Optional[float]:
    if numerator is None or denominator is None:
        return None
    if not is_finite_number(numerator) or not is_finite_number(denominator) or denominator == 0:
        return None
    result = numerator / denominator
    return result if math.isfinite(result) else None
