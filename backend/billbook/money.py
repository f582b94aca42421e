# Overview: Money and quantity primitives shared by services and routes.

"""
All money is carried as integer minor units (paise for INR) and formatted
only at the edges. Coercion helpers never raise: anything that does not look
like a number becomes 0, which keeps totals computable while a form is
half-filled.
"""

from __future__ import annotations

import random
import string
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

_SUFFIX_ALPHABET = string.digits + string.ascii_uppercase


def coerce_decimal(value) -> Decimal:
    """Best-effort Decimal coercion; non-numeric input degrades to 0."""
    if value is None or isinstance(value, bool):
        return Decimal(0)
    if isinstance(value, Decimal):
        return value if value.is_finite() else Decimal(0)
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return Decimal(0)
        return Decimal(str(value))
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return Decimal(0)
        try:
            parsed = Decimal(s)
        except InvalidOperation:
            return Decimal(0)
        return parsed if parsed.is_finite() else Decimal(0)
    return Decimal(0)


def coerce_int(value) -> int:
    """Best-effort integer coercion (half-up); non-numeric input degrades to 0."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return int(coerce_decimal(value).to_integral_value(rounding=ROUND_HALF_UP))


def coerce_cents(value) -> int:
    """Money flavour of coerce_int (amounts are already in minor units)."""
    return coerce_int(value)


def quantity_to_json(value):
    """Whole quantities serialize as int, fractional ones as float (2.5)."""
    if value is None:
        return None
    d = coerce_decimal(value)
    if d == d.to_integral_value():
        return int(d)
    return float(d)


def _group_indian(digits: str) -> str:
    # 1234567 -> 12,34,567
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    pairs = []
    while len(head) > 2:
        pairs.insert(0, head[-2:])
        head = head[:-2]
    if head:
        pairs.insert(0, head)
    return ",".join(pairs + [tail])


def format_currency(cents: int, symbol: str = "₹") -> str:
    """
    Format minor units for display using en-IN digit grouping.

    >>> format_currency(123456789)
    '₹12,34,567.89'
    """
    cents = coerce_cents(cents)
    sign = "-" if cents < 0 else ""
    whole, fraction = divmod(abs(cents), 100)
    return f"{sign}{symbol}{_group_indian(str(whole))}.{fraction:02d}"


def generate_invoice_number(prefix: str = "AB", today: date | None = None) -> str:
    """PREFIX-YYMMDD-XXXX with a random base-36 suffix."""
    today = today or date.today()
    suffix = "".join(random.choices(_SUFFIX_ALPHABET, k=4))
    return f"{prefix}-{today:%y%m%d}-{suffix}"
