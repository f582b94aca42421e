# Overview: Pure invoice arithmetic; line totals, grand totals and payment status.

"""
Invoice arithmetic (authoritative)

Totals:
- Line total = max(quantity, 0) * max(rate_cents, 0), rounded half-up to whole
  cents; quantities may be fractional, non-numeric input counts as 0.
- Grand total = sum of line totals for the invoice itself. It never includes
  the balance carried forward from an earlier invoice.
- Totals are recomputed from the lines on every write; a stored total is
  never trusted over its inputs.

Amount owed:
- total_due = grand_total + previous_outstanding
- balance_due = total_due - amount_paid (not clamped; negative means credit)

Payment status precedence:
1. amount_paid <= 0 -> Unpaid, or Overdue when something is owed and the due
   date has passed.
2. amount_paid >= total_due -> Paid
3. otherwise -> Partial

A part-paid invoice past its due date is Partial, not Overdue. A zero-due
invoice with nothing paid is Unpaid.
"""

from __future__ import annotations

import enum
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, Mapping

from ..money import coerce_decimal, coerce_int
from ..time_utils import as_utc_naive, start_of_day


class PaymentStatus(str, enum.Enum):
    """Derived payment status of an invoice."""
    PAID = "Paid"
    PARTIAL = "Partial"
    UNPAID = "Unpaid"
    OVERDUE = "Overdue"


def _field(item: Any, name: str):
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def line_total_cents(quantity, rate_cents) -> int:
    """Quantity may be fractional (2.5 sqft); the product rounds half-up to whole cents."""
    total = max(coerce_decimal(quantity), Decimal(0)) * max(coerce_int(rate_cents), 0)
    return int(total.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def calculate_totals(items: Iterable[Any]) -> tuple[list[int], int]:
    """
    Compute per-line totals and the grand total for an ordered item sequence.

    Items may be dicts or objects exposing quantity and rate_cents.
    """
    line_totals = [
        line_total_cents(_field(item, "quantity"), _field(item, "rate_cents"))
        for item in items
    ]
    return line_totals, sum(line_totals)


def total_due_cents(grand_total_cents, previous_outstanding_cents) -> int:
    return coerce_int(grand_total_cents) + coerce_int(previous_outstanding_cents)


def balance_due_cents(grand_total_cents, previous_outstanding_cents, amount_paid_cents) -> int:
    return total_due_cents(grand_total_cents, previous_outstanding_cents) - coerce_int(amount_paid_cents)


def _as_instant(value: date | datetime | None) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return as_utc_naive(value)
    # A bare date means midnight UTC of that day
    return start_of_day(value)


def resolve_status(
    amount_paid_cents,
    total_due,
    due_date: date | datetime | None,
    now: datetime,
) -> PaymentStatus:
    """
    Derive the payment status. Total and deterministic for any input.

    Args:
        amount_paid_cents: cumulative amount paid
        total_due: grand_total + previous_outstanding
        due_date: date (midnight UTC) or UTC-naive datetime; None is never overdue
        now: UTC-naive reference instant
    """
    paid = coerce_int(amount_paid_cents)
    due = coerce_int(total_due)

    if paid <= 0:
        due_at = _as_instant(due_date)
        if due > paid and due_at is not None and due_at < now:
            return PaymentStatus.OVERDUE
        return PaymentStatus.UNPAID

    if paid >= due:
        return PaymentStatus.PAID

    return PaymentStatus.PARTIAL
