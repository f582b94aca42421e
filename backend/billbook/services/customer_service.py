# Overview: Customer-level reads over invoices; carried balances and running ledgers.

"""
Customer views are keyed by phone number (there is no customer table).

Carry-forward:
- The latest invoice is the last one by (invoice_date, id).
- Its own outstanding, previous_outstanding + grand_total - amount_paid, is
  what a new invoice may carry as previous_outstanding_cents.
- Fetching never attaches anything; the operator decides.

Running ledger:
- Debit per invoice: previous_outstanding + grand_total, at the start of
  invoice_date.
- Credit per payment: amount, at paid_at (normalized to UTC-naive).
- Sorted by time (debits first on ties, then insertion order); the balance
  is a cumulative sum and always ties out to debits - credits.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Invoice
from ..validation import ValidationError
from billbook.time_utils import as_utc_naive, start_of_day, to_iso_date, to_utc_z, utcnow


def _normalize_phone(customer_phone: str | None) -> str:
    phone = (customer_phone or "").strip()
    if not phone:
        raise ValidationError("customer_phone is required")
    return phone


def invoice_outstanding_cents(invoice: Invoice) -> int:
    """What is still owed on this invoice, including what it carried in."""
    return invoice.balance_due_cents


def customer_invoices(customer_phone: str) -> list[Invoice]:
    """Invoices for a phone in chronological order (invoice_date, then insertion)."""
    phone = _normalize_phone(customer_phone)
    return (
        db.session.query(Invoice)
        .filter(Invoice.customer_phone == phone)
        .order_by(Invoice.invoice_date.asc(), Invoice.id.asc())
        .all()
    )


def get_latest_invoice(customer_phone: str) -> Invoice | None:
    phone = _normalize_phone(customer_phone)
    return (
        db.session.query(Invoice)
        .filter(Invoice.customer_phone == phone)
        .order_by(Invoice.invoice_date.desc(), Invoice.id.desc())
        .first()
    )


def pending_snapshot(invoice: Invoice, now=None) -> dict:
    """Point-in-time PaymentHistory entry for an earlier invoice."""
    return {
        "invoice_id": invoice.id,
        "invoice_number": invoice.invoice_number,
        "amount_cents": invoice_outstanding_cents(invoice),
        "date": to_iso_date(invoice.invoice_date),
        "status": invoice.derive_status(now).value,
    }


def get_carry_forward(customer_phone: str, now=None) -> dict:
    """
    Balance a new invoice for this customer may carry forward.

    Returns:
        Dict with latest_invoice (or None), previous_outstanding_cents and
        previous_pending_amounts (snapshots of every earlier invoice that
        still has a non-zero outstanding).
    """
    now = now or utcnow()
    invoices = customer_invoices(customer_phone)
    latest = invoices[-1] if invoices else None

    return {
        "customer_phone": _normalize_phone(customer_phone),
        "latest_invoice": latest.to_dict(now=now) if latest else None,
        "previous_outstanding_cents": invoice_outstanding_cents(latest) if latest else 0,
        "previous_pending_amounts": [
            pending_snapshot(inv, now)
            for inv in invoices
            if invoice_outstanding_cents(inv) != 0
        ],
    }


def list_customer_invoices(customer_phone: str, now=None) -> list[dict]:
    """Chronological invoices annotated with outstanding_at_time_cents."""
    now = now or utcnow()
    result = []
    for invoice in customer_invoices(customer_phone):
        data = invoice.to_dict(now=now)
        data["outstanding_at_time_cents"] = invoice_outstanding_cents(invoice)
        result.append(data)
    return result


def build_customer_ledger(customer_phone: str) -> dict:
    """Chronological debits and credits with a running balance."""
    phone = _normalize_phone(customer_phone)

    events = []
    for invoice in customer_invoices(phone):
        events.append((
            start_of_day(invoice.invoice_date),
            0,
            invoice.id,
            {
                "kind": "invoice",
                "invoice_id": invoice.id,
                "invoice_number": invoice.invoice_number,
                "description": f"Invoice {invoice.invoice_number}",
                "debit_cents": invoice.total_due_cents,
                "credit_cents": 0,
            },
        ))
        for payment in invoice.payments:
            events.append((
                as_utc_naive(payment.paid_at),
                1,
                payment.id,
                {
                    "kind": "payment",
                    "invoice_id": invoice.id,
                    "invoice_number": invoice.invoice_number,
                    "payment_id": payment.id,
                    "description": payment.notes or f"Payment on {invoice.invoice_number}",
                    "debit_cents": 0,
                    "credit_cents": payment.amount_cents,
                },
            ))

    events.sort(key=lambda e: (e[0], e[1], e[2]))

    entries = []
    running = 0
    total_debits = 0
    total_credits = 0
    for timestamp, _, _, entry in events:
        total_debits += entry["debit_cents"]
        total_credits += entry["credit_cents"]
        running += entry["debit_cents"] - entry["credit_cents"]
        entries.append({**entry, "timestamp": to_utc_z(timestamp), "running_balance_cents": running})

    return {
        "customer_phone": phone,
        "entries": entries,
        "total_debits_cents": total_debits,
        "total_credits_cents": total_credits,
        "final_balance_cents": running,
    }
