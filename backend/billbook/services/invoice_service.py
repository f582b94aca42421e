# Overview: Service-layer operations for invoices; creation with stock decrement, edits and payments.

"""
Invoice Service

WHY: Invoices are the only place where money and stock move together.
Everything that touches totals, payments or stock on behalf of an invoice
goes through here so the invariants below hold no matter which route or
CLI command made the change.

INVARIANTS:
- grand_total_cents == sum(item.total_cents) and item.total_cents ==
  quantity * rate_cents rounded half-up to whole cents; both recomputed on
  every create/edit.
- amount_paid_cents == sum(payment.amount_cents) for the invoice.
- payment_status is re-derived on every write (see calculations.resolve_status).
- Invoice creation and every stock decrement it causes commit together or
  not at all.

NOT TRANSACTIONAL:
- Payment recording and edits are plain last-writer-wins updates.
- previous_outstanding_cents is accepted as supplied by the caller; it is not
  re-checked against the customer's current history.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..models import Invoice, InvoiceItem, InvoicePayment, Stock
from ..money import coerce_decimal, generate_invoice_number
from ..validation import NotFoundError, ValidationError
from billbook.time_utils import utcnow
from .calculations import calculate_totals


class InvoiceError(Exception):
    """Raised for invoice operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class InsufficientStockError(InvoiceError):
    """A line asks for more than the referenced stock holds."""


class StockNotFoundError(InvoiceError):
    """A line references a stock record that no longer exists."""


INVOICE_HEADER_FIELDS = {
    "invoice_number",
    "invoice_date",
    "due_date",
    "customer_name",
    "customer_address",
    "customer_phone",
    "customer_gst",
    "previous_outstanding_cents",
    "previous_pending_amounts",
    "logo_url",
    "note",
}

ITEM_FIELDS = {"name", "description", "quantity", "rate_cents", "stock_id", "available_quantity"}

INITIAL_PAYMENT_NOTE = "Initial payment"


def _build_items(item_patches: list[dict]) -> list[InvoiceItem]:
    items = []
    for position, patch in enumerate(item_patches):
        item = InvoiceItem(position=position, total_cents=0)
        for k, v in patch.items():
            if k in ITEM_FIELDS:
                setattr(item, k, v)
        items.append(item)
    return items


def _recalculate(invoice: Invoice) -> None:
    """Recompute line totals, grand total and the carried pending amount."""
    line_totals, grand_total = calculate_totals(invoice.items)
    for item, total in zip(invoice.items, line_totals):
        item.total_cents = total
    invoice.grand_total_cents = grand_total
    invoice.previous_outstanding_cents = invoice.previous_outstanding_cents or 0
    invoice.total_pending_amount_cents = invoice.previous_outstanding_cents


def _decrement_stock(item: InvoiceItem) -> None:
    """
    Take item.quantity out of the referenced stock row.

    One conditional UPDATE per line: the row only changes when it still holds
    enough, so the check and the write cannot be split by another request.

    Stock is counted in whole units; a fractional line cannot reference it.
    """
    quantity = coerce_decimal(item.quantity)
    if quantity != quantity.to_integral_value():
        raise ValidationError(f"Line '{item.name}' references stock but has a fractional quantity")
    quantity = int(quantity)

    result = db.session.execute(
        update(Stock)
        .where(Stock.id == item.stock_id, Stock.quantity >= quantity)
        .values(quantity=Stock.quantity - quantity, updated_at=utcnow())
    )
    if result.rowcount == 1:
        current_app.logger.info(
            "Reserved %s units of stock %s for line %r", quantity, item.stock_id, item.name
        )
        return

    # Reload so details carry the live quantity, not an identity-map copy
    stock = db.session.get(Stock, item.stock_id, populate_existing=True)
    if stock is None:
        raise StockNotFoundError(
            f"Stock item not found for line '{item.name}'",
            details={"stock_id": item.stock_id, "item": item.name},
        )
    raise InsufficientStockError(
        f"Insufficient stock for '{stock.name}'",
        details={
            "stock_id": stock.id,
            "item": item.name,
            "requested_quantity": quantity,
            "available_quantity": stock.quantity,
        },
    )


def _append_payment(invoice: Invoice, amount_cents: int, notes: str | None, now) -> InvoicePayment:
    payment = InvoicePayment(amount_cents=amount_cents, paid_at=now, notes=notes)
    invoice.payments.append(payment)
    invoice.amount_paid_cents = (invoice.amount_paid_cents or 0) + amount_cents
    return payment


def list_invoices() -> list[Invoice]:
    """All invoices, newest invoice_date first."""
    return (
        db.session.query(Invoice)
        .order_by(Invoice.invoice_date.desc(), Invoice.id.desc())
        .all()
    )


def get_invoice(invoice_id: int) -> Invoice | None:
    return db.session.get(Invoice, invoice_id)


def create_invoice(*, patch: dict, items: list[dict], now=None) -> Invoice:
    """
    Create an invoice and decrement stock for every line carrying a stock_id.

    Args:
        patch: validated header fields; may include amount_paid_cents, which is
            recorded as the first payment
        items: validated item dicts, in display order
        now: reference instant for status and the initial payment (UTC-naive)

    Returns:
        The committed Invoice

    Raises:
        ValidationError: no items
        StockNotFoundError / InsufficientStockError: a stock line cannot be
            satisfied; nothing is persisted
    """
    if not items:
        raise ValidationError("Invoice must have at least one item")

    now = now or utcnow()

    invoice = Invoice(previous_pending_amounts=[], previous_outstanding_cents=0, amount_paid_cents=0)
    for k, v in patch.items():
        if k in INVOICE_HEADER_FIELDS:
            setattr(invoice, k, v)
    if not invoice.invoice_number:
        invoice.invoice_number = generate_invoice_number(
            prefix=current_app.config.get("INVOICE_NUMBER_PREFIX", "AB"),
            today=now.date(),
        )
    if invoice.previous_pending_amounts is None:
        invoice.previous_pending_amounts = []

    invoice.items = _build_items(items)
    _recalculate(invoice)

    initial_paid = patch.get("amount_paid_cents") or 0

    try:
        for item in invoice.items:
            if item.stock_id is not None:
                _decrement_stock(item)

        db.session.add(invoice)
        if initial_paid > 0:
            _append_payment(invoice, initial_paid, INITIAL_PAYMENT_NOTE, now)
        invoice.refresh_status(now)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "Created invoice %s (%s) for %r: total=%s carried=%s paid=%s",
        invoice.id,
        invoice.invoice_number,
        invoice.customer_phone,
        invoice.grand_total_cents,
        invoice.previous_outstanding_cents,
        invoice.amount_paid_cents,
    )
    return invoice


def update_invoice(invoice_id: int, *, patch: dict, items: list[dict] | None = None, now=None) -> Invoice | None:
    """
    Full-document edit of an invoice.

    Items, when supplied, replace the existing lines. Stock is not adjusted
    on edit. Returns None if the invoice does not exist.
    """
    invoice = db.session.get(Invoice, invoice_id)
    if invoice is None:
        return None

    if items is not None and not items:
        raise ValidationError("Invoice must have at least one item")

    # Compare against stored values when only one of the dates is edited
    invoice_date = patch.get("invoice_date", invoice.invoice_date)
    due_date = patch.get("due_date", invoice.due_date)
    if invoice_date and due_date and due_date < invoice_date:
        raise ValidationError("due_date cannot be before invoice_date")

    for k, v in patch.items():
        if k in INVOICE_HEADER_FIELDS:
            setattr(invoice, k, v)
    if invoice.previous_pending_amounts is None:
        invoice.previous_pending_amounts = []

    if items is not None:
        invoice.items = _build_items(items)

    _recalculate(invoice)
    invoice.refresh_status(now)
    invoice.updated_at = utcnow()
    db.session.commit()
    return invoice


def delete_invoice(invoice_id: int) -> bool:
    """Permanently delete an invoice. Decremented stock is not restored."""
    invoice = db.session.get(Invoice, invoice_id)
    if invoice is None:
        return False
    db.session.delete(invoice)
    db.session.commit()
    current_app.logger.info("Deleted invoice %s (%s)", invoice_id, invoice.invoice_number)
    return True


def record_payment(invoice_id: int, amount_cents, notes: str | None = None, now=None) -> Invoice:
    """
    Append a payment to an invoice and refresh its aggregates.

    Raises:
        ValidationError: amount is not a positive integer (nothing is changed)
        NotFoundError: invoice does not exist
    """
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int):
        raise ValidationError("amount_cents must be an integer")
    if amount_cents <= 0:
        raise ValidationError("Payment amount must be positive")

    invoice = db.session.get(Invoice, invoice_id)
    if invoice is None:
        raise NotFoundError("Invoice not found")

    now = now or utcnow()
    _append_payment(invoice, amount_cents, notes, now)
    invoice.refresh_status(now)
    invoice.updated_at = utcnow()
    db.session.commit()

    current_app.logger.info(
        "Recorded payment of %s on invoice %s; balance now %s (%s)",
        amount_cents,
        invoice.id,
        invoice.balance_due_cents,
        invoice.payment_status,
    )
    return invoice


def list_payments(invoice_id: int) -> list[InvoicePayment]:
    invoice = db.session.get(Invoice, invoice_id)
    if invoice is None:
        raise NotFoundError("Invoice not found")
    return list(invoice.payments)


def refresh_all_statuses(now=None) -> int:
    """Re-derive the cached status of every invoice; returns how many changed."""
    now = now or utcnow()
    changed = 0
    for invoice in db.session.query(Invoice).all():
        if invoice.refresh_status(now):
            changed += 1
    db.session.commit()
    return changed
