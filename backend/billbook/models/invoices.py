from __future__ import annotations

from ..extensions import db
from ..money import quantity_to_json
from ..services import calculations
from ..services.calculations import PaymentStatus
from billbook.time_utils import to_utc_z, to_iso_date, utcnow


class Invoice(db.Model):
    """
    Customer invoice.

    MONEY: all amounts in minor units (paise).
    - grand_total_cents: sum of this invoice's lines only
    - previous_outstanding_cents: balance carried from the customer's latest
      earlier invoice, attached explicitly by the operator (0 otherwise)
    - amount_paid_cents: always equal to the sum of payments rows

    STATUS: payment_status is a cache of resolve_status(). It is rewritten on
    every write and recomputed on every read; clients never set it.

    SNAPSHOT vs CARRIED VALUE:
    - previous_pending_amounts is a frozen list of PaymentHistory dicts taken
      when the carried balance was fetched. It is never refreshed.
    - previous_outstanding_cents is the number actually owed on top of this
      invoice's own lines.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.Index("ix_invoices_customer_phone_date", "customer_phone", "invoice_date"),
        {"sqlite_autoincrement": True},
    )

    # Integer id doubles as insertion order (tie-break for same-day invoices)
    id = db.Column(db.Integer, primary_key=True)

    invoice_number = db.Column(db.String(64), nullable=False, index=True)
    invoice_date = db.Column(db.Date, nullable=False, index=True)
    due_date = db.Column(db.Date, nullable=False)

    customer_name = db.Column(db.String(255), nullable=False)
    customer_address = db.Column(db.Text, nullable=False)
    customer_phone = db.Column(db.String(32), nullable=True, index=True)
    customer_gst = db.Column(db.String(32), nullable=True)

    grand_total_cents = db.Column(db.Integer, nullable=False, default=0)
    amount_paid_cents = db.Column(db.Integer, nullable=False, default=0)
    previous_outstanding_cents = db.Column(db.Integer, nullable=False, default=0)
    total_pending_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    previous_pending_amounts = db.Column(db.JSON, nullable=False, default=list)

    payment_status = db.Column(db.String(16), nullable=False, default=PaymentStatus.UNPAID.value, index=True)

    logo_url = db.Column(db.Text, nullable=True)
    note = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    items = db.relationship(
        "InvoiceItem",
        backref="invoice",
        order_by="InvoiceItem.position",
        cascade="all, delete-orphan",
        lazy=True,
    )
    payments = db.relationship(
        "InvoicePayment",
        backref="invoice",
        order_by="InvoicePayment.id",
        cascade="all, delete-orphan",
        lazy=True,
    )

    def __repr__(self) -> str:
        return f"<Invoice id={self.id} number={self.invoice_number!r} phone={self.customer_phone!r}>"

    @property
    def total_due_cents(self) -> int:
        return calculations.total_due_cents(self.grand_total_cents, self.previous_outstanding_cents)

    @property
    def balance_due_cents(self) -> int:
        return calculations.balance_due_cents(self.grand_total_cents, self.previous_outstanding_cents, self.amount_paid_cents)

    def derive_status(self, now=None) -> PaymentStatus:
        return calculations.resolve_status(self.amount_paid_cents, self.total_due_cents, self.due_date, now or utcnow())

    def refresh_status(self, now=None) -> bool:
        """Rewrite the cached status; returns True when it changed."""
        status = self.derive_status(now).value
        changed = status != self.payment_status
        self.payment_status = status
        return changed

    def to_dict(self, now=None, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "invoice_date": to_iso_date(self.invoice_date),
            "due_date": to_iso_date(self.due_date),
            "customer_name": self.customer_name,
            "customer_address": self.customer_address,
            "customer_phone": self.customer_phone,
            "customer_gst": self.customer_gst,
            "grand_total_cents": self.grand_total_cents,
            "amount_paid_cents": self.amount_paid_cents,
            "previous_outstanding_cents": self.previous_outstanding_cents,
            "total_pending_amount_cents": self.total_pending_amount_cents,
            "balance_due_cents": self.balance_due_cents,
            "payment_status": self.derive_status(now).value,
            "previous_pending_amounts": list(self.previous_pending_amounts or []),
            "logo_url": self.logo_url,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
            data["payment_history"] = [payment.to_dict() for payment in self.payments]
        return data


class InvoiceItem(db.Model):
    """Individual line on an invoice. total_cents is always quantity * rate_cents."""
    __tablename__ = "invoice_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    # Fractional quantities allowed (2.5 sqft); two decimal places
    quantity = db.Column(db.Numeric(12, 2), nullable=False)
    rate_cents = db.Column(db.Integer, nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)

    # Optional link to the stock row decremented when the invoice was created.
    # No FK: deleting stock must not touch historical invoices.
    stock_id = db.Column(db.Integer, nullable=True, index=True)
    # Advisory snapshot shown to the operator when the line was picked
    available_quantity = db.Column(db.Numeric(12, 2), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "position": self.position,
            "name": self.name,
            "description": self.description,
            "quantity": quantity_to_json(self.quantity),
            "rate_cents": self.rate_cents,
            "total_cents": self.total_cents,
            "stock_id": self.stock_id,
            "available_quantity": quantity_to_json(self.available_quantity),
        }


class InvoicePayment(db.Model):
    """
    Payment recorded against an invoice.

    Append-only: rows are never updated. Ordered by insertion (id), which is
    not necessarily the order of paid_at.
    """
    __tablename__ = "invoice_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    notes = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "amount_cents": self.amount_cents,
            "date": to_utc_z(self.paid_at),
            "notes": self.notes,
        }
