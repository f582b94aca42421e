# Overview: Flask API routes for invoices and their payments; parses input and returns JSON responses.

# backend/billbook/routes/invoices.py
"""
Invoice routes.

Money fields are integer minor units (*_cents). payment_status, totals and
balance are always computed server-side; clients that send them get a 400.

Creating an invoice whose items carry stock_id decrements those stock rows
in the same transaction; if any line cannot be satisfied nothing is saved.
"""
from flask import Blueprint, request, current_app

from ..models import Invoice, InvoiceItem, InvoicePayment
from ..services import invoice_service
from ..services.customer_service import list_customer_invoices
from ..services.invoice_service import InvoiceError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_invoice,
    enforce_rules_invoice_item,
    enforce_rules_payment,
    ValidationError,
    NotFoundError,
)


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")

_INVOICE_FIELDS = {
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

# grand_total_cents and item total_cents are accepted but always recomputed from the lines
INVOICE_CREATE_POLICY = ModelValidationPolicy(
    # amount_paid_cents on create becomes the first payment record
    writable_fields=_INVOICE_FIELDS | {"amount_paid_cents", "grand_total_cents"},
    required_on_create={"customer_name", "customer_address", "invoice_date", "due_date"},
)

# Payments only move through POST /<id>/payments once an invoice exists
INVOICE_UPDATE_POLICY = ModelValidationPolicy(writable_fields=_INVOICE_FIELDS | {"grand_total_cents"})

INVOICE_ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "quantity", "rate_cents", "total_cents", "stock_id", "available_quantity"},
    required_on_create={"name", "quantity", "rate_cents"},
)

PAYMENT_POLICY = ModelValidationPolicy(
    writable_fields={"amount_cents", "notes"},
    required_on_create={"amount_cents"},
)


def _validate_items(raw_items) -> list[dict]:
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("items must be a non-empty list")

    items = []
    for i, raw in enumerate(raw_items):
        try:
            item = validate_payload(model=InvoiceItem, payload=raw, policy=INVOICE_ITEM_POLICY, partial=False)
            enforce_rules_invoice_item(item)
        except ValidationError as e:
            raise ValidationError(f"items[{i}]: {e}")
        items.append(item)
    return items


def _parse_invoice_payload(payload: dict, *, policy: ModelValidationPolicy, partial: bool):
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    body = dict(payload)
    raw_items = body.pop("items", None)

    patch = validate_payload(model=Invoice, payload=body, policy=policy, partial=partial)
    enforce_rules_invoice(patch)

    if raw_items is None:
        if not partial:
            raise ValidationError("Missing required fields: items")
        return patch, None
    return patch, _validate_items(raw_items)


@invoices_bp.get("")
def list_invoices_route():
    """
    List invoices.

    Query params:
    - customer_phone: str (optional) - that customer's invoices in
      chronological order, each with outstanding_at_time_cents
    """
    customer_phone = request.args.get("customer_phone")

    if customer_phone is not None:
        try:
            invoices = list_customer_invoices(customer_phone)
        except ValidationError as e:
            return {"error": str(e)}, 400
        return {"invoices": invoices, "count": len(invoices)}, 200

    invoices = invoice_service.list_invoices()
    return {"invoices": [inv.to_dict() for inv in invoices], "count": len(invoices)}, 200


@invoices_bp.post("")
def create_invoice_route():
    """
    Create an invoice.

    Required: customer_name, customer_address, invoice_date, due_date, items.
    invoice_number is generated when omitted. previous_outstanding_cents is
    only carried when the client attaches it (see /api/customers/<phone>/carry-forward).
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch, items = _parse_invoice_payload(payload, policy=INVOICE_CREATE_POLICY, partial=False)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        invoice = invoice_service.create_invoice(patch=patch, items=items)
    except InvoiceError as e:
        return {"error": str(e), "details": e.details}, 400
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create invoice")
        return {"error": "Internal server error"}, 500

    return {"invoice": invoice.to_dict()}, 201


@invoices_bp.get("/<int:invoice_id>")
def get_invoice_route(invoice_id: int):
    invoice = invoice_service.get_invoice(invoice_id)
    if invoice is None:
        return {"error": "Invoice not found"}, 404
    return {"invoice": invoice.to_dict()}, 200


@invoices_bp.put("/<int:invoice_id>")
def update_invoice_route(invoice_id: int):
    """
    Edit an invoice.

    items, when present, replace every line (totals are recomputed; stock is
    not touched). amount_paid_cents cannot be edited here.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch, items = _parse_invoice_payload(payload, policy=INVOICE_UPDATE_POLICY, partial=True)
        invoice = invoice_service.update_invoice(invoice_id, patch=patch, items=items)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to update invoice")
        return {"error": "Internal server error"}, 500

    if invoice is None:
        return {"error": "Invoice not found"}, 404

    return {"invoice": invoice.to_dict()}, 200


@invoices_bp.delete("/<int:invoice_id>")
def delete_invoice_route(invoice_id: int):
    """Delete an invoice permanently. Stock taken by it is not given back."""
    if not invoice_service.delete_invoice(invoice_id):
        return {"error": "Invoice not found"}, 404
    return {"message": "Invoice deleted successfully"}, 200


@invoices_bp.get("/<int:invoice_id>/payments")
def list_payments_route(invoice_id: int):
    try:
        payments = invoice_service.list_payments(invoice_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"payments": [p.to_dict() for p in payments], "count": len(payments)}, 200


@invoices_bp.post("/<int:invoice_id>/payments")
def record_payment_route(invoice_id: int):
    """
    Record a payment against an invoice.

    Body: {"amount_cents": int > 0, "notes": str?}
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=InvoicePayment, payload=payload, policy=PAYMENT_POLICY, partial=False)
        enforce_rules_payment(patch)
        invoice = invoice_service.record_payment(
            invoice_id,
            patch["amount_cents"],
            notes=patch.get("notes"),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return {"error": "Internal server error"}, 500

    return {"invoice": invoice.to_dict()}, 201
