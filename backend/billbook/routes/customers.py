# Overview: Flask API routes for customer balances; read-only views over invoices.

# backend/billbook/routes/customers.py
"""
Customer routes, keyed by phone number.

Nothing here writes: carry-forward only reports what a new invoice could
attach as previous_outstanding_cents; the client decides whether to send it.
"""
from flask import Blueprint

from ..services import customer_service
from ..validation import ValidationError


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("/<customer_phone>/carry-forward")
def carry_forward_route(customer_phone: str):
    """
    Latest invoice and its outstanding balance for this customer.

    Returns previous_outstanding_cents (0 when the customer has no invoices)
    and previous_pending_amounts, point-in-time snapshots of earlier
    invoices that still have something outstanding.
    """
    try:
        return customer_service.get_carry_forward(customer_phone), 200
    except ValidationError as e:
        return {"error": str(e)}, 400


@customers_bp.get("/<customer_phone>/ledger")
def ledger_route(customer_phone: str):
    """Chronological invoices (debits) and payments (credits) with a running balance."""
    try:
        return customer_service.build_customer_ledger(customer_phone), 200
    except ValidationError as e:
        return {"error": str(e)}, 400
