# Overview: Flask API routes for stock operations; parses input and returns JSON responses.

# backend/billbook/routes/stock.py
"""
Stock management routes.

- POST /api/stock adds to an existing record with the same name, else creates.
- POST /api/stock/bulk overwrites quantities by name (CSV import feed).
- Quantities are non-negative integers.
"""
from flask import Blueprint, request, current_app

from ..models import Stock
from ..services import stock_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_stock,
    ValidationError,
    ConflictError,
)

STOCK_POLICY = ModelValidationPolicy(
    writable_fields={"name", "quantity"},
    required_on_create={"name", "quantity"},
)

stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.get("")
def list_stock_route():
    stocks = stock_service.list_stock()
    return {"stocks": [s.to_dict() for s in stocks], "count": len(stocks)}, 200


@stock_bp.get("/available")
def list_available_stock_route():
    """Stock with quantity > 0, by name (what an invoice line can pick)."""
    stocks = stock_service.list_available_stock()
    return {"stocks": [s.to_dict() for s in stocks], "count": len(stocks)}, 200


@stock_bp.get("/summary")
def stock_summary_route():
    return stock_service.stock_summary(), 200


@stock_bp.get("/<int:stock_id>")
def get_stock_route(stock_id: int):
    stock = stock_service.get_stock(stock_id)
    if stock is None:
        return {"error": "Stock not found"}, 404
    return {"stock": stock.to_dict()}, 200


@stock_bp.post("")
def add_stock_route():
    """Add stock. Returns 201 when a record was created, 200 when one was topped up."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Stock, payload=payload, policy=STOCK_POLICY, partial=False)
        enforce_rules_stock(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        stock, created = stock_service.add_stock(name=patch["name"], quantity=patch["quantity"])
    except Exception:
        current_app.logger.exception("Failed to add stock")
        return {"error": "Failed to add stock"}, 500

    return {"stock": stock.to_dict()}, 201 if created else 200


@stock_bp.put("/<int:stock_id>")
def update_stock_route(stock_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Stock, payload=payload, policy=STOCK_POLICY, partial=False)
        enforce_rules_stock(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        stock = stock_service.update_stock(stock_id, patch)
    except ConflictError as e:
        return {"error": str(e)}, 409

    if stock is None:
        return {"error": "Stock not found"}, 404

    return {"stock": stock.to_dict()}, 200


@stock_bp.delete("/<int:stock_id>")
def delete_stock_route(stock_id: int):
    if not stock_service.delete_stock(stock_id):
        return {"error": "Stock not found"}, 404
    return {"message": "Stock deleted successfully"}, 200


@stock_bp.post("/bulk")
def bulk_stock_route():
    """
    Upsert many stock rows by name.

    Body: {"stocks": [{"name": str, "quantity": int}, ...]}
    """
    payload = request.get_json(silent=True) or {}
    rows = payload.get("stocks") if isinstance(payload, dict) else None

    if not isinstance(rows, list) or not rows:
        return {"error": "Invalid stock data"}, 400

    try:
        result = stock_service.bulk_upsert_stock(rows)
    except Exception:
        current_app.logger.exception("Failed to process stock upload")
        return {"error": "Failed to process stocks"}, 500

    return result, 200
