from __future__ import annotations
from datetime import date, datetime
from billbook.time_utils import parse_iso_datetime, parse_iso_date

from dataclasses import dataclass
from typing import Any

from decimal import Decimal, InvalidOperation

from sqlalchemy import Boolean, Date, Integer, Numeric, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta


# Maximum money amount: 99,99,99,999.99 (9,999,999,999 paise)
# Keeps sums well inside 64-bit integers
MAX_AMOUNT_CENTS = 9_999_999_999

WORKER_TRANSACTION_TYPES = ("salary", "advance", "rental", "other")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate stock name)."""


class NotFoundError(LookupError):
    """404-level missing entity."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_integer(key: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    # Accept integral floats (JSON clients send 300.0), reject fractional ones
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def _coerce_decimal(key: str, value: Any, scale: int | None) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a number")
    if isinstance(value, Decimal):
        d = value
    elif isinstance(value, int):
        d = Decimal(value)
    elif isinstance(value, float):
        d = Decimal(str(value))
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped or "e" in stripped.lower():
            raise ValidationError(f"{key} must be a plain number")
        try:
            d = Decimal(stripped)
        except InvalidOperation:
            raise ValidationError(f"{key} must be a number")
    else:
        raise ValidationError(f"{key} must be a number")

    if not d.is_finite():
        raise ValidationError(f"{key} must be a finite number")
    if scale is not None and d.as_tuple().exponent < -scale:
        raise ValidationError(f"{key} allows at most {scale} decimal places")
    return d


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return _coerce_integer(col.key, value)

    # Fixed-point numbers (fractional quantities)
    if isinstance(coltype, Numeric):
        return _coerce_decimal(col.key, value, coltype.scale)

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        # fallback: truthiness
        return bool(value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    # Calendar dates ("YYYY-MM-DD" or a full ISO datetime)
    if isinstance(coltype, Date):
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                d = parse_iso_date(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 date")
            if d is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 date")
            return d
        raise ValidationError(f"{col.key} must be a date")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _check_amount(patch: dict, key: str, *, allow_zero: bool, allow_negative: bool = False) -> None:
    if key not in patch or patch[key] is None:
        return
    amount = patch[key]
    if not allow_negative:
        if allow_zero and amount < 0:
            raise ValidationError(f"{key} must be >= 0")
        if not allow_zero and amount <= 0:
            raise ValidationError(f"{key} must be > 0")
    if abs(amount) > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{key} cannot exceed {MAX_AMOUNT_CENTS}")


def enforce_rules_invoice(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    # Carried balance may be negative (customer credit)
    _check_amount(patch, "previous_outstanding_cents", allow_zero=True, allow_negative=True)
    _check_amount(patch, "amount_paid_cents", allow_zero=True)

    pending = patch.get("previous_pending_amounts")
    if pending is not None:
        if not isinstance(pending, list) or not all(isinstance(p, dict) for p in pending):
            raise ValidationError("previous_pending_amounts must be a list of objects")

    invoice_date = patch.get("invoice_date")
    due_date = patch.get("due_date")
    if invoice_date and due_date and due_date < invoice_date:
        raise ValidationError("due_date cannot be before invoice_date")


def enforce_rules_invoice_item(patch: dict) -> None:
    # Lines need a positive quantity and a non-negative rate
    if "quantity" in patch:
        if patch["quantity"] is None or patch["quantity"] <= 0:
            raise ValidationError("quantity must be > 0")
    _check_amount(patch, "rate_cents", allow_zero=True)

    if "available_quantity" in patch and patch["available_quantity"] is not None:
        if patch["available_quantity"] < 0:
            raise ValidationError("available_quantity must be >= 0")

    # Stock is counted in whole units
    if patch.get("stock_id") is not None and patch.get("quantity") is not None:
        if patch["quantity"] != int(patch["quantity"]):
            raise ValidationError("quantity must be a whole number when stock_id is set")


def enforce_rules_payment(patch: dict) -> None:
    if "amount_cents" not in patch or patch["amount_cents"] is None:
        raise ValidationError("amount_cents is required")
    _check_amount(patch, "amount_cents", allow_zero=False)


def enforce_rules_stock(patch: dict) -> None:
    if "quantity" in patch:
        if patch["quantity"] is None or patch["quantity"] < 0:
            raise ValidationError("quantity must be a non-negative integer")


def enforce_rules_worker(patch: dict) -> None:
    _check_amount(patch, "monthly_salary_cents", allow_zero=True)


def enforce_rules_worker_transaction(patch: dict) -> None:
    if "type" in patch and patch["type"] not in WORKER_TRANSACTION_TYPES:
        raise ValidationError(f"type must be one of {', '.join(WORKER_TRANSACTION_TYPES)}")
    _check_amount(patch, "amount_cents", allow_zero=False)
