# Overview: Service-layer operations for stock; encapsulates business logic and database work.

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Stock
from ..money import coerce_int
from ..validation import ConflictError

STOCK_MUTABLE_FIELDS = {"name", "quantity"}


def apply_stock_patch(stock: Stock, patch: dict) -> None:
    for k, v in patch.items():
        if k not in STOCK_MUTABLE_FIELDS:
            continue
        setattr(stock, k, v)


def _find_by_name(name: str) -> Stock | None:
    return db.session.query(Stock).filter(Stock.name == name).first()


def list_stock() -> list[Stock]:
    """Every stock record, most recently created first."""
    return db.session.query(Stock).order_by(Stock.created_at.desc(), Stock.id.desc()).all()


def list_available_stock() -> list[Stock]:
    """Stock that can still be put on an invoice, by name."""
    return (
        db.session.query(Stock)
        .filter(Stock.quantity > 0)
        .order_by(Stock.name.asc())
        .all()
    )


def get_stock(stock_id: int) -> Stock | None:
    return db.session.get(Stock, stock_id)


def stock_summary(top: int = 5) -> dict:
    total_items, total_quantity = db.session.query(
        func.count(Stock.id),
        func.coalesce(func.sum(Stock.quantity), 0),
    ).one()
    top_items = (
        db.session.query(Stock)
        .order_by(Stock.quantity.desc(), Stock.name.asc())
        .limit(top)
        .all()
    )
    return {
        "total_items": int(total_items or 0),
        "total_quantity": int(total_quantity or 0),
        "top_items": [{"id": s.id, "name": s.name, "quantity": s.quantity} for s in top_items],
    }


def add_stock(*, name: str, quantity: int) -> tuple[Stock, bool]:
    """
    Add stock by name.

    An existing record with the same name gets the quantity added to it;
    otherwise a new record is created. Returns (stock, created).
    """
    existing = _find_by_name(name)
    if existing is not None:
        existing.quantity += quantity
        db.session.commit()
        current_app.logger.info("Added %s units to stock %s (%r)", quantity, existing.id, existing.name)
        return existing, False

    stock = Stock(name=name, quantity=quantity)
    db.session.add(stock)
    db.session.commit()
    current_app.logger.info("Created stock %s (%r) with %s units", stock.id, stock.name, quantity)
    return stock, True


def update_stock(stock_id: int, patch: dict) -> Stock | None:
    """
    Overwrite name and/or quantity.

    Raises:
        ConflictError: renaming onto a name another record already uses
    """
    stock = db.session.get(Stock, stock_id)
    if stock is None:
        return None

    new_name = patch.get("name")
    if new_name and new_name != stock.name:
        clash = _find_by_name(new_name)
        if clash is not None and clash.id != stock.id:
            raise ConflictError(f"Stock named '{new_name}' already exists")

    apply_stock_patch(stock, patch)
    db.session.commit()
    return stock


def delete_stock(stock_id: int) -> bool:
    stock = db.session.get(Stock, stock_id)
    if stock is None:
        return False
    db.session.delete(stock)
    db.session.commit()
    return True


def bulk_upsert_stock(rows: list) -> dict:
    """
    Upsert stock rows by name (CSV import feed).

    Existing names have their quantity overwritten, new names are created.
    Rows without a name or quantity, or with a negative quantity, are skipped.
    All accepted rows commit together.
    """
    updated = 0
    created = 0
    skipped = 0

    for row in rows:
        if not isinstance(row, dict):
            skipped += 1
            continue
        name = str(row.get("name") or "").strip()
        raw_quantity = row.get("quantity")
        if not name or raw_quantity is None:
            skipped += 1
            continue
        quantity = coerce_int(raw_quantity)
        if quantity < 0:
            skipped += 1
            continue

        existing = _find_by_name(name)
        if existing is not None:
            existing.quantity = quantity
            updated += 1
        else:
            db.session.add(Stock(name=name, quantity=quantity))
            # Make the new row visible to later duplicates in the same batch
            db.session.flush()
            created += 1

    db.session.commit()
    current_app.logger.info("Bulk stock upsert: %s updated, %s created, %s skipped", updated, created, skipped)

    return {
        "message": "Stocks processed successfully",
        "count": updated + created,
        "updated": updated,
        "created": created,
        "skipped": skipped,
    }
