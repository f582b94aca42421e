# Overview: Single company profile (logo shown on invoices).

from __future__ import annotations

from ..extensions import db
from ..models import Company

COMPANY_MUTABLE_FIELDS = {"name", "logo_url"}


def get_company() -> Company | None:
    return db.session.query(Company).order_by(Company.id.asc()).first()


def upsert_company(patch: dict) -> Company:
    """Update the single company row, creating it on first use."""
    company = get_company()
    if company is None:
        company = Company()
        db.session.add(company)
    for k, v in patch.items():
        if k in COMPANY_MUTABLE_FIELDS:
            setattr(company, k, v)
    db.session.commit()
    return company


def delete_company() -> bool:
    deleted = db.session.query(Company).delete()
    db.session.commit()
    return deleted > 0
