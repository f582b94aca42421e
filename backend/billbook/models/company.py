from __future__ import annotations

from ..extensions import db
from billbook.time_utils import to_utc_z, utcnow


class Company(db.Model):
    """
    Single company profile row (logo shown on invoices).

    Only the logo URL/data-URL string is kept; the image itself lives
    elsewhere.
    """
    __tablename__ = "companies"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=True)
    logo_url = db.Column(db.Text, nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "logo_url": self.logo_url,
            "updated_at": to_utc_z(self.updated_at),
        }
