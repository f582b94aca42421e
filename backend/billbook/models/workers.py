from __future__ import annotations

from ..extensions import db
from billbook.time_utils import to_utc_z, to_iso_date, utcnow


class Worker(db.Model):
    """
    Worker profile.

    Independent of invoicing: worker transactions never feed customer
    balances.
    """
    __tablename__ = "workers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.Text, nullable=True)
    joining_date = db.Column(db.Date, nullable=True)
    monthly_salary_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    transactions = db.relationship(
        "WorkerTransaction",
        backref="worker",
        cascade="all, delete-orphan",
        lazy=True,
    )

    def __repr__(self) -> str:
        return f"<Worker id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "address": self.address,
            "joining_date": to_iso_date(self.joining_date),
            "monthly_salary_cents": self.monthly_salary_cents,
            "created_at": to_utc_z(self.created_at),
        }


class WorkerTransaction(db.Model):
    """Typed money movement for a worker: salary, advance, rental or other."""
    __tablename__ = "worker_transactions"
    __table_args__ = (
        db.Index("ix_worker_transactions_worker_date", "worker_id", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    worker_id = db.Column(db.Integer, db.ForeignKey("workers.id", ondelete="CASCADE"), nullable=False, index=True)
    type = db.Column(db.String(16), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    date = db.Column(db.Date, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "worker_id": self.worker_id,
            "type": self.type,
            "amount_cents": self.amount_cents,
            "date": to_iso_date(self.date),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
