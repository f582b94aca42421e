# Overview: Service-layer operations for workers and their salary/advance transactions.

from __future__ import annotations

from ..extensions import db
from ..models import Worker, WorkerTransaction
from ..validation import NotFoundError

WORKER_MUTABLE_FIELDS = {"name", "phone", "address", "joining_date", "monthly_salary_cents"}
TRANSACTION_MUTABLE_FIELDS = {"type", "amount_cents", "date", "notes"}


def _apply(obj, patch: dict, allowed: set[str]) -> None:
    for k, v in patch.items():
        if k in allowed:
            setattr(obj, k, v)


def list_workers() -> list[Worker]:
    return db.session.query(Worker).order_by(Worker.name.asc(), Worker.id.asc()).all()


def get_worker(worker_id: int) -> Worker | None:
    return db.session.get(Worker, worker_id)


def create_worker(patch: dict) -> Worker:
    worker = Worker()
    _apply(worker, patch, WORKER_MUTABLE_FIELDS)
    db.session.add(worker)
    db.session.commit()
    return worker


def update_worker(worker_id: int, patch: dict) -> Worker | None:
    worker = db.session.get(Worker, worker_id)
    if worker is None:
        return None
    _apply(worker, patch, WORKER_MUTABLE_FIELDS)
    db.session.commit()
    return worker


def delete_worker(worker_id: int) -> bool:
    """Delete a worker together with its transactions."""
    worker = db.session.get(Worker, worker_id)
    if worker is None:
        return False
    db.session.delete(worker)
    db.session.commit()
    return True


def list_transactions(worker_id: int | None = None) -> list[WorkerTransaction]:
    """Transactions newest date first, optionally for one worker."""
    q = db.session.query(WorkerTransaction)
    if worker_id is not None:
        q = q.filter(WorkerTransaction.worker_id == worker_id)
    return q.order_by(WorkerTransaction.date.desc(), WorkerTransaction.id.desc()).all()


def create_transaction(patch: dict) -> WorkerTransaction:
    """
    Raises:
        NotFoundError: worker_id does not reference a worker
    """
    if db.session.get(Worker, patch["worker_id"]) is None:
        raise NotFoundError("Worker not found")

    tx = WorkerTransaction(worker_id=patch["worker_id"])
    _apply(tx, patch, TRANSACTION_MUTABLE_FIELDS)
    db.session.add(tx)
    db.session.commit()
    return tx


def update_transaction(transaction_id: int, patch: dict) -> WorkerTransaction | None:
    tx = db.session.get(WorkerTransaction, transaction_id)
    if tx is None:
        return None
    _apply(tx, patch, TRANSACTION_MUTABLE_FIELDS)
    db.session.commit()
    return tx


def delete_transaction(transaction_id: int) -> bool:
    tx = db.session.get(WorkerTransaction, transaction_id)
    if tx is None:
        return False
    db.session.delete(tx)
    db.session.commit()
    return True
