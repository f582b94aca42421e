# Overview: Flask API routes for workers and worker transactions.

# backend/billbook/routes/workers.py
"""
Workers and their money movements (salary, advance, rental, other).

Independent of invoicing: nothing here changes customer balances.
"""
from flask import Blueprint, request

from ..models import Worker, WorkerTransaction
from ..services import worker_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_worker,
    enforce_rules_worker_transaction,
    ValidationError,
    NotFoundError,
)

WORKER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "address", "joining_date", "monthly_salary_cents"},
    required_on_create={"name", "monthly_salary_cents"},
)

WORKER_TRANSACTION_POLICY = ModelValidationPolicy(
    writable_fields={"worker_id", "type", "amount_cents", "date", "notes"},
    required_on_create={"worker_id", "type", "amount_cents", "date"},
)

WORKER_TRANSACTION_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"type", "amount_cents", "date", "notes"},
)

workers_bp = Blueprint("workers", __name__, url_prefix="/api/workers")
worker_transactions_bp = Blueprint("worker_transactions", __name__, url_prefix="/api/worker-transactions")


@workers_bp.get("")
def list_workers_route():
    workers = worker_service.list_workers()
    return {"workers": [w.to_dict() for w in workers], "count": len(workers)}, 200


@workers_bp.post("")
def create_worker_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Worker, payload=payload, policy=WORKER_POLICY, partial=False)
        enforce_rules_worker(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    worker = worker_service.create_worker(patch)
    return {"worker": worker.to_dict()}, 201


@workers_bp.get("/<int:worker_id>")
def get_worker_route(worker_id: int):
    worker = worker_service.get_worker(worker_id)
    if worker is None:
        return {"error": "Worker not found"}, 404
    return {"worker": worker.to_dict()}, 200


@workers_bp.put("/<int:worker_id>")
def update_worker_route(worker_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Worker, payload=payload, policy=WORKER_POLICY, partial=True)
        enforce_rules_worker(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    worker = worker_service.update_worker(worker_id, patch)
    if worker is None:
        return {"error": "Worker not found"}, 404
    return {"worker": worker.to_dict()}, 200


@workers_bp.delete("/<int:worker_id>")
def delete_worker_route(worker_id: int):
    """Delete a worker and all of its transactions."""
    if not worker_service.delete_worker(worker_id):
        return {"error": "Worker not found"}, 404
    return {"message": "Worker deleted successfully"}, 200


@worker_transactions_bp.get("")
def list_transactions_route():
    """
    Query params:
    - worker_id: int (optional) - only this worker's transactions
    """
    worker_id = request.args.get("worker_id", type=int)
    transactions = worker_service.list_transactions(worker_id=worker_id)
    return {"transactions": [t.to_dict() for t in transactions], "count": len(transactions)}, 200


@worker_transactions_bp.post("")
def create_transaction_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=WorkerTransaction, payload=payload, policy=WORKER_TRANSACTION_POLICY, partial=False
        )
        enforce_rules_worker_transaction(patch)
        tx = worker_service.create_transaction(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return {"transaction": tx.to_dict()}, 201


@worker_transactions_bp.put("/<int:transaction_id>")
def update_transaction_route(transaction_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=WorkerTransaction, payload=payload, policy=WORKER_TRANSACTION_UPDATE_POLICY, partial=True
        )
        enforce_rules_worker_transaction(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    tx = worker_service.update_transaction(transaction_id, patch)
    if tx is None:
        return {"error": "Transaction not found"}, 404
    return {"transaction": tx.to_dict()}, 200


@worker_transactions_bp.delete("/<int:transaction_id>")
def delete_transaction_route(transaction_id: int):
    if not worker_service.delete_transaction(transaction_id):
        return {"error": "Transaction not found"}, 404
    return {"message": "Transaction deleted successfully"}, 200
