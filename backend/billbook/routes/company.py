# Overview: Flask API routes for the company profile record.

from flask import Blueprint, request

from ..models import Company
from ..services import company_service
from ..validation import ModelValidationPolicy, validate_payload, ValidationError

COMPANY_POLICY = ModelValidationPolicy(writable_fields={"name", "logo_url"})

company_bp = Blueprint("company", __name__, url_prefix="/api/company")


@company_bp.get("")
def get_company_route():
    company = company_service.get_company()
    return {"company": company.to_dict() if company else None}, 200


@company_bp.post("")
def upsert_company_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Company, payload=payload, policy=COMPANY_POLICY, partial=True)
    except ValidationError as e:
        return {"error": str(e)}, 400

    company = company_service.upsert_company(patch)
    return {"company": company.to_dict()}, 200


@company_bp.delete("")
def delete_company_route():
    company_service.delete_company()
    return {"success": True}, 200
