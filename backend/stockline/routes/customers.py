# Overview: Flask API routes for customers; phone lookup and purchase history.

from flask import Blueprint, jsonify, request

from ..models import Customer
from ..services import customer_service
from ..validation import ModelValidationPolicy, ValidationError, validate_payload


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"phone", "name", "email"},
    required_on_create={"phone", "name"},
)


@customers_bp.get("")
def list_customers():
    limit = request.args.get("limit", default=100, type=int)
    customers = customer_service.list_customers(request.args.get("search"), limit=limit)
    return jsonify({"customers": [c.to_dict() for c in customers]}), 200


@customers_bp.post("")
def create_customer():
    patch = validate_payload(
        model=Customer, payload=request.get_json(silent=True), policy=CUSTOMER_POLICY, partial=False
    )
    customer = customer_service.create_customer(patch["phone"], patch["name"], patch.get("email"))
    return jsonify(customer.to_dict()), 201


@customers_bp.get("/lookup")
def lookup():
    phone = request.args.get("phone")
    if not phone:
        raise ValidationError("phone query parameter is required")
    return jsonify(customer_service.get_customer_by_phone(phone).to_dict()), 200


@customers_bp.get("/<int:customer_id>/invoices")
def invoices(customer_id: int):
    rows = customer_service.customer_invoices(customer_id)
    return jsonify({"invoices": [inv.to_dict() for inv in rows]}), 200
