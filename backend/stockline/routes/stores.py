# Overview: Flask API routes for stores operations; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request

from ..errors import NotFoundError
from ..models import Store, StoreTaxSettings
from ..services import store_service
from ..validation import ModelValidationPolicy, enforce_rules_tax_settings, validate_payload


stores_bp = Blueprint("stores", __name__, url_prefix="/api/stores")

STORE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "location", "is_active"},
    required_on_create={"name"},
)
TAX_POLICY = ModelValidationPolicy(writable_fields={"gst_rate_bps", "gst_number", "is_gst_enabled"})


@stores_bp.get("")
def list_stores():
    include_inactive = request.args.get("include_inactive", "false").lower() in ("1", "true", "yes")
    stores = store_service.list_stores(include_inactive=include_inactive)
    return jsonify([store.to_dict() for store in stores]), 200


@stores_bp.post("")
def create_store():
    patch = validate_payload(
        model=Store, payload=request.get_json(silent=True), policy=STORE_POLICY, partial=False
    )
    store = store_service.create_store(name=patch["name"], location=patch.get("location"))
    return jsonify(store.to_dict()), 201


@stores_bp.get("/<int:store_id>")
def get_store(store_id: int):
    store = store_service.get_store(store_id)
    if not store:
        raise NotFoundError("Store not found", details={"store_id": store_id})
    return jsonify(store.to_dict()), 200


@stores_bp.patch("/<int:store_id>")
def update_store(store_id: int):
    patch = validate_payload(
        model=Store, payload=request.get_json(silent=True), policy=STORE_POLICY, partial=True
    )
    store = store_service.update_store(
        store_id,
        name=patch.get("name"),
        location=patch.get("location"),
        is_active=patch.get("is_active"),
    )
    return jsonify(store.to_dict()), 200


@stores_bp.get("/<int:store_id>/tax-settings")
def get_tax_settings(store_id: int):
    return jsonify(store_service.get_tax_settings(store_id).to_dict()), 200


@stores_bp.patch("/<int:store_id>/tax-settings")
def update_tax_settings(store_id: int):
    patch = validate_payload(
        model=StoreTaxSettings, payload=request.get_json(silent=True), policy=TAX_POLICY, partial=True
    )
    enforce_rules_tax_settings(patch)
    settings = store_service.update_tax_settings(store_id, patch)
    return jsonify(settings.to_dict()), 200
