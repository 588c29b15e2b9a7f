# Overview: Flask API routes for the catalog tree, size-stock units and barcode lookup.

from flask import Blueprint, jsonify, request

from ..models import BarcodeGroup, Category, Color, Size, SizeStockUnit, Variant
from ..services import catalog_service
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_color,
    enforce_rules_size_stock,
    validate_payload,
)


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/catalog")

NAME_POLICY = ModelValidationPolicy(writable_fields={"name"}, required_on_create={"name"})
COLOR_POLICY = ModelValidationPolicy(writable_fields={"name", "hex"}, required_on_create={"name"})
SIZE_POLICY = ModelValidationPolicy(
    writable_fields={"code", "name", "sort_order"},
    required_on_create={"code", "name"},
)
SIZE_STOCK_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"variant_id", "color_id", "size_id", "barcode", "price_cents", "warehouse_stock"},
    required_on_create={"variant_id", "color_id", "size_id", "barcode", "price_cents"},
)
SIZE_STOCK_PATCH_POLICY = ModelValidationPolicy(writable_fields={"barcode", "price_cents"})
BARCODE_GROUP_POLICY = ModelValidationPolicy(
    writable_fields={"name", "barcode", "price_cents"},
    required_on_create={"name", "price_cents"},
)


def _json() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data


@catalog_bp.get("/tree")
def get_tree():
    return jsonify({"categories": catalog_service.catalog_tree()}), 200


@catalog_bp.post("/categories")
def create_category():
    patch = validate_payload(model=Category, payload=_json(), policy=NAME_POLICY, partial=False)
    category = catalog_service.create_category(patch["name"])
    return jsonify(category.to_dict()), 201


@catalog_bp.post("/categories/<int:category_id>/variants")
def create_variant(category_id: int):
    patch = validate_payload(model=Variant, payload=_json(), policy=NAME_POLICY, partial=False)
    variant = catalog_service.create_variant(category_id, patch["name"])
    return jsonify(variant.to_dict()), 201


@catalog_bp.post("/variants/<int:variant_id>/colors")
def create_color(variant_id: int):
    patch = validate_payload(model=Color, payload=_json(), policy=COLOR_POLICY, partial=False)
    enforce_rules_color(patch)
    color = catalog_service.create_color(variant_id, patch["name"], patch.get("hex"))
    return jsonify(color.to_dict()), 201


@catalog_bp.get("/sizes")
def list_sizes():
    return jsonify({"sizes": [s.to_dict() for s in catalog_service.list_sizes()]}), 200


@catalog_bp.post("/sizes")
def create_size():
    patch = validate_payload(model=Size, payload=_json(), policy=SIZE_POLICY, partial=False)
    size = catalog_service.create_size(patch["code"], patch["name"], patch.get("sort_order") or 0)
    return jsonify(size.to_dict()), 201


@catalog_bp.post("/size-stock")
def create_size_stock():
    """
    Create the sellable unit for one variant/color/size.

    Request body:
    {
        "variant_id": 1, "color_id": 2, "size_id": 3,
        "barcode": "8901234567890",
        "price_cents": 2000,
        "warehouse_stock": 100   (optional, default: 0)
    }

    Returns:
        201: unit created
        409: DUPLICATE_BARCODE
    """
    patch = validate_payload(
        model=SizeStockUnit, payload=_json(), policy=SIZE_STOCK_CREATE_POLICY, partial=False
    )
    enforce_rules_size_stock(patch)
    unit = catalog_service.create_size_stock_unit(
        variant_id=patch["variant_id"],
        color_id=patch["color_id"],
        size_id=patch["size_id"],
        barcode=patch["barcode"],
        price_cents=patch["price_cents"],
        warehouse_stock=patch.get("warehouse_stock") or 0,
    )
    return jsonify(unit.to_dict()), 201


@catalog_bp.get("/size-stock/<int:size_stock_id>")
def get_size_stock(size_stock_id: int):
    unit = catalog_service.get_size_stock(size_stock_id)
    return jsonify({**unit.to_dict(), **unit.describe()}), 200


@catalog_bp.patch("/size-stock/<int:size_stock_id>")
def update_size_stock(size_stock_id: int):
    patch = validate_payload(
        model=SizeStockUnit, payload=_json(), policy=SIZE_STOCK_PATCH_POLICY, partial=True
    )
    enforce_rules_size_stock(patch)
    unit = catalog_service.update_size_stock(
        size_stock_id,
        price_cents=patch.get("price_cents"),
        barcode=patch.get("barcode"),
    )
    return jsonify(unit.to_dict()), 200


@catalog_bp.post("/variants/<int:variant_id>/barcode-groups")
def create_barcode_group(variant_id: int):
    data = dict(_json())
    size_ids = data.pop("size_ids", None)
    if not isinstance(size_ids, list) or not size_ids:
        raise ValidationError("size_ids must be a non-empty list")
    patch = validate_payload(model=BarcodeGroup, payload=data, policy=BARCODE_GROUP_POLICY, partial=False)
    enforce_rules_size_stock(patch)
    group = catalog_service.create_barcode_group(
        variant_id=variant_id,
        name=patch["name"],
        size_ids=size_ids,
        price_cents=patch["price_cents"],
        barcode=patch.get("barcode"),
    )
    return jsonify(group.to_dict()), 201


@catalog_bp.get("/lookup/<barcode>")
def lookup(barcode: str):
    store_id = request.args.get("store_id", type=int)
    return jsonify(catalog_service.lookup_product(barcode, store_id=store_id)), 200
