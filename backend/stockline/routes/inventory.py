# Overview: Flask API routes for the inventory ledger; distribute, sell, adjust and read pools.

from flask import Blueprint, jsonify, request

from ..services import inventory_service, ledger_service
from ..validation import ValidationError, coerce_int, require_fields


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _int_arg(name: str) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        raise ValidationError(f"{name} query parameter is required")
    return coerce_int(name, raw)


@inventory_bp.get("/available")
def available_stock():
    """ComputeAvailableStock: warehouse units for variant/color/size, 0 when no unit exists."""
    variant_id = _int_arg("variant_id")
    color_id = _int_arg("color_id")
    size_id = _int_arg("size_id")
    available = inventory_service.compute_available_stock(variant_id, color_id, size_id)
    return jsonify({
        "variant_id": variant_id,
        "color_id": color_id,
        "size_id": size_id,
        "available": available,
    }), 200


@inventory_bp.post("/distribute")
def distribute():
    """
    Move units from the warehouse to a store.

    Request body:
    {
        "store_id": 1,
        "size_stock_id": 5,
        "quantity": 30
    }

    Returns:
        200: new balances of both pools
        409: INSUFFICIENT_STOCK (nothing changed)
    """
    data = require_fields(request.get_json(silent=True), "store_id", "size_stock_id", "quantity")
    result = inventory_service.distribute(
        coerce_int("store_id", data["store_id"]),
        coerce_int("size_stock_id", data["size_stock_id"]),
        data["quantity"],
    )
    return jsonify(result), 200


@inventory_bp.post("/size-stock/<int:size_stock_id>/adjust")
def adjust_warehouse(size_stock_id: int):
    data = require_fields(request.get_json(silent=True), "quantity")
    unit = inventory_service.adjust_warehouse_stock(size_stock_id, data["quantity"], note=data.get("note"))
    return jsonify(unit.to_dict()), 200


@inventory_bp.post("/stores/<int:store_id>/sell")
def sell(store_id: int):
    data = require_fields(request.get_json(silent=True), "barcode")
    invoice = inventory_service.sell_at_store(store_id, data["barcode"])
    return jsonify({"invoice": invoice.to_dict(include_items=True)}), 201


@inventory_bp.get("/stores/<int:store_id>")
def store_inventory(store_id: int):
    include_empty = request.args.get("include_empty", "false").lower() in ("1", "true", "yes")
    rows = inventory_service.list_store_inventory(store_id, include_empty=include_empty)
    return jsonify({"store_id": store_id, "items": rows}), 200


@inventory_bp.get("/size-stock/<int:size_stock_id>/balance")
def unit_balance(size_stock_id: int):
    return jsonify(inventory_service.unit_balance(size_stock_id)), 200


@inventory_bp.get("/size-stock/<int:size_stock_id>/movements")
def movements(size_stock_id: int):
    limit = request.args.get("limit", default=200, type=int)
    rows = ledger_service.list_movements(
        size_stock_id=size_stock_id,
        store_id=request.args.get("store_id", type=int),
        movement_type=request.args.get("type"),
        limit=limit,
    )
    return jsonify({"movements": [m.to_dict() for m in rows]}), 200
