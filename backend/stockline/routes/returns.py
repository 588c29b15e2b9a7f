# Overview: Flask API routes for returns and exchanges; search, scan replacements and settle.

from flask import Blueprint, jsonify, request

from ..services import return_service
from ..validation import ValidationError, coerce_int, require_fields


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.get("/stores/<int:store_id>/eligible")
def eligible(store_id: int):
    """?phone=... lists the customer's invoices in the window; ?invoice_number=... checks one."""
    invoices = return_service.find_eligible_invoices(
        store_id,
        phone=request.args.get("phone"),
        invoice_number=request.args.get("invoice_number"),
    )
    return jsonify({"invoices": [inv.to_dict(include_items=True) for inv in invoices]}), 200


@returns_bp.get("/stores/<int:store_id>/invoices/<int:invoice_id>")
def invoice_for_return(store_id: int, invoice_id: int):
    return jsonify({"invoice": return_service.invoice_for_return(store_id, invoice_id)}), 200


@returns_bp.post("/stores/<int:store_id>/exchange-scan")
def exchange_scan(store_id: int):
    data = require_fields(request.get_json(silent=True), "barcode")
    lines = return_service.scan_exchange_item(store_id, data["barcode"], data.get("lines") or [])
    return jsonify({"lines": [line.to_dict() for line in lines]}), 200


@returns_bp.post("/stores/<int:store_id>/settle")
def settle(store_id: int):
    """
    Request body:
    {
        "invoice_id": 12,
        "return_type": "exchange",                       (return | exchange)
        "lines": [{"invoice_item_id": 30, "quantity": 1}],
        "exchange_lines": [{"size_stock_id": 7, "quantity": 1}],
        "reason": "Wrong size"
    }

    Returns:
        201: return record; net_amount_cents > 0 means the customer pays
        400: INVALID_QUANTITY
        409: EXPIRED / INSUFFICIENT_STOCK
    """
    data = require_fields(request.get_json(silent=True), "invoice_id")
    if not isinstance(data.get("lines"), list):
        raise ValidationError("lines must be a list")
    record = return_service.settle_return(
        store_id,
        coerce_int("invoice_id", data["invoice_id"]),
        data["lines"],
        return_type=data.get("return_type") or "return",
        exchange_lines=data.get("exchange_lines"),
        reason=data.get("reason"),
    )
    return jsonify({"return": record.to_dict(include_items=True)}), 201


@returns_bp.get("/<int:return_id>")
def get_return(return_id: int):
    record = return_service.get_return(return_id)
    return jsonify({"return": record.to_dict(include_items=True)}), 200
