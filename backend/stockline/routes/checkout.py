# Overview: Flask API routes for POS checkout; scan into a client-held cart, quote and settle.

from flask import Blueprint, jsonify, request

from ..services import checkout_service
from ..validation import ValidationError, coerce_int, require_fields


checkout_bp = Blueprint("checkout", __name__, url_prefix="/api/checkout")


def _json() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data


def _pricing_kwargs(data: dict) -> dict:
    return {
        "discount_type": data.get("discount_type") or "none",
        "discount_value": data.get("discount_value") or 0,
        "gst_enabled": data.get("gst_enabled"),
        "gst_rate_bps": data.get("gst_rate_bps"),
    }


@checkout_bp.post("/stores/<int:store_id>/scan")
def scan(store_id: int):
    """
    Request body:
    {
        "barcode": "8901234567890",
        "lines": [{"size_stock_id": 5, "barcode": "8901234567890", "quantity": 1}]
    }

    Returns the updated cart. Nothing is written.
    """
    data = require_fields(request.get_json(silent=True), "barcode")
    lines = checkout_service.scan_into_cart(store_id, data["barcode"], data.get("lines") or [])
    return jsonify({"lines": [line.to_dict() for line in lines]}), 200


@checkout_bp.post("/stores/<int:store_id>/lines")
def set_quantity(store_id: int):
    data = require_fields(request.get_json(silent=True), "size_stock_id", "quantity")
    lines = checkout_service.set_line_quantity(
        store_id,
        data.get("lines") or [],
        coerce_int("size_stock_id", data["size_stock_id"]),
        coerce_int("quantity", data["quantity"]),
        barcode=data.get("barcode"),
    )
    return jsonify({"lines": [line.to_dict() for line in lines]}), 200


@checkout_bp.post("/quote")
def quote():
    data = require_fields(request.get_json(silent=True), "store_id")
    lines, pricing = checkout_service.quote_cart(
        coerce_int("store_id", data["store_id"]),
        data.get("lines") or [],
        **_pricing_kwargs(data),
    )
    return jsonify({
        "lines": [line.to_dict() for line in lines],
        "pricing": pricing.to_dict(),
    }), 200


@checkout_bp.post("/stores/<int:store_id>/settle")
def settle(store_id: int):
    """
    Settle the cart: invoice, items, sales facts and stock decrements in one
    transaction.

    Request body:
    {
        "lines": [{"size_stock_id": 5, "quantity": 2}],
        "discount_type": "percentage",     (none | percentage | fixed)
        "discount_value": 1000,            (bps for percentage, cents for fixed)
        "gst_enabled": true,               (optional, store setting by default)
        "gst_rate_bps": 1800,              (optional, store setting by default)
        "customer_phone": "9876543210",    (optional)
        "customer_name": "Asha",           (optional, required for new phones)
        "customer_email": "a@example.com", (optional)
        "payment_method": "cash"
    }
    """
    data = _json()
    invoice = checkout_service.settle_cart(
        store_id,
        data.get("lines") or [],
        customer_phone=data.get("customer_phone"),
        customer_name=data.get("customer_name"),
        customer_email=data.get("customer_email"),
        payment_method=data.get("payment_method") or "cash",
        **_pricing_kwargs(data),
    )
    return jsonify({"invoice": invoice.to_dict(include_items=True)}), 201


@checkout_bp.get("/invoices/<int:invoice_id>")
def get_invoice(invoice_id: int):
    invoice = checkout_service.get_invoice(invoice_id)
    return jsonify({"invoice": invoice.to_dict(include_items=True)}), 200


@checkout_bp.get("/invoices/by-number/<invoice_number>")
def get_invoice_by_number(invoice_number: str):
    invoice = checkout_service.get_invoice_by_number(invoice_number)
    return jsonify({"invoice": invoice.to_dict(include_items=True)}), 200
