# Overview: Service-layer operations for cart scanning, pricing and settlement.

from __future__ import annotations

import logging
from dataclasses import dataclass

from stockline.extensions import db
from stockline.errors import (
    InsufficientStockError,
    InvalidQuantityError,
    NotFoundError,
    require_positive_quantity,
)
from stockline.models import BarcodeGroup, Invoice, StoreInventory
from stockline.models.sales import DISCOUNT_NONE
from stockline.services import catalog_service, customer_service, inventory_service, store_service
from stockline.services.concurrency import run_with_retry
from stockline.services.pricing import PricingSummary, calculate_totals
from stockline.services.recorder_service import RecordedLine, record_sale
from stockline.validation import ValidationError, coerce_int


logger = logging.getLogger(__name__)


@dataclass
class CartLine:
    """
    One cart line, held by the client between scans.

    Only size_stock_id, barcode and quantity are trusted on the way back in;
    names and prices are reloaded from the catalog.
    """
    size_stock_id: int
    barcode: str
    quantity: int
    unit_price_cents: int
    category: str
    name: str
    color: str
    size: str
    available_stock: int = 0
    barcode_group_id: int | None = None

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    def to_dict(self) -> dict:
        return {
            "size_stock_id": self.size_stock_id,
            "barcode": self.barcode,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
            "category": self.category,
            "name": self.name,
            "color": self.color,
            "size": self.size,
            "available_stock": self.available_stock,
            "barcode_group_id": self.barcode_group_id,
        }

    def to_recorded(self) -> RecordedLine:
        return RecordedLine(
            size_stock_id=self.size_stock_id,
            barcode=self.barcode,
            quantity=self.quantity,
            unit_price_cents=self.unit_price_cents,
            category=self.category,
            name=self.name,
            color=self.color,
            size=self.size,
            barcode_group_id=self.barcode_group_id,
        )


def _store_row(store_id: int, size_stock_id: int) -> StoreInventory | None:
    return (
        db.session.query(StoreInventory)
        .filter_by(store_id=store_id, size_stock_id=size_stock_id)
        .first()
    )


def _build_line(store_id: int, size_stock_id: int, barcode: str | None, quantity: int) -> CartLine:
    unit = catalog_service.get_size_stock(size_stock_id)
    price = unit.price_cents
    group_id = None
    code = catalog_service.normalize_barcode(barcode) if barcode else unit.barcode

    if code != unit.barcode:
        group = db.session.query(BarcodeGroup).filter_by(barcode=code).first()
        if not group or group.variant_id != unit.variant_id or unit.size_id not in {s.id for s in group.sizes}:
            raise ValidationError(f"Barcode {code} does not belong to size-stock unit {size_stock_id}")
        price = group.price_cents
        group_id = group.id

    names = unit.describe()
    return CartLine(
        size_stock_id=unit.id,
        barcode=code,
        quantity=quantity,
        unit_price_cents=price,
        category=names["category"],
        name=names["variant"],
        color=names["color"],
        size=names["size"],
        available_stock=inventory_service.get_store_quantity(store_id, unit.id),
        barcode_group_id=group_id,
    )


def load_cart(store_id: int, raw_lines) -> list[CartLine]:
    """
    Rebuild client cart lines from the database, merging repeats of the same
    (unit, barcode). Lines with quantity 0 are dropped.
    """
    if raw_lines is None:
        return []
    if not isinstance(raw_lines, list):
        raise ValidationError("lines must be a list")

    merged: dict[tuple[int, str | None], int] = {}
    for raw in raw_lines:
        if isinstance(raw, CartLine):
            raw = raw.to_dict()
        if not isinstance(raw, dict) or raw.get("size_stock_id") is None:
            raise ValidationError("Each line needs a size_stock_id")
        size_stock_id = coerce_int("size_stock_id", raw["size_stock_id"])
        quantity = coerce_int("quantity", raw.get("quantity", 1))
        if quantity < 0:
            raise InvalidQuantityError("quantity must not be negative", details={"quantity": quantity})
        if quantity == 0:
            continue
        key = (size_stock_id, raw.get("barcode"))
        merged[key] = merged.get(key, 0) + quantity

    return [
        _build_line(store_id, size_stock_id, barcode, quantity)
        for (size_stock_id, barcode), quantity in merged.items()
    ]


def _quantity_in_cart(lines: list[CartLine], size_stock_id: int) -> int:
    return sum(line.quantity for line in lines if line.size_stock_id == size_stock_id)


def _check_store_stock(store_id: int, lines: list[CartLine]) -> None:
    for size_stock_id in {line.size_stock_id for line in lines}:
        wanted = _quantity_in_cart(lines, size_stock_id)
        available = inventory_service.get_store_quantity(store_id, size_stock_id)
        if wanted > available:
            raise InsufficientStockError(
                f"Only {available} items available in stock",
                details={
                    "store_id": store_id,
                    "size_stock_id": size_stock_id,
                    "requested": wanted,
                    "available": available,
                },
            )


def scan_into_cart(store_id: int, barcode, lines=None) -> list[CartLine]:
    """
    Add one scanned unit to the cart.

    A repeat scan increments the existing line. Scans beyond the store's
    quantity are rejected, never clamped.
    """
    store_service.require_active_store(store_id)
    cart = load_cart(store_id, lines)
    in_cart = {line.size_stock_id: _quantity_in_cart(cart, line.size_stock_id) for line in cart}
    ref = catalog_service.resolve_barcode(barcode, store_id=store_id, in_cart=in_cart)

    row = _store_row(store_id, ref.size_stock_id)
    if row is None:
        raise NotFoundError(
            f"Product {ref.barcode} is not stocked at this store",
            details={"barcode": ref.barcode, "store_id": store_id},
        )
    if row.quantity <= 0:
        raise InsufficientStockError(
            "Out of stock at this store",
            details={"barcode": ref.barcode, "store_id": store_id, "available": 0},
        )
    if _quantity_in_cart(cart, ref.size_stock_id) + 1 > row.quantity:
        raise InsufficientStockError(
            f"Only {row.quantity} items available in stock",
            details={"barcode": ref.barcode, "store_id": store_id, "available": row.quantity},
        )

    for line in cart:
        if line.size_stock_id == ref.size_stock_id and line.barcode == ref.barcode:
            line.quantity += 1
            return cart

    cart.append(_build_line(store_id, ref.size_stock_id, ref.barcode, 1))
    return cart


def set_line_quantity(store_id: int, lines, size_stock_id: int, quantity: int, barcode: str | None = None) -> list[CartLine]:
    """Edit a line's quantity in place; 0 removes the line."""
    if quantity < 0:
        raise InvalidQuantityError("quantity must not be negative", details={"quantity": quantity})
    cart = load_cart(store_id, lines)

    target = None
    for line in cart:
        if line.size_stock_id == size_stock_id and (barcode is None or line.barcode == barcode):
            target = line
            break
    if target is None:
        raise NotFoundError("Line not in cart", details={"size_stock_id": size_stock_id})

    if quantity == 0:
        cart.remove(target)
        return cart

    target.quantity = quantity
    _check_store_stock(store_id, cart)
    return cart


def _gst_for_store(store_id: int, gst_enabled: bool | None, gst_rate_bps: int | None) -> tuple[bool, int]:
    settings = store_service.get_tax_settings(store_id)
    enabled = settings.is_gst_enabled if gst_enabled is None else bool(gst_enabled)
    rate = settings.gst_rate_bps if gst_rate_bps is None else gst_rate_bps
    return enabled, rate


def quote_cart(
    store_id: int,
    lines,
    *,
    discount_type: str = DISCOUNT_NONE,
    discount_value: int = 0,
    gst_enabled: bool | None = None,
    gst_rate_bps: int | None = None,
) -> tuple[list[CartLine], PricingSummary]:
    store_service.require_active_store(store_id)
    cart = load_cart(store_id, lines)
    enabled, rate = _gst_for_store(store_id, gst_enabled, gst_rate_bps)
    pricing = calculate_totals(
        sum(line.line_total_cents for line in cart),
        discount_type=discount_type,
        discount_value=discount_value,
        gst_enabled=enabled,
        gst_rate_bps=rate,
    )
    return cart, pricing


def settle_cart(
    store_id: int,
    lines,
    *,
    discount_type: str = DISCOUNT_NONE,
    discount_value: int = 0,
    gst_enabled: bool | None = None,
    gst_rate_bps: int | None = None,
    customer_phone: str | None = None,
    customer_name: str | None = None,
    customer_email: str | None = None,
    payment_method: str = "cash",
) -> Invoice:
    """
    Settle a cart as one unit of work.

    Invoice, items, sales facts, customer attach and every store decrement
    commit together; any failure rolls all of them back.
    """
    store_service.require_active_store(store_id)
    enabled, rate = _gst_for_store(store_id, gst_enabled, gst_rate_bps)

    def _op():
        cart = load_cart(store_id, lines)
        if not cart:
            raise InvalidQuantityError("Cannot settle an empty cart")
        for line in cart:
            require_positive_quantity(line.quantity)
        _check_store_stock(store_id, cart)

        pricing = calculate_totals(
            sum(line.line_total_cents for line in cart),
            discount_type=discount_type,
            discount_value=discount_value,
            gst_enabled=enabled,
            gst_rate_bps=rate,
        )
        customer = customer_service.attach_customer(customer_phone, customer_name, customer_email)

        invoice = record_sale(
            store_id=store_id,
            lines=[line.to_recorded() for line in cart],
            pricing=pricing,
            customer=customer,
            payment_method=payment_method,
        )
        for line in cart:
            inventory_service.take_from_store(
                store_id,
                line.size_stock_id,
                line.quantity,
                invoice_id=invoice.id,
                note=invoice.invoice_number,
            )

        db.session.commit()
        logger.info(
            "Settled %s at store %d: %d lines, total=%d cents",
            invoice.invoice_number, store_id, len(cart), invoice.total_cents,
        )
        return invoice

    return run_with_retry(_op)


def get_invoice(invoice_id: int) -> Invoice:
    invoice = db.session.query(Invoice).filter_by(id=invoice_id).first()
    if not invoice:
        raise NotFoundError("Invoice not found", details={"invoice_id": invoice_id})
    return invoice


def get_invoice_by_number(invoice_number: str) -> Invoice:
    number = (invoice_number or "").strip()
    invoice = db.session.query(Invoice).filter_by(invoice_number=number).first()
    if not invoice:
        raise NotFoundError("Invoice not found", details={"invoice_number": number})
    return invoice
