# Overview: Service-layer operations for returns and exchanges against settled invoices.

from __future__ import annotations

import logging
from datetime import datetime

from flask import current_app
from sqlalchemy import update

from stockline.extensions import db
from stockline.errors import ExpiredError, InvalidQuantityError, NotFoundError
from stockline.models import (
    ExchangeItem,
    Invoice,
    InvoiceItem,
    ReturnItem,
    ReturnRecord,
)
from stockline.models.documents import RETURN_TYPE_EXCHANGE, RETURN_TYPE_RETURN
from stockline.models.inventory import MOVEMENT_EXCHANGE, MOVEMENT_RETURN
from stockline.services import checkout_service, customer_service, inventory_service, store_service
from stockline.services.concurrency import run_with_retry
from stockline.services.document_service import next_document_number
from stockline.time_utils import is_within_window, utcnow, window_start
from stockline.validation import ValidationError, coerce_int


logger = logging.getLogger(__name__)

RETURN_PREFIX = "R"


def _window_days() -> int:
    return current_app.config.get("RETURN_WINDOW_DAYS", 14)


def check_eligibility(invoice: Invoice, store_id: int, now: datetime | None = None) -> Invoice:
    """Same store and inside the return window, else NotFound / Expired."""
    if invoice.store_id != store_id:
        raise NotFoundError(
            "Invoice not found at this store",
            details={"invoice_number": invoice.invoice_number, "store_id": store_id},
        )
    days = _window_days()
    if not is_within_window(invoice.created_at, days, now):
        raise ExpiredError(
            f"Invoice {invoice.invoice_number} is older than {days} days and cannot be returned",
            details={"invoice_number": invoice.invoice_number, "window_days": days},
        )
    return invoice


def find_eligible_invoices(
    store_id: int,
    *,
    phone: str | None = None,
    invoice_number: str | None = None,
    now: datetime | None = None,
) -> list[Invoice]:
    """
    Search step of the returns desk.

    By invoice number: that single invoice, which must pass the window check.
    By phone: every invoice of the customer at this store inside the window.
    """
    store_service.require_active_store(store_id)

    if invoice_number:
        invoice = checkout_service.get_invoice_by_number(invoice_number)
        return [check_eligibility(invoice, store_id, now)]

    if phone:
        customer = customer_service.get_customer_by_phone(phone)
        return (
            db.session.query(Invoice)
            .filter(
                Invoice.customer_id == customer.id,
                Invoice.store_id == store_id,
                Invoice.created_at > window_start(_window_days(), now),
            )
            .order_by(Invoice.created_at.desc(), Invoice.id.desc())
            .all()
        )

    raise ValidationError("phone or invoice_number is required")


def returnable_quantities(invoice: Invoice) -> dict[int, int]:
    """invoice_item_id -> units still returnable (sold minus already returned)."""
    return {item.id: item.quantity - (item.returned_quantity or 0) for item in invoice.items}


def _claim_returned_units(item_id: int, quantity: int) -> None:
    """
    Count `quantity` more units of an invoice line as returned.

    The bound is checked by the UPDATE itself, so two returns settling the
    same line at once cannot both take the last units.
    """
    stmt = (
        update(InvoiceItem)
        .where(
            InvoiceItem.id == item_id,
            InvoiceItem.returned_quantity + quantity <= InvoiceItem.quantity,
        )
        .values(returned_quantity=InvoiceItem.returned_quantity + quantity)
        .execution_options(synchronize_session="evaluate")
    )
    result = db.session.execute(stmt)
    if result.rowcount == 0:
        returnable = (
            db.session.query(InvoiceItem.quantity - InvoiceItem.returned_quantity)
            .filter(InvoiceItem.id == item_id)
            .scalar()
        )
        raise InvalidQuantityError(
            f"Cannot return {quantity}; only {returnable} returnable on this line",
            details={"invoice_item_id": item_id, "requested": quantity, "returnable": returnable},
        )


def invoice_for_return(store_id: int, invoice_id: int, now: datetime | None = None) -> dict:
    invoice = check_eligibility(checkout_service.get_invoice(invoice_id), store_id, now)
    remaining = returnable_quantities(invoice)
    data = invoice.to_dict(include_items=True)
    for item in data["items"]:
        item["returnable_quantity"] = remaining.get(item["id"], 0)
    return data


def scan_exchange_item(store_id: int, barcode, lines=None):
    """Exchange replacements scan exactly like checkout; not tied to the invoice."""
    return checkout_service.scan_into_cart(store_id, barcode, lines)


def _selected_quantities(invoice: Invoice, raw_lines) -> dict[int, int]:
    if not isinstance(raw_lines, list):
        raise ValidationError("lines must be a list")

    item_ids = {item.id for item in invoice.items}
    selected: dict[int, int] = {}
    for raw in raw_lines:
        if not isinstance(raw, dict) or raw.get("invoice_item_id") is None:
            raise ValidationError("Each line needs an invoice_item_id")
        item_id = coerce_int("invoice_item_id", raw["invoice_item_id"])
        if isinstance(raw.get("quantity"), bool):
            raise InvalidQuantityError("quantity must be an integer")
        quantity = coerce_int("quantity", raw.get("quantity", 0))
        if item_id not in item_ids:
            raise NotFoundError(
                "Item not found on this invoice",
                details={"invoice_item_id": item_id, "invoice_id": invoice.id},
            )
        if quantity < 0:
            raise InvalidQuantityError("Return quantity must not be negative", details={"quantity": quantity})
        if quantity:
            selected[item_id] = selected.get(item_id, 0) + quantity

    if not selected:
        raise InvalidQuantityError("Select at least one item to return")
    return selected


def settle_return(
    store_id: int,
    invoice_id: int,
    lines,
    *,
    return_type: str = RETURN_TYPE_RETURN,
    exchange_lines=None,
    reason: str | None = None,
    now: datetime | None = None,
) -> ReturnRecord:
    """
    Settle a return or exchange as one unit of work.

    Returned units go back on this store's shelf. Exchange units are taken
    from this store's stock with the same conditional decrement as checkout.
    net_amount_cents = exchange value - refund (> 0 customer pays).
    """
    if return_type not in (RETURN_TYPE_RETURN, RETURN_TYPE_EXCHANGE):
        raise ValidationError("return_type must be 'return' or 'exchange'")

    def _op():
        store_service.require_active_store(store_id)
        invoice = check_eligibility(checkout_service.get_invoice(invoice_id), store_id, now)

        selected = _selected_quantities(invoice, lines)
        remaining = returnable_quantities(invoice)
        for item_id, quantity in selected.items():
            if quantity > remaining[item_id]:
                raise InvalidQuantityError(
                    f"Cannot return {quantity}; only {remaining[item_id]} returnable on this line",
                    details={"invoice_item_id": item_id, "requested": quantity, "returnable": remaining[item_id]},
                )

        exchange_cart = []
        if return_type == RETURN_TYPE_EXCHANGE:
            exchange_cart = checkout_service.load_cart(store_id, exchange_lines or [])
            if not exchange_cart:
                raise ValidationError("An exchange needs at least one replacement item")

        for item_id, quantity in selected.items():
            _claim_returned_units(item_id, quantity)

        items = {item.id: item for item in invoice.items}
        total_refund = sum(items[item_id].unit_price_cents * qty for item_id, qty in selected.items())
        total_exchange = sum(line.line_total_cents for line in exchange_cart)

        record = ReturnRecord(
            document_number=next_document_number(
                store_id=store_id, document_type="RETURN", prefix=RETURN_PREFIX
            ),
            store_id=store_id,
            customer_id=invoice.customer_id,
            original_invoice_id=invoice.id,
            return_type=return_type,
            reason=(reason or "").strip() or None,
            total_refund_cents=total_refund,
            total_exchange_cents=total_exchange,
            net_amount_cents=total_exchange - total_refund,
            created_at=now or utcnow(),
        )
        db.session.add(record)
        db.session.flush()

        for item_id, quantity in selected.items():
            item = items[item_id]
            db.session.add(ReturnItem(
                return_id=record.id,
                invoice_item_id=item.id,
                size_stock_id=item.size_stock_id,
                quantity=quantity,
                original_price_cents=item.unit_price_cents,
                refund_amount_cents=item.unit_price_cents * quantity,
            ))
            inventory_service.put_into_store(
                store_id,
                item.size_stock_id,
                quantity,
                movement_type=MOVEMENT_RETURN,
                return_id=record.id,
                note=record.document_number,
            )

        for line in exchange_cart:
            db.session.add(ExchangeItem(
                return_id=record.id,
                size_stock_id=line.size_stock_id,
                barcode=line.barcode,
                quantity=line.quantity,
                price_cents=line.unit_price_cents,
                line_total_cents=line.line_total_cents,
            ))
            inventory_service.take_from_store(
                store_id,
                line.size_stock_id,
                line.quantity,
                movement_type=MOVEMENT_EXCHANGE,
                return_id=record.id,
                note=record.document_number,
            )

        db.session.commit()
        logger.info(
            "Settled %s %s against %s: refund=%d exchange=%d",
            return_type, record.document_number, invoice.invoice_number, total_refund, total_exchange,
        )
        return record

    return run_with_retry(_op)


def get_return(return_id: int) -> ReturnRecord:
    record = db.session.query(ReturnRecord).filter_by(id=return_id).first()
    if not record:
        raise NotFoundError("Return not found", details={"return_id": return_id})
    return record
