# Overview: Transaction recorder; writes invoices, invoice items and sales facts.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from flask import current_app

from stockline.extensions import db
from stockline.models import Customer, Invoice, InvoiceItem, SalesTransaction
from stockline.services.document_service import next_document_number
from stockline.services.pricing import PricingSummary, apportion
from stockline.time_utils import utcnow
"""
Recorder rules (authoritative)

- Runs inside the caller's transaction; never commits.
- One InvoiceItem and one SalesTransaction per line.
- Line discount/GST are the pro-rata shares of the cart totals, so summing
  the facts of an invoice reproduces its discount, GST and total exactly.
"""


@dataclass
class RecordedLine:
    size_stock_id: int
    barcode: str
    quantity: int
    unit_price_cents: int
    category: str
    name: str
    color: str
    size: str
    barcode_group_id: int | None = None

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity


def record_sale(
    *,
    store_id: int,
    lines: list[RecordedLine],
    pricing: PricingSummary,
    customer: Customer | None = None,
    payment_method: str = "cash",
    created_at: datetime | None = None,
) -> Invoice:
    created_at = created_at or utcnow()
    invoice_number = next_document_number(
        store_id=store_id,
        document_type="INVOICE",
        prefix=current_app.config.get("INVOICE_PREFIX", "KF"),
    )

    invoice = Invoice(
        invoice_number=invoice_number,
        store_id=store_id,
        customer_id=customer.id if customer else None,
        customer_name=customer.name if customer else None,
        customer_phone=customer.phone if customer else None,
        customer_email=customer.email if customer else None,
        subtotal_cents=pricing.subtotal_cents,
        discount_type=pricing.discount_type,
        discount_value=pricing.discount_value,
        discount_amount_cents=pricing.discount_amount_cents,
        gst_rate_bps=pricing.gst_rate_bps,
        gst_amount_cents=pricing.gst_amount_cents,
        total_cents=pricing.total_cents,
        payment_method=payment_method or "cash",
        created_at=created_at,
    )
    db.session.add(invoice)
    db.session.flush()

    weights = [line.line_total_cents for line in lines]
    discounts = apportion(pricing.discount_amount_cents, weights)
    taxes = apportion(pricing.gst_amount_cents, weights)

    for line, line_discount, line_gst in zip(lines, discounts, taxes):
        db.session.add(InvoiceItem(
            invoice_id=invoice.id,
            size_stock_id=line.size_stock_id,
            product_category=line.category,
            product_name=line.name,
            product_color=line.color,
            product_size=line.size,
            barcode=line.barcode,
            quantity=line.quantity,
            unit_price_cents=line.unit_price_cents,
            line_total_cents=line.line_total_cents,
        ))
        db.session.add(SalesTransaction(
            store_id=store_id,
            invoice_id=invoice.id,
            size_stock_id=line.size_stock_id,
            barcode_group_id=line.barcode_group_id,
            barcode=line.barcode,
            quantity=line.quantity,
            price_cents=line.unit_price_cents,
            subtotal_cents=line.line_total_cents,
            discount_type=pricing.discount_type,
            discount_value=pricing.discount_value,
            discount_amount_cents=line_discount,
            gst_rate_bps=pricing.gst_rate_bps,
            gst_amount_cents=line_gst,
            final_amount_cents=line.line_total_cents - line_discount + line_gst,
            created_at=created_at,
        ))

    db.session.flush()
    return invoice
