from __future__ import annotations

from ..extensions import db
from stockline.time_utils import to_utc_z


DISCOUNT_NONE = "none"
DISCOUNT_PERCENTAGE = "percentage"
DISCOUNT_FIXED = "fixed"
DISCOUNT_TYPES = (DISCOUNT_NONE, DISCOUNT_PERCENTAGE, DISCOUNT_FIXED)


class Invoice(db.Model):
    """
    Settled checkout. Append-only.

    discount_value is in basis points for percentage discounts and in cents
    for fixed discounts. All amounts are cents.

    Customer name/phone/email are snapshotted so the printed invoice stays
    stable when the customer record is later edited.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.Index("ix_invoices_store_created", "store_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(64), nullable=False, unique=True, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    customer_name = db.Column(db.String(160), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)
    customer_email = db.Column(db.String(255), nullable=True)

    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_type = db.Column(db.String(16), nullable=False, default=DISCOUNT_NONE)
    discount_value = db.Column(db.Integer, nullable=False, default=0)
    discount_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    gst_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    gst_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(32), nullable=False, default="cash")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    store = db.relationship("Store", backref=db.backref("invoices", lazy=True))
    customer = db.relationship("Customer", backref=db.backref("invoices", lazy=True))
    items = db.relationship("InvoiceItem", backref="invoice", lazy=True, order_by="InvoiceItem.id")

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "store_id": self.store_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "customer_email": self.customer_email,
            "subtotal_cents": self.subtotal_cents,
            "discount_type": self.discount_type,
            "discount_value": self.discount_value,
            "discount_amount_cents": self.discount_amount_cents,
            "gst_rate_bps": self.gst_rate_bps,
            "gst_amount_cents": self.gst_amount_cents,
            "total_cents": self.total_cents,
            "payment_method": self.payment_method,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class InvoiceItem(db.Model):
    """
    Denormalized snapshot of one cart line at settlement time.

    returned_quantity only moves through return_service with a conditional
    UPDATE, so concurrent returns can never exceed the units sold.
    """
    __tablename__ = "invoice_items"
    __table_args__ = (
        db.CheckConstraint(
            "returned_quantity >= 0 AND returned_quantity <= quantity",
            name="ck_invoice_items_returned_within_sold",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    size_stock_id = db.Column(db.Integer, db.ForeignKey("size_stock.id"), nullable=False, index=True)

    product_category = db.Column(db.String(120), nullable=False)
    product_name = db.Column(db.String(160), nullable=False)
    product_color = db.Column(db.String(80), nullable=False)
    product_size = db.Column(db.String(50), nullable=False)
    barcode = db.Column(db.String(64), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)
    returned_quantity = db.Column(db.Integer, nullable=False, default=0, server_default="0")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "size_stock_id": self.size_stock_id,
            "product_category": self.product_category,
            "product_name": self.product_name,
            "product_color": self.product_color,
            "product_size": self.product_size,
            "barcode": self.barcode,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
            "returned_quantity": self.returned_quantity,
        }


class SalesTransaction(db.Model):
    """
    Reporting fact: one row per unit line sold.

    Cart settlements carry the invoice and the pro-rata share of the cart
    discount and GST. Single scans (SellAtStore) write a one-line invoice
    with no discount or GST, so final_amount == price.
    Legacy barcode-group sales also record the group.

    Not a source of truth for stock; pool quantities live on size_stock and
    store_inventory.
    """
    __tablename__ = "sales_transactions"
    __table_args__ = (
        db.Index("ix_sales_txns_store_created", "store_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True, index=True)
    size_stock_id = db.Column(db.Integer, db.ForeignKey("size_stock.id"), nullable=True, index=True)
    barcode_group_id = db.Column(db.Integer, db.ForeignKey("barcode_groups.id"), nullable=True, index=True)
    barcode = db.Column(db.String(64), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_type = db.Column(db.String(16), nullable=False, default=DISCOUNT_NONE)
    discount_value = db.Column(db.Integer, nullable=False, default=0)
    discount_amount_cents = db.Column(db.Integer, nullable=True, default=0)
    gst_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    gst_amount_cents = db.Column(db.Integer, nullable=True, default=0)
    final_amount_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    store = db.relationship("Store")
    size_stock = db.relationship("SizeStockUnit")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "invoice_id": self.invoice_id,
            "size_stock_id": self.size_stock_id,
            "barcode_group_id": self.barcode_group_id,
            "barcode": self.barcode,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "subtotal_cents": self.subtotal_cents,
            "discount_type": self.discount_type,
            "discount_value": self.discount_value,
            "discount_amount_cents": self.discount_amount_cents,
            "gst_rate_bps": self.gst_rate_bps,
            "gst_amount_cents": self.gst_amount_cents,
            "final_amount_cents": self.final_amount_cents,
            "created_at": to_utc_z(self.created_at),
        }
