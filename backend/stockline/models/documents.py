from __future__ import annotations

from ..extensions import db
from stockline.time_utils import to_utc_z


RETURN_TYPE_RETURN = "return"
RETURN_TYPE_EXCHANGE = "exchange"
RETURN_STATUS_COMPLETED = "completed"


class ReturnRecord(db.Model):
    """
    Settled return or exchange against one original invoice.

    Append-only: created in one transaction together with its items and the
    store inventory movements it causes.

    AMOUNTS (cents):
    - total_refund_cents:   sum(return qty * original unit price)
    - total_exchange_cents: sum(exchange qty * current unit price), 0 for returns
    - net_amount_cents:     total_exchange_cents - total_refund_cents
                            (> 0 collect from customer, < 0 pay out)
    """
    __tablename__ = "returns"
    __table_args__ = (
        db.Index("ix_returns_store_created", "store_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_number = db.Column(db.String(64), nullable=False, unique=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    original_invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)

    return_type = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=RETURN_STATUS_COMPLETED)
    reason = db.Column(db.Text, nullable=True)

    total_refund_cents = db.Column(db.Integer, nullable=False, default=0)
    total_exchange_cents = db.Column(db.Integer, nullable=False, default=0)
    net_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    original_invoice = db.relationship("Invoice", backref=db.backref("returns", lazy=True))
    items = db.relationship("ReturnItem", backref="return_record", lazy=True, order_by="ReturnItem.id")
    exchange_items = db.relationship("ExchangeItem", backref="return_record", lazy=True, order_by="ExchangeItem.id")

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "document_number": self.document_number,
            "store_id": self.store_id,
            "customer_id": self.customer_id,
            "original_invoice_id": self.original_invoice_id,
            "return_type": self.return_type,
            "status": self.status,
            "reason": self.reason,
            "total_refund_cents": self.total_refund_cents,
            "total_exchange_cents": self.total_exchange_cents,
            "net_amount_cents": self.net_amount_cents,
            "amount_due_cents": abs(self.net_amount_cents),
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
            data["exchange_items"] = [item.to_dict() for item in self.exchange_items]
        return data


class ReturnItem(db.Model):
    """Units of one original invoice line coming back to the store shelf."""
    __tablename__ = "return_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    return_id = db.Column(db.Integer, db.ForeignKey("returns.id"), nullable=False, index=True)
    invoice_item_id = db.Column(db.Integer, db.ForeignKey("invoice_items.id"), nullable=False, index=True)
    size_stock_id = db.Column(db.Integer, db.ForeignKey("size_stock.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    original_price_cents = db.Column(db.Integer, nullable=False)
    refund_amount_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_id": self.return_id,
            "invoice_item_id": self.invoice_item_id,
            "size_stock_id": self.size_stock_id,
            "quantity": self.quantity,
            "original_price_cents": self.original_price_cents,
            "refund_amount_cents": self.refund_amount_cents,
        }


class ExchangeItem(db.Model):
    """Replacement units handed out as part of an exchange."""
    __tablename__ = "exchange_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    return_id = db.Column(db.Integer, db.ForeignKey("returns.id"), nullable=False, index=True)
    size_stock_id = db.Column(db.Integer, db.ForeignKey("size_stock.id"), nullable=False)
    barcode = db.Column(db.String(64), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_id": self.return_id,
            "size_stock_id": self.size_stock_id,
            "barcode": self.barcode,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "line_total_cents": self.line_total_cents,
        }


class DocumentSequence(db.Model):
    """
    Atomic per-store document sequences.

    WHY: Prevent race conditions when generating invoice and return numbers.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("store_id", "document_type", name="uq_doc_sequences_store_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "document_type": self.document_type,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
