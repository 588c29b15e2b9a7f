from __future__ import annotations

from ..extensions import db
from stockline.time_utils import to_utc_z


# Pools
POOL_WAREHOUSE = "WAREHOUSE"
POOL_STORE = "STORE"

# Movement types
MOVEMENT_INITIAL = "INITIAL"
MOVEMENT_ADJUST = "ADJUST"
MOVEMENT_DISTRIBUTE = "DISTRIBUTE"
MOVEMENT_SALE = "SALE"
MOVEMENT_RETURN = "RETURN"
MOVEMENT_EXCHANGE = "EXCHANGE"


class InventoryMovement(db.Model):
    """
    Append-only audit of every quantity change on either pool.

    A distribution writes two rows in the same transaction (warehouse -N,
    store +N), so summing quantity_delta over DISTRIBUTE rows for a unit is
    always zero. balance_after is the pool quantity once the change landed.

    IMMUTABLE: Records are never updated or deleted. The pool quantities in
    size_stock / store_inventory stay the source of truth.
    """
    __tablename__ = "inventory_movements"
    __table_args__ = (
        db.Index("ix_inv_movements_unit_occurred", "size_stock_id", "occurred_at"),
        db.Index("ix_inv_movements_store_occurred", "store_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    size_stock_id = db.Column(db.Integer, db.ForeignKey("size_stock.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=True, index=True)  # NULL for warehouse

    pool = db.Column(db.String(16), nullable=False)
    movement_type = db.Column(db.String(16), nullable=False, index=True)
    quantity_delta = db.Column(db.Integer, nullable=False)
    balance_after = db.Column(db.Integer, nullable=False)

    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True, index=True)
    return_id = db.Column(db.Integer, db.ForeignKey("returns.id"), nullable=True, index=True)
    note = db.Column(db.String(255), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "size_stock_id": self.size_stock_id,
            "store_id": self.store_id,
            "pool": self.pool,
            "movement_type": self.movement_type,
            "quantity_delta": self.quantity_delta,
            "balance_after": self.balance_after,
            "invoice_id": self.invoice_id,
            "return_id": self.return_id,
            "note": self.note,
            "occurred_at": to_utc_z(self.occurred_at),
        }
