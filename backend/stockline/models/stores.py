from __future__ import annotations

from ..extensions import db
from stockline.time_utils import to_utc_z


class Store(db.Model):
    """
    Retail store. Holds per-unit stock in StoreInventory, populated only by
    warehouse distribution.

    Inactive stores keep their history but accept no distribution or sales.
    """
    __tablename__ = "stores"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    location = db.Column(db.String(255), nullable=False, default="")
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Store id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StoreInventory(db.Model):
    """
    Store pool quantity for one SizeStockUnit.

    Created on first distribution; mutated only by conditional UPDATEs in
    inventory_service so that concurrent sales cannot drive it below zero.
    """
    __tablename__ = "store_inventory"
    __table_args__ = (
        db.UniqueConstraint("store_id", "size_stock_id", name="uq_store_inventory_store_unit"),
        db.CheckConstraint("quantity >= 0", name="ck_store_inventory_quantity_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    size_stock_id = db.Column(db.Integer, db.ForeignKey("size_stock.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    store = db.relationship("Store", backref=db.backref("inventory", lazy=True))
    size_stock = db.relationship("SizeStockUnit")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "size_stock_id": self.size_stock_id,
            "quantity": self.quantity,
            "version_id": self.version_id,
            "updated_at": to_utc_z(self.updated_at),
        }


class StoreTaxSettings(db.Model):
    """Per-store GST configuration used as the checkout default."""
    __tablename__ = "store_tax_settings"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, unique=True)
    gst_rate_bps = db.Column(db.Integer, nullable=False, default=1800)  # 1800 = 18%
    gst_number = db.Column(db.String(32), nullable=True)
    is_gst_enabled = db.Column(db.Boolean, nullable=False, default=True)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    store = db.relationship("Store", backref=db.backref("tax_settings", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "store_id": self.store_id,
            "gst_rate_bps": self.gst_rate_bps,
            "gst_number": self.gst_number,
            "is_gst_enabled": self.is_gst_enabled,
            "updated_at": to_utc_z(self.updated_at),
        }
