from __future__ import annotations

from ..extensions import db
from stockline.time_utils import to_utc_z


class Category(db.Model):
    """Top of the catalog tree. Owns variants."""
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def __repr__(self) -> str:
        return f"<Category id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Variant(db.Model):
    """A product line within a category (e.g. "Slim Fit Chinos")."""
    __tablename__ = "variants"
    __table_args__ = (
        db.UniqueConstraint("category_id", "name", name="uq_variants_category_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False, index=True)
    name = db.Column(db.String(160), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    category = db.relationship("Category", backref=db.backref("variants", lazy=True, order_by="Variant.id"))

    def __repr__(self) -> str:
        return f"<Variant id={self.id} name={self.name!r} category_id={self.category_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category_id": self.category_id,
            "name": self.name,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Color(db.Model):
    __tablename__ = "colors"
    __table_args__ = (
        db.UniqueConstraint("variant_id", "name", name="uq_colors_variant_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("variants.id"), nullable=False, index=True)
    name = db.Column(db.String(80), nullable=False)
    hex = db.Column(db.String(7), nullable=False, default="#000000")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    variant = db.relationship("Variant", backref=db.backref("colors", lazy=True, order_by="Color.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "variant_id": self.variant_id,
            "name": self.name,
            "hex": self.hex,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Size(db.Model):
    """
    Global size dimension, shared by every variant and color.

    sort_order drives display order and the order in which legacy barcode
    groups pick a size at the till.
    """
    __tablename__ = "sizes"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(10), nullable=False, unique=True)  # XS, S, M ...
    name = db.Column(db.String(50), nullable=False)
    sort_order = db.Column(db.Integer, nullable=False, default=0, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "sort_order": self.sort_order,
        }


class SizeStockUnit(db.Model):
    """
    The sellable SKU: one (variant, color, size) triple with one barcode,
    one price and the warehouse pool quantity.

    INVARIANTS:
    - At most one unit per (variant, color, size)
    - Barcode is globally unique and stored trimmed
    - warehouse_stock >= 0; it only moves through inventory_service
      (distribute, direct adjust) using conditional updates
    """
    __tablename__ = "size_stock"
    __table_args__ = (
        db.UniqueConstraint("variant_id", "color_id", "size_id", name="uq_size_stock_variant_color_size"),
        db.CheckConstraint("warehouse_stock >= 0", name="ck_size_stock_warehouse_nonneg"),
        db.CheckConstraint("price_cents >= 0", name="ck_size_stock_price_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("variants.id"), nullable=False, index=True)
    color_id = db.Column(db.Integer, db.ForeignKey("colors.id"), nullable=False, index=True)
    size_id = db.Column(db.Integer, db.ForeignKey("sizes.id"), nullable=False, index=True)

    barcode = db.Column(db.String(64), nullable=False, unique=True, index=True)
    price_cents = db.Column(db.Integer, nullable=False)
    warehouse_stock = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    variant = db.relationship("Variant", backref=db.backref("size_stock_units", lazy=True))
    color = db.relationship("Color", backref=db.backref("size_stock_units", lazy=True))
    size = db.relationship("Size")
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<SizeStockUnit id={self.id} barcode={self.barcode!r} warehouse_stock={self.warehouse_stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "variant_id": self.variant_id,
            "color_id": self.color_id,
            "size_id": self.size_id,
            "barcode": self.barcode,
            "price_cents": self.price_cents,
            "warehouse_stock": self.warehouse_stock,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

    def describe(self) -> dict:
        """Denormalized catalog names, as snapshotted onto invoice items."""
        return {
            "category": self.variant.category.name,
            "variant": self.variant.name,
            "color": self.color.name,
            "size": self.size.name,
        }


barcode_group_sizes = db.Table(
    "barcode_group_sizes",
    db.Column("barcode_group_id", db.Integer, db.ForeignKey("barcode_groups.id"), primary_key=True),
    db.Column("size_id", db.Integer, db.ForeignKey("sizes.id"), primary_key=True),
)


class BarcodeGroup(db.Model):
    """
    Legacy: one barcode and one price shared by several sizes of a variant.

    DEPRECATED: kept so barcodes printed before per-size units existed still
    scan. New stock is always a SizeStockUnit. Resolution goes through
    catalog_service.resolve_barcode, where a per-size match always wins.
    """
    __tablename__ = "barcode_groups"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("variants.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    barcode = db.Column(db.String(64), nullable=False, unique=True, index=True)
    price_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    variant = db.relationship("Variant", backref=db.backref("barcode_groups", lazy=True))
    sizes = db.relationship("Size", secondary=barcode_group_sizes, order_by="Size.sort_order")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "variant_id": self.variant_id,
            "name": self.name,
            "barcode": self.barcode,
            "price_cents": self.price_cents,
            "size_ids": [s.id for s in self.sizes],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
