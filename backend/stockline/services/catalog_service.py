# Overview: Service-layer operations for the catalog tree and barcode resolution.

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, asdict

from sqlalchemy import and_
from sqlalchemy.exc import IntegrityError

from stockline.extensions import db
from stockline.errors import DuplicateBarcodeError, InsufficientStockError, NotFoundError
from stockline.models import (
    BarcodeGroup,
    Category,
    Color,
    Size,
    SizeStockUnit,
    StoreInventory,
    Variant,
    barcode_group_sizes,
)
from stockline.models.inventory import MOVEMENT_INITIAL, POOL_WAREHOUSE
from stockline.services.concurrency import run_with_retry
from stockline.services.ledger_service import append_movement
from stockline.validation import ConflictError, ValidationError


logger = logging.getLogger(__name__)

KIND_PER_SIZE = "PER_SIZE"
KIND_GROUPED_LEGACY = "GROUPED_LEGACY"

DEFAULT_SIZES = (
    ("XS", "Extra Small", 1),
    ("S", "Small", 2),
    ("M", "Medium", 3),
    ("L", "Large", 4),
    ("XL", "Extra Large", 5),
    ("XXL", "Double Extra Large", 6),
)

GENERATED_BARCODE_LENGTH = 12


@dataclass(frozen=True)
class SkuRef:
    """
    A scanned barcode resolved to something sellable.

    PER_SIZE: the barcode belongs to one SizeStockUnit.
    GROUPED_LEGACY: the barcode belongs to a BarcodeGroup; size_stock_id is
    the unit picked for the scan (first size in sort order with stock) and
    price_cents is the group price.
    """
    kind: str
    barcode: str
    size_stock_id: int | None
    price_cents: int
    barcode_group_id: int | None = None
    size_id: int | None = None

    @property
    def is_legacy(self) -> bool:
        return self.kind == KIND_GROUPED_LEGACY

    def to_dict(self) -> dict:
        return asdict(self)


def normalize_barcode(barcode) -> str:
    value = str(barcode or "").strip()
    if not value:
        raise ValidationError("barcode is required")
    return value


def _barcode_in_use(barcode: str, *, exclude_size_stock_id: int | None = None) -> bool:
    unit_query = db.session.query(SizeStockUnit.id).filter(SizeStockUnit.barcode == barcode)
    if exclude_size_stock_id is not None:
        unit_query = unit_query.filter(SizeStockUnit.id != exclude_size_stock_id)
    if unit_query.first() is not None:
        return True
    return db.session.query(BarcodeGroup.id).filter(BarcodeGroup.barcode == barcode).first() is not None


def generate_barcode() -> str:
    """Random numeric barcode not used by any unit or group."""
    for _ in range(10):
        candidate = secrets.choice("123456789") + "".join(
            secrets.choice("0123456789") for _ in range(GENERATED_BARCODE_LENGTH - 1)
        )
        if not _barcode_in_use(candidate):
            return candidate
    raise ConflictError("Could not generate a unique barcode")


# ---------------------------------------------------------------------------
# Catalog writes
# ---------------------------------------------------------------------------

def create_category(name: str) -> Category:
    def _op():
        if db.session.query(Category.id).filter_by(name=name).first():
            raise ConflictError(f"Category already exists: {name}")
        category = Category(name=name)
        db.session.add(category)
        db.session.commit()
        return category

    return run_with_retry(_op)


def get_category(category_id: int) -> Category:
    category = db.session.query(Category).filter_by(id=category_id).first()
    if not category:
        raise NotFoundError("Category not found", details={"category_id": category_id})
    return category


def create_variant(category_id: int, name: str) -> Variant:
    def _op():
        get_category(category_id)
        if db.session.query(Variant.id).filter_by(category_id=category_id, name=name).first():
            raise ConflictError(f"Variant already exists in category: {name}")
        variant = Variant(category_id=category_id, name=name)
        db.session.add(variant)
        db.session.commit()
        return variant

    return run_with_retry(_op)


def get_variant(variant_id: int) -> Variant:
    variant = db.session.query(Variant).filter_by(id=variant_id).first()
    if not variant:
        raise NotFoundError("Variant not found", details={"variant_id": variant_id})
    return variant


def create_color(variant_id: int, name: str, hex: str | None = None) -> Color:
    def _op():
        get_variant(variant_id)
        if db.session.query(Color.id).filter_by(variant_id=variant_id, name=name).first():
            raise ConflictError(f"Color already exists for variant: {name}")
        color = Color(variant_id=variant_id, name=name, hex=hex or "#000000")
        db.session.add(color)
        db.session.commit()
        return color

    return run_with_retry(_op)


def create_size(code: str, name: str, sort_order: int = 0) -> Size:
    def _op():
        if db.session.query(Size.id).filter_by(code=code).first():
            raise ConflictError(f"Size already exists: {code}")
        size = Size(code=code, name=name, sort_order=sort_order)
        db.session.add(size)
        db.session.commit()
        return size

    return run_with_retry(_op)


def ensure_default_sizes() -> int:
    """Seed XS..XXL. Returns how many sizes were created."""
    def _op():
        existing = {code for (code,) in db.session.query(Size.code).all()}
        created = 0
        for code, name, sort_order in DEFAULT_SIZES:
            if code in existing:
                continue
            db.session.add(Size(code=code, name=name, sort_order=sort_order))
            created += 1
        db.session.commit()
        return created

    return run_with_retry(_op)


def list_sizes() -> list[Size]:
    return db.session.query(Size).order_by(Size.sort_order.asc(), Size.id.asc()).all()


def create_size_stock_unit(
    *,
    variant_id: int,
    color_id: int,
    size_id: int,
    barcode: str,
    price_cents: int,
    warehouse_stock: int = 0,
) -> SizeStockUnit:
    """
    Create the sellable unit for one (variant, color, size).

    Raises DuplicateBarcodeError when the barcode is already assigned to a
    unit or a legacy barcode group. Opening stock is written to the
    movement log as INITIAL.
    """
    barcode = normalize_barcode(barcode)
    if warehouse_stock < 0:
        raise ValidationError("warehouse_stock must be >= 0")

    def _op():
        get_variant(variant_id)
        color = db.session.query(Color).filter_by(id=color_id).first()
        if not color or color.variant_id != variant_id:
            raise NotFoundError("Color not found for variant", details={"color_id": color_id})
        if not db.session.query(Size.id).filter_by(id=size_id).first():
            raise NotFoundError("Size not found", details={"size_id": size_id})

        if _barcode_in_use(barcode):
            raise DuplicateBarcodeError(f"Barcode already exists: {barcode}", details={"barcode": barcode})

        existing = (
            db.session.query(SizeStockUnit.id)
            .filter_by(variant_id=variant_id, color_id=color_id, size_id=size_id)
            .first()
        )
        if existing:
            raise ConflictError("A unit already exists for this variant, color and size")

        unit = SizeStockUnit(
            variant_id=variant_id,
            color_id=color_id,
            size_id=size_id,
            barcode=barcode,
            price_cents=price_cents,
            warehouse_stock=warehouse_stock,
        )
        db.session.add(unit)
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise DuplicateBarcodeError(
                f"Barcode already exists: {barcode}", details={"barcode": barcode}
            ) from exc

        if warehouse_stock:
            append_movement(
                size_stock_id=unit.id,
                pool=POOL_WAREHOUSE,
                movement_type=MOVEMENT_INITIAL,
                quantity_delta=warehouse_stock,
                balance_after=warehouse_stock,
                note="Opening stock",
            )

        db.session.commit()
        logger.info("Created size-stock unit %s barcode=%s", unit.id, barcode)
        return unit

    return run_with_retry(_op)


def get_size_stock(size_stock_id: int) -> SizeStockUnit:
    unit = db.session.query(SizeStockUnit).filter_by(id=size_stock_id).first()
    if not unit:
        raise NotFoundError("Size-stock unit not found", details={"size_stock_id": size_stock_id})
    return unit


def update_size_stock(size_stock_id: int, *, price_cents: int | None = None, barcode: str | None = None) -> SizeStockUnit:
    """Price and barcode edits. Warehouse quantity only moves through inventory_service."""
    def _op():
        unit = get_size_stock(size_stock_id)

        if barcode is not None:
            cleaned = normalize_barcode(barcode)
            if cleaned != unit.barcode:
                if _barcode_in_use(cleaned, exclude_size_stock_id=unit.id):
                    raise DuplicateBarcodeError(f"Barcode already exists: {cleaned}", details={"barcode": cleaned})
                unit.barcode = cleaned
        if price_cents is not None:
            unit.price_cents = price_cents

        db.session.commit()
        return unit

    return run_with_retry(_op)


def create_barcode_group(
    *,
    variant_id: int,
    name: str,
    size_ids: list[int],
    price_cents: int,
    barcode: str | None = None,
) -> BarcodeGroup:
    """Legacy shared barcode for several sizes of one variant."""
    if not size_ids:
        raise ValidationError("size_ids must not be empty")

    def _op():
        get_variant(variant_id)
        sizes = db.session.query(Size).filter(Size.id.in_(size_ids)).all()
        if len(sizes) != len(set(size_ids)):
            raise NotFoundError("One or more sizes not found", details={"size_ids": size_ids})

        code = normalize_barcode(barcode) if barcode else generate_barcode()
        if _barcode_in_use(code):
            raise DuplicateBarcodeError(f"Barcode already exists: {code}", details={"barcode": code})

        group = BarcodeGroup(variant_id=variant_id, name=name, barcode=code, price_cents=price_cents)
        group.sizes = sizes
        db.session.add(group)
        db.session.commit()
        return group

    return run_with_retry(_op)


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

def _pick_group_unit(
    group: BarcodeGroup,
    store_id: int | None,
    in_cart: dict[int, int] | None = None,
) -> SizeStockUnit | None:
    query = (
        db.session.query(SizeStockUnit)
        .join(Size, Size.id == SizeStockUnit.size_id)
        .join(
            barcode_group_sizes,
            and_(
                barcode_group_sizes.c.size_id == SizeStockUnit.size_id,
                barcode_group_sizes.c.barcode_group_id == group.id,
            ),
        )
        .filter(SizeStockUnit.variant_id == group.variant_id)
    )
    query = query.order_by(Size.sort_order.asc(), SizeStockUnit.id.asc())
    if store_id is None:
        return query.first()

    in_cart = in_cart or {}
    rows = (
        query.join(
            StoreInventory,
            and_(
                StoreInventory.size_stock_id == SizeStockUnit.id,
                StoreInventory.store_id == store_id,
            ),
        )
        .filter(StoreInventory.quantity > 0)
        .add_columns(StoreInventory.quantity)
        .all()
    )
    for unit, quantity in rows:
        if quantity > in_cart.get(unit.id, 0):
            return unit
    return None


def resolve_barcode(barcode, store_id: int | None = None, in_cart: dict[int, int] | None = None) -> SkuRef:
    """
    Resolve a scanned barcode once, per-size units first.

    With a store, a legacy group resolves to the first size (by sort order)
    that has stock at that store beyond what `in_cart` (size_stock_id ->
    units already in the cart) holds; InsufficientStockError when none has.
    """
    code = normalize_barcode(barcode)

    unit = db.session.query(SizeStockUnit).filter_by(barcode=code).first()
    if unit:
        return SkuRef(
            kind=KIND_PER_SIZE,
            barcode=code,
            size_stock_id=unit.id,
            price_cents=unit.price_cents,
            size_id=unit.size_id,
        )

    group = db.session.query(BarcodeGroup).filter_by(barcode=code).first()
    if not group:
        raise NotFoundError(f"Product not found for barcode: {code}", details={"barcode": code})

    picked = _pick_group_unit(group, store_id, in_cart)
    if picked is None:
        if store_id is not None:
            raise InsufficientStockError(
                "No size in this barcode group is in stock at this store",
                details={"barcode": code, "store_id": store_id},
            )
        raise NotFoundError(f"No stock unit exists for barcode group: {code}", details={"barcode": code})

    return SkuRef(
        kind=KIND_GROUPED_LEGACY,
        barcode=code,
        size_stock_id=picked.id,
        price_cents=group.price_cents,
        barcode_group_id=group.id,
        size_id=picked.size_id,
    )


def lookup_product(barcode, store_id: int | None = None) -> dict:
    """Barcode -> catalog context, as shown on the scan screen."""
    ref = resolve_barcode(barcode, store_id=store_id)
    unit = get_size_stock(ref.size_stock_id)

    result = {
        "sku": ref.to_dict(),
        "size_stock": unit.to_dict(),
        **unit.describe(),
    }
    if store_id is not None:
        row = (
            db.session.query(StoreInventory.quantity)
            .filter_by(store_id=store_id, size_stock_id=unit.id)
            .first()
        )
        result["store_quantity"] = row[0] if row else 0
    return result


def catalog_tree() -> list[dict]:
    """
    Nested category -> variant -> color tree, queried fresh per call.

    Each color carries stock_by_size: size_id -> warehouse stock, only for
    sizes that have a unit.
    """
    units_by_color: dict[int, list[SizeStockUnit]] = {}
    for unit in db.session.query(SizeStockUnit).order_by(SizeStockUnit.id.asc()).all():
        units_by_color.setdefault(unit.color_id, []).append(unit)

    tree = []
    for category in db.session.query(Category).order_by(Category.name.asc()).all():
        variants = []
        for variant in category.variants:
            colors = []
            for color in variant.colors:
                units = units_by_color.get(color.id, [])
                colors.append({
                    **color.to_dict(),
                    "stock_by_size": {str(u.size_id): u.warehouse_stock for u in units},
                    "units": [u.to_dict() for u in units],
                })
            variants.append({
                **variant.to_dict(),
                "colors": colors,
                "barcode_groups": [g.to_dict() for g in variant.barcode_groups],
            })
        tree.append({**category.to_dict(), "variants": variants})
    return tree
