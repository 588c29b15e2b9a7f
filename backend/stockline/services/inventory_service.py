# Overview: Service-layer operations for the two-pool inventory ledger.

from __future__ import annotations

import logging

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from stockline.extensions import db
from stockline.errors import (
    ConcurrencyConflictError,
    InsufficientStockError,
    InvalidQuantityError,
    NotFoundError,
    require_positive_quantity,
)
from stockline.models import Invoice, SizeStockUnit, StoreInventory
from stockline.models.inventory import (
    MOVEMENT_ADJUST,
    MOVEMENT_DISTRIBUTE,
    MOVEMENT_SALE,
    POOL_STORE,
    POOL_WAREHOUSE,
)
from stockline.services import catalog_service
from stockline.services.concurrency import run_with_retry
from stockline.services.ledger_service import append_movement
from stockline.services.pricing import calculate_totals
from stockline.services.recorder_service import RecordedLine, record_sale
from stockline.services.store_service import require_active_store
"""
Stockline Inventory Ledger Invariants (authoritative)

- Every SizeStockUnit has two pools: size_stock.warehouse_stock and one
  store_inventory.quantity per store. Both are >= 0 at all times.
- Quantities only change through conditional UPDATEs in this module:
    UPDATE ... SET qty = qty - n WHERE id = ? AND qty >= n
  Zero affected rows means the pool could not cover n, so two concurrent
  callers can never both spend the same units.
- Distribution moves units between pools in one transaction; it never
  creates or destroys units.
- Every change appends one inventory_movements row with the new balance.
- Helpers without a commit run inside the caller's unit of work; public
  operations wrap themselves in run_with_retry.
"""


logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def compute_available_stock(variant_id: int, color_id: int, size_id: int) -> int:
    """Warehouse stock for the (variant, color, size) unit, 0 when no unit exists."""
    stock = (
        db.session.query(SizeStockUnit.warehouse_stock)
        .filter_by(variant_id=variant_id, color_id=color_id, size_id=size_id)
        .scalar()
    )
    return stock or 0


def get_store_quantity(store_id: int, size_stock_id: int) -> int:
    quantity = (
        db.session.query(StoreInventory.quantity)
        .filter_by(store_id=store_id, size_stock_id=size_stock_id)
        .scalar()
    )
    return quantity or 0


def get_warehouse_stock(size_stock_id: int) -> int:
    stock = db.session.query(SizeStockUnit.warehouse_stock).filter_by(id=size_stock_id).scalar()
    if stock is None:
        raise NotFoundError("Size-stock unit not found", details={"size_stock_id": size_stock_id})
    return stock


def unit_balance(size_stock_id: int) -> dict:
    """Both pools for one unit; warehouse + stores is what conservation checks."""
    warehouse = get_warehouse_stock(size_stock_id)
    store_total = (
        db.session.query(func.coalesce(func.sum(StoreInventory.quantity), 0))
        .filter(StoreInventory.size_stock_id == size_stock_id)
        .scalar()
    )
    return {
        "size_stock_id": size_stock_id,
        "warehouse_stock": warehouse,
        "store_total": int(store_total or 0),
        "total": warehouse + int(store_total or 0),
    }


def list_store_inventory(store_id: int, include_empty: bool = False) -> list[dict]:
    query = (
        db.session.query(StoreInventory)
        .filter(StoreInventory.store_id == store_id)
        .order_by(StoreInventory.size_stock_id.asc())
    )
    if not include_empty:
        query = query.filter(StoreInventory.quantity > 0)

    rows = []
    for row in query.all():
        unit = row.size_stock
        rows.append({
            **row.to_dict(),
            "barcode": unit.barcode,
            "price_cents": unit.price_cents,
            **unit.describe(),
        })
    return rows


# ---------------------------------------------------------------------------
# Pool primitives (no commit)
# ---------------------------------------------------------------------------

def _apply_warehouse_delta(size_stock_id: int, delta: int) -> int:
    conditions = [SizeStockUnit.id == size_stock_id]
    if delta < 0:
        conditions.append(SizeStockUnit.warehouse_stock >= -delta)

    stmt = (
        update(SizeStockUnit)
        .where(*conditions)
        .values(
            warehouse_stock=SizeStockUnit.warehouse_stock + delta,
            version_id=SizeStockUnit.version_id + 1,
        )
        .execution_options(synchronize_session="evaluate")
    )
    result = db.session.execute(stmt)
    if result.rowcount == 0:
        available = get_warehouse_stock(size_stock_id)
        raise InsufficientStockError(
            f"Only {available} items available in warehouse",
            details={"size_stock_id": size_stock_id, "requested": -delta, "available": available},
        )
    return get_warehouse_stock(size_stock_id)


def _apply_store_delta(store_id: int, size_stock_id: int, delta: int) -> int:
    conditions = [
        StoreInventory.store_id == store_id,
        StoreInventory.size_stock_id == size_stock_id,
    ]
    if delta < 0:
        conditions.append(StoreInventory.quantity >= -delta)

    stmt = (
        update(StoreInventory)
        .where(*conditions)
        .values(
            quantity=StoreInventory.quantity + delta,
            version_id=StoreInventory.version_id + 1,
        )
        .execution_options(synchronize_session="evaluate")
    )
    result = db.session.execute(stmt)
    if result.rowcount:
        return get_store_quantity(store_id, size_stock_id)

    if delta < 0:
        available = get_store_quantity(store_id, size_stock_id)
        raise InsufficientStockError(
            f"Only {available} items available in stock",
            details={
                "store_id": store_id,
                "size_stock_id": size_stock_id,
                "requested": -delta,
                "available": available,
            },
        )

    # First units of this SKU at this store
    db.session.add(StoreInventory(store_id=store_id, size_stock_id=size_stock_id, quantity=delta))
    try:
        db.session.flush()
    except IntegrityError as exc:
        raise ConcurrencyConflictError(
            "Store inventory row created concurrently",
            details={"store_id": store_id, "size_stock_id": size_stock_id},
        ) from exc
    return delta


def take_from_store(
    store_id: int,
    size_stock_id: int,
    quantity: int,
    *,
    movement_type: str = MOVEMENT_SALE,
    invoice_id: int | None = None,
    return_id: int | None = None,
    note: str | None = None,
) -> int:
    """Conditionally decrement a store pool and log it. Returns the new balance."""
    require_positive_quantity(quantity)
    balance = _apply_store_delta(store_id, size_stock_id, -quantity)
    append_movement(
        size_stock_id=size_stock_id,
        store_id=store_id,
        pool=POOL_STORE,
        movement_type=movement_type,
        quantity_delta=-quantity,
        balance_after=balance,
        invoice_id=invoice_id,
        return_id=return_id,
        note=note,
    )
    return balance


def put_into_store(
    store_id: int,
    size_stock_id: int,
    quantity: int,
    *,
    movement_type: str,
    invoice_id: int | None = None,
    return_id: int | None = None,
    note: str | None = None,
) -> int:
    require_positive_quantity(quantity)
    balance = _apply_store_delta(store_id, size_stock_id, quantity)
    append_movement(
        size_stock_id=size_stock_id,
        store_id=store_id,
        pool=POOL_STORE,
        movement_type=movement_type,
        quantity_delta=quantity,
        balance_after=balance,
        invoice_id=invoice_id,
        return_id=return_id,
        note=note,
    )
    return balance


# ---------------------------------------------------------------------------
# Ledger operations
# ---------------------------------------------------------------------------

def distribute(store_id: int, size_stock_id: int, quantity: int) -> dict:
    """
    Move `quantity` units from the warehouse pool to a store pool.

    Both halves land in one transaction. InsufficientStockError leaves both
    pools untouched.
    """
    require_positive_quantity(quantity)

    def _op():
        require_active_store(store_id)
        unit = catalog_service.get_size_stock(size_stock_id)

        warehouse_after = _apply_warehouse_delta(unit.id, -quantity)
        append_movement(
            size_stock_id=unit.id,
            pool=POOL_WAREHOUSE,
            movement_type=MOVEMENT_DISTRIBUTE,
            quantity_delta=-quantity,
            balance_after=warehouse_after,
            note=f"To store {store_id}",
        )
        store_after = put_into_store(
            store_id,
            unit.id,
            quantity,
            movement_type=MOVEMENT_DISTRIBUTE,
            note="From warehouse",
        )

        db.session.commit()
        logger.info(
            "Distributed %d x unit %d to store %d (warehouse=%d, store=%d)",
            quantity, size_stock_id, store_id, warehouse_after, store_after,
        )
        return {
            "store_id": store_id,
            "size_stock_id": size_stock_id,
            "quantity": quantity,
            "warehouse_stock": warehouse_after,
            "store_quantity": store_after,
        }

    return run_with_retry(_op)


def sell_at_store(store_id: int, barcode: str) -> Invoice:
    """
    Single-unit sale at the counter: resolve, decrement by one, record.

    Records a one-line invoice at the SKU price with no discount or GST, so
    the sale can later be returned like any checkout.
    """
    def _op():
        require_active_store(store_id)
        ref = catalog_service.resolve_barcode(barcode, store_id=store_id)
        unit = catalog_service.get_size_stock(ref.size_stock_id)

        available = get_store_quantity(store_id, unit.id)
        if available <= 0:
            raise InsufficientStockError(
                "Out of stock at this store",
                details={"store_id": store_id, "barcode": ref.barcode, "available": 0},
            )

        names = unit.describe()
        line = RecordedLine(
            size_stock_id=unit.id,
            barcode=ref.barcode,
            quantity=1,
            unit_price_cents=ref.price_cents,
            category=names["category"],
            name=names["variant"],
            color=names["color"],
            size=names["size"],
            barcode_group_id=ref.barcode_group_id,
        )
        invoice = record_sale(
            store_id=store_id,
            lines=[line],
            pricing=calculate_totals(ref.price_cents),
        )
        take_from_store(store_id, unit.id, 1, invoice_id=invoice.id, note=invoice.invoice_number)

        db.session.commit()
        logger.info("Sold 1 x %s at store %d (%s)", ref.barcode, store_id, invoice.invoice_number)
        return invoice

    return run_with_retry(_op)


def adjust_warehouse_stock(size_stock_id: int, new_quantity: int, note: str | None = None) -> SizeStockUnit:
    """Admin override of warehouse_stock, compare-and-set against the value read."""
    if isinstance(new_quantity, bool) or not isinstance(new_quantity, int) or new_quantity < 0:
        raise InvalidQuantityError("Warehouse quantity must be an integer >= 0", details={"quantity": new_quantity})

    def _op():
        unit = catalog_service.get_size_stock(size_stock_id)
        current = unit.warehouse_stock
        delta = new_quantity - current
        if delta == 0:
            return unit

        stmt = (
            update(SizeStockUnit)
            .where(SizeStockUnit.id == size_stock_id, SizeStockUnit.warehouse_stock == current)
            .values(warehouse_stock=new_quantity, version_id=SizeStockUnit.version_id + 1)
            .execution_options(synchronize_session="evaluate")
        )
        if db.session.execute(stmt).rowcount == 0:
            raise ConcurrencyConflictError(
                "Warehouse stock changed while adjusting",
                details={"size_stock_id": size_stock_id},
            )

        append_movement(
            size_stock_id=size_stock_id,
            pool=POOL_WAREHOUSE,
            movement_type=MOVEMENT_ADJUST,
            quantity_delta=delta,
            balance_after=new_quantity,
            note=note or "Manual adjustment",
        )
        db.session.commit()
        logger.info("Adjusted warehouse stock of unit %d: %d -> %d", size_stock_id, current, new_quantity)
        return unit

    return run_with_retry(_op)
