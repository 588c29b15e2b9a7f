# Overview: Service-layer operations for the inventory movement log.

from __future__ import annotations

from typing import Optional
from datetime import datetime

from ..extensions import db
from ..models import InventoryMovement
from stockline.time_utils import utcnow
"""
Stockline Movement Log Invariants (authoritative)

- Append-only audit of pool quantity changes; no business logic here.
- Rows are written inside the same DB transaction as the quantity change
  they record, so a rolled-back operation leaves no movement behind.
- balance_after is read back by the caller after its conditional UPDATE.
"""


def append_movement(
    *,
    size_stock_id: int,
    pool: str,
    movement_type: str,
    quantity_delta: int,
    balance_after: int,
    store_id: int | None = None,
    invoice_id: int | None = None,
    return_id: int | None = None,
    note: Optional[str] = None,
    occurred_at: Optional[datetime] = None,
) -> InventoryMovement:
    """Append one movement row. No deletes/updates of existing rows."""
    movement = InventoryMovement(
        size_stock_id=size_stock_id,
        store_id=store_id,
        pool=pool,
        movement_type=movement_type,
        quantity_delta=quantity_delta,
        balance_after=balance_after,
        invoice_id=invoice_id,
        return_id=return_id,
        note=note,
        occurred_at=occurred_at or utcnow(),
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def list_movements(
    *,
    size_stock_id: int | None = None,
    store_id: int | None = None,
    movement_type: str | None = None,
    limit: int = 200,
) -> list[InventoryMovement]:
    query = db.session.query(InventoryMovement)
    if size_stock_id is not None:
        query = query.filter(InventoryMovement.size_stock_id == size_stock_id)
    if store_id is not None:
        query = query.filter(InventoryMovement.store_id == store_id)
    if movement_type:
        query = query.filter(InventoryMovement.movement_type == movement_type)

    limit = max(1, min(limit, 1000))
    return query.order_by(InventoryMovement.id.desc()).limit(limit).all()
