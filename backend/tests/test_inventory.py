"""
Inventory ledger tests: distribute, sell at store, warehouse adjustments and
legacy barcode groups.
"""

import pytest

from stockline.errors import (
    DuplicateBarcodeError,
    InsufficientStockError,
    InvalidQuantityError,
    NotFoundError,
)
from stockline.models import InventoryMovement, Invoice, SalesTransaction
from stockline.models.inventory import MOVEMENT_DISTRIBUTE, MOVEMENT_INITIAL
from stockline.services import catalog_service, inventory_service, ledger_service, store_service


def _snapshot(store_id, unit_id):
    return (
        inventory_service.get_warehouse_stock(unit_id),
        inventory_service.get_store_quantity(store_id, unit_id),
    )


def test_distribute_moves_units_between_pools(db_session, store_a, unit_id):
    result = inventory_service.distribute(store_a, unit_id, 30)

    assert result["warehouse_stock"] == 70
    assert result["store_quantity"] == 30
    assert _snapshot(store_a, unit_id) == (70, 30)


def test_distribute_conserves_units(db_session, store_a, store_b, unit_id):
    before = inventory_service.unit_balance(unit_id)["total"]

    inventory_service.distribute(store_a, unit_id, 10)
    inventory_service.distribute(store_b, unit_id, 25)
    inventory_service.distribute(store_a, unit_id, 5)

    balance = inventory_service.unit_balance(unit_id)
    assert balance["total"] == before == 100
    assert balance["warehouse_stock"] == 60
    assert balance["store_total"] == 40

    deltas = [
        m.quantity_delta
        for m in db_session.query(InventoryMovement).filter_by(movement_type=MOVEMENT_DISTRIBUTE)
    ]
    assert len(deltas) == 6
    assert sum(deltas) == 0


def test_distribute_more_than_warehouse_changes_nothing(db_session, store_a, unit_id):
    inventory_service.distribute(store_a, unit_id, 40)
    before = _snapshot(store_a, unit_id)
    movements_before = db_session.query(InventoryMovement).count()

    with pytest.raises(InsufficientStockError) as exc:
        inventory_service.distribute(store_a, unit_id, 61)

    assert exc.value.details["available"] == 60
    assert _snapshot(store_a, unit_id) == before
    assert db_session.query(InventoryMovement).count() == movements_before


@pytest.mark.parametrize("quantity", [0, -3, True, 2.5])
def test_distribute_rejects_non_positive_quantity(db_session, store_a, unit_id, quantity):
    with pytest.raises(InvalidQuantityError):
        inventory_service.distribute(store_a, unit_id, quantity)
    assert _snapshot(store_a, unit_id) == (100, 0)


def test_distribute_to_inactive_store_is_not_found(db_session, store_a, unit_id):
    store_service.update_store(store_a, is_active=False)

    with pytest.raises(NotFoundError):
        inventory_service.distribute(store_a, unit_id, 1)


def test_compute_available_stock(db_session, catalog, unit_id):
    sizes = catalog["sizes"]
    assert inventory_service.compute_available_stock(catalog["variant_id"], catalog["color_id"], sizes["M"]) == 100
    assert inventory_service.compute_available_stock(catalog["variant_id"], catalog["color_id"], sizes["XL"]) == 0


def test_sell_at_store_decrements_and_records(db_session, stocked):
    invoice = inventory_service.sell_at_store(stocked["store_id"], "  8900000000017 ")

    assert inventory_service.get_store_quantity(stocked["store_id"], stocked["size_stock_id"]) == 29
    assert invoice.total_cents == 2000
    assert len(invoice.items) == 1

    fact = db_session.query(SalesTransaction).filter_by(invoice_id=invoice.id).one()
    assert fact.quantity == 1
    assert fact.price_cents == 2000
    assert fact.final_amount_cents == 2000
    assert fact.barcode_group_id is None


def test_sell_at_store_out_of_stock(db_session, store_a, store_b, unit_id):
    inventory_service.distribute(store_a, unit_id, 1)
    inventory_service.sell_at_store(store_a, "8900000000017")

    with pytest.raises(InsufficientStockError):
        inventory_service.sell_at_store(store_a, "8900000000017")
    with pytest.raises(InsufficientStockError):
        inventory_service.sell_at_store(store_b, "8900000000017")

    assert inventory_service.get_store_quantity(store_a, unit_id) == 0
    assert db_session.query(Invoice).count() == 1


def test_sell_unknown_barcode_is_not_found(db_session, stocked):
    with pytest.raises(NotFoundError):
        inventory_service.sell_at_store(stocked["store_id"], "0000")


def test_adjust_warehouse_stock_logs_delta(db_session, unit_id):
    unit = inventory_service.adjust_warehouse_stock(unit_id, 80, note="Cycle count")

    assert unit.warehouse_stock == 80
    movements = ledger_service.list_movements(size_stock_id=unit_id)
    assert movements[0].quantity_delta == -20
    assert movements[0].balance_after == 80
    assert movements[-1].movement_type == MOVEMENT_INITIAL


def test_adjust_warehouse_stock_rejects_negative(db_session, unit_id):
    with pytest.raises(InvalidQuantityError):
        inventory_service.adjust_warehouse_stock(unit_id, -1)
    assert inventory_service.get_warehouse_stock(unit_id) == 100


def test_duplicate_barcode_is_rejected(db_session, catalog, make_unit):
    make_unit(size_code="M", barcode="111")

    with pytest.raises(DuplicateBarcodeError):
        make_unit(size_code="L", barcode="111")

    catalog_service.create_barcode_group(
        variant_id=catalog["variant_id"],
        name="Oxford S-L",
        size_ids=[catalog["sizes"]["S"]],
        price_cents=1500,
        barcode="222",
    )
    with pytest.raises(DuplicateBarcodeError):
        make_unit(size_code="XL", barcode="222")


def test_legacy_group_resolves_first_size_with_store_stock(db_session, catalog, make_unit, store_a):
    sizes = catalog["sizes"]
    small = make_unit(size_code="S", barcode="301", warehouse_stock=10)
    medium = make_unit(size_code="M", barcode="302", warehouse_stock=10)
    make_unit(size_code="L", barcode="303", warehouse_stock=10)
    inventory_service.distribute(store_a, small, 1)
    inventory_service.distribute(store_a, medium, 2)

    group = catalog_service.create_barcode_group(
        variant_id=catalog["variant_id"],
        name="Oxford S-L",
        size_ids=[sizes["L"], sizes["M"], sizes["S"]],
        price_cents=1500,
        barcode="LEGACY-1",
    )

    first = inventory_service.sell_at_store(store_a, "LEGACY-1")
    second = inventory_service.sell_at_store(store_a, "LEGACY-1")

    assert first.items[0].size_stock_id == small
    assert second.items[0].size_stock_id == medium
    fact = db_session.query(SalesTransaction).filter_by(invoice_id=second.id).one()
    assert fact.barcode_group_id == group.id
    assert fact.final_amount_cents == 1500
    assert inventory_service.get_store_quantity(store_a, small) == 0
    assert inventory_service.get_store_quantity(store_a, medium) == 1


def test_per_size_barcode_wins_resolution(db_session, unit_id):
    ref = catalog_service.resolve_barcode("8900000000017")

    assert ref.kind == catalog_service.KIND_PER_SIZE
    assert ref.size_stock_id == unit_id
    assert ref.barcode_group_id is None


def test_generated_group_barcode_is_numeric(db_session, catalog):
    group = catalog_service.create_barcode_group(
        variant_id=catalog["variant_id"],
        name="Generated",
        size_ids=[catalog["sizes"]["XS"]],
        price_cents=999,
    )

    assert group.barcode.isdigit()
    assert len(group.barcode) == catalog_service.GENERATED_BARCODE_LENGTH
