"""
Checkout tests: scan-to-cart, pricing on settle, oversell protection and
all-or-nothing settlement.
"""

import re

import pytest

from stockline.errors import ConcurrencyConflictError, InsufficientStockError, InvalidQuantityError, NotFoundError
from stockline.models import Customer, Invoice, InvoiceItem, InventoryMovement, SalesTransaction
from stockline.services import catalog_service, checkout_service, customer_service, inventory_service, store_service
from stockline.validation import ValidationError


@pytest.fixture
def two_units(make_unit, store_a):
    shirt = make_unit(size_code="M", barcode="501", price_cents=2000, warehouse_stock=20)
    other = make_unit(size_code="L", barcode="502", price_cents=3333, warehouse_stock=20)
    inventory_service.distribute(store_a, shirt, 5)
    inventory_service.distribute(store_a, other, 5)
    return {"store_id": store_a, "shirt": shirt, "other": other}


def test_scan_adds_then_increments_line(db_session, two_units):
    store_id = two_units["store_id"]

    lines = checkout_service.scan_into_cart(store_id, "501", [])
    lines = checkout_service.scan_into_cart(store_id, "501", [line.to_dict() for line in lines])
    lines = checkout_service.scan_into_cart(store_id, "502", [line.to_dict() for line in lines])

    assert [(line.barcode, line.quantity) for line in lines] == [("501", 2), ("502", 1)]
    assert lines[0].line_total_cents == 4000
    assert lines[0].name == "Oxford Shirt"
    assert lines[0].available_stock == 5


def test_scan_beyond_store_stock_is_rejected(db_session, two_units):
    store_id = two_units["store_id"]
    lines = [{"size_stock_id": two_units["shirt"], "barcode": "501", "quantity": 5}]

    with pytest.raises(InsufficientStockError) as exc:
        checkout_service.scan_into_cart(store_id, "501", lines)

    assert str(exc.value) == "Only 5 items available in stock"


def test_scan_unit_not_stocked_at_store(db_session, two_units, make_unit):
    make_unit(size_code="XL", barcode="503")

    with pytest.raises(NotFoundError):
        checkout_service.scan_into_cart(two_units["store_id"], "503", [])


def test_group_scan_moves_to_next_size_held_in_cart(db_session, catalog, make_unit, store_a):
    sizes = catalog["sizes"]
    small = make_unit(size_code="S", barcode="601", warehouse_stock=10)
    medium = make_unit(size_code="M", barcode="602", warehouse_stock=10)
    inventory_service.distribute(store_a, small, 1)
    inventory_service.distribute(store_a, medium, 2)
    catalog_service.create_barcode_group(
        variant_id=catalog["variant_id"],
        name="Oxford S-M",
        size_ids=[sizes["S"], sizes["M"]],
        price_cents=1500,
        barcode="LEGACY-2",
    )

    lines = []
    for _ in range(3):
        lines = [line.to_dict() for line in checkout_service.scan_into_cart(store_a, "LEGACY-2", lines)]

    assert {line["size_stock_id"]: line["quantity"] for line in lines} == {small: 1, medium: 2}
    assert {line["unit_price_cents"] for line in lines} == {1500}
    with pytest.raises(InsufficientStockError):
        checkout_service.scan_into_cart(store_a, "LEGACY-2", lines)


def test_client_prices_are_ignored(db_session, two_units):
    lines = checkout_service.load_cart(
        two_units["store_id"],
        [{"size_stock_id": two_units["shirt"], "quantity": 1, "unit_price_cents": 1}],
    )
    assert lines[0].unit_price_cents == 2000


def test_set_line_quantity(db_session, two_units):
    store_id = two_units["store_id"]
    lines = [{"size_stock_id": two_units["shirt"], "barcode": "501", "quantity": 1}]

    lines = checkout_service.set_line_quantity(store_id, lines, two_units["shirt"], 4)
    assert lines[0].quantity == 4

    with pytest.raises(InsufficientStockError):
        checkout_service.set_line_quantity(store_id, lines, two_units["shirt"], 6)

    assert checkout_service.set_line_quantity(store_id, lines, two_units["shirt"], 0) == []


def test_settle_prices_and_records_everything(db_session, make_unit, store_a):
    unit = make_unit(size_code="S", barcode="600", price_cents=10000, warehouse_stock=3)
    inventory_service.distribute(store_a, unit, 3)

    invoice = checkout_service.settle_cart(
        store_a,
        [{"size_stock_id": unit, "quantity": 1}],
        discount_type="percentage",
        discount_value=1000,
        gst_enabled=True,
        gst_rate_bps=1800,
    )

    assert invoice.subtotal_cents == 10000
    assert invoice.discount_amount_cents == 1000
    assert invoice.gst_amount_cents == 1620
    assert invoice.total_cents == 10620
    assert re.fullmatch(r"KF-\d{3}-000001", invoice.invoice_number)
    assert inventory_service.get_store_quantity(store_a, unit) == 2


def test_settle_apportions_discount_and_gst(db_session, two_units):
    store_id = two_units["store_id"]
    invoice = checkout_service.settle_cart(
        store_id,
        [
            {"size_stock_id": two_units["shirt"], "quantity": 2},
            {"size_stock_id": two_units["other"], "quantity": 1},
        ],
        discount_type="percentage",
        discount_value=1000,
        gst_enabled=True,
        gst_rate_bps=1800,
    )

    facts = db_session.query(SalesTransaction).filter_by(invoice_id=invoice.id).all()
    assert len(facts) == 2
    assert sum(f.discount_amount_cents for f in facts) == invoice.discount_amount_cents
    assert sum(f.gst_amount_cents for f in facts) == invoice.gst_amount_cents
    assert sum(f.final_amount_cents for f in facts) == invoice.total_cents
    assert inventory_service.get_store_quantity(store_id, two_units["shirt"]) == 3
    assert inventory_service.get_store_quantity(store_id, two_units["other"]) == 4


def test_settle_uses_store_tax_settings(db_session, two_units):
    store_id = two_units["store_id"]
    store_service.update_tax_settings(store_id, {"gst_rate_bps": 500, "is_gst_enabled": True})

    invoice = checkout_service.settle_cart(store_id, [{"size_stock_id": two_units["shirt"], "quantity": 1}])

    assert invoice.gst_rate_bps == 500
    assert invoice.gst_amount_cents == 100
    assert invoice.total_cents == 2100


def test_settle_never_oversells(db_session, two_units):
    store_id = two_units["store_id"]

    with pytest.raises(InsufficientStockError):
        checkout_service.settle_cart(store_id, [{"size_stock_id": two_units["shirt"], "quantity": 6}])

    assert inventory_service.get_store_quantity(store_id, two_units["shirt"]) == 5
    assert db_session.query(Invoice).count() == 0


def test_settle_empty_cart_is_rejected(db_session, two_units):
    with pytest.raises(InvalidQuantityError):
        checkout_service.settle_cart(two_units["store_id"], [])
    with pytest.raises(InvalidQuantityError):
        checkout_service.settle_cart(two_units["store_id"], [{"size_stock_id": two_units["shirt"], "quantity": 0}])


def test_settle_is_all_or_nothing(db_session, two_units, monkeypatch):
    store_id = two_units["store_id"]
    real_take = inventory_service.take_from_store
    calls = []

    def failing_take(*args, **kwargs):
        calls.append(args)
        if len(calls) == 2:
            raise RuntimeError("simulated crash mid-settlement")
        return real_take(*args, **kwargs)

    monkeypatch.setattr(inventory_service, "take_from_store", failing_take)
    movements_before = db_session.query(InventoryMovement).count()

    with pytest.raises(RuntimeError):
        checkout_service.settle_cart(
            store_id,
            [
                {"size_stock_id": two_units["shirt"], "quantity": 2},
                {"size_stock_id": two_units["other"], "quantity": 1},
            ],
            customer_phone="9000000001",
            customer_name="Asha",
        )

    assert db_session.query(Invoice).count() == 0
    assert db_session.query(InvoiceItem).count() == 0
    assert db_session.query(SalesTransaction).count() == 0
    assert db_session.query(Customer).count() == 0
    assert db_session.query(InventoryMovement).count() == movements_before
    assert inventory_service.get_store_quantity(store_id, two_units["shirt"]) == 5
    assert inventory_service.get_store_quantity(store_id, two_units["other"]) == 5


def test_settle_attaches_and_updates_customer(db_session, two_units):
    store_id = two_units["store_id"]
    line = [{"size_stock_id": two_units["shirt"], "quantity": 1}]

    first = checkout_service.settle_cart(store_id, line, customer_phone="98 7654 3210", customer_name="Asha")
    second = checkout_service.settle_cart(
        store_id, line, customer_phone="9876543210", customer_name="Asha R", customer_email="asha@example.com"
    )

    customer = db_session.query(Customer).one()
    assert customer.phone == "9876543210"
    assert customer.name == "Asha R"
    assert customer.email == "asha@example.com"
    assert first.customer_id == second.customer_id == customer.id
    assert first.customer_name == "Asha"


def test_customer_created_concurrently_is_reused(db_session, two_units, monkeypatch):
    existing_id = customer_service.create_customer("9000000003", "Ravi").id
    real_find = customer_service.find_by_phone
    lookups = []

    def first_lookup_misses(phone):
        lookups.append(phone)
        return None if len(lookups) == 1 else real_find(phone)

    monkeypatch.setattr(customer_service, "find_by_phone", first_lookup_misses)

    invoice = checkout_service.settle_cart(
        two_units["store_id"],
        [{"size_stock_id": two_units["shirt"], "quantity": 1}],
        customer_phone="9000000003",
        customer_name="Ravi K",
    )

    assert len(lookups) == 2
    assert invoice.customer_id == existing_id
    assert db_session.query(Customer).count() == 1
    assert db_session.query(Invoice).count() == 1


def test_customer_conflict_is_retryable_when_it_persists(db_session, two_units, monkeypatch):
    customer_service.create_customer("9000000004", "Meera")
    monkeypatch.setattr(customer_service, "find_by_phone", lambda phone: None)

    with pytest.raises(ConcurrencyConflictError) as exc:
        checkout_service.settle_cart(
            two_units["store_id"],
            [{"size_stock_id": two_units["shirt"], "quantity": 1}],
            customer_phone="9000000004",
            customer_name="Meera",
        )

    assert exc.value.retryable is True
    assert db_session.query(Invoice).count() == 0
    assert inventory_service.get_store_quantity(two_units["store_id"], two_units["shirt"]) == 5


def test_new_customer_needs_a_name(db_session, two_units):
    with pytest.raises(ValidationError):
        checkout_service.settle_cart(
            two_units["store_id"],
            [{"size_stock_id": two_units["shirt"], "quantity": 1}],
            customer_phone="9000000002",
        )
    assert db_session.query(Invoice).count() == 0


def test_invoice_lookup_by_number(db_session, two_units):
    invoice = checkout_service.settle_cart(two_units["store_id"], [{"size_stock_id": two_units["shirt"], "quantity": 1}])

    found = checkout_service.get_invoice_by_number(invoice.invoice_number)
    assert found.id == invoice.id
    with pytest.raises(NotFoundError):
        checkout_service.get_invoice_by_number("KF-999-000001")
