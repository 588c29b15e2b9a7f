"""
Returns & exchange tests: 14-day window, quantity bounds, stock movements and
refund/exchange amounts.
"""

from datetime import timedelta

import pytest

from stockline.errors import ExpiredError, InsufficientStockError, InvalidQuantityError, NotFoundError
from stockline.models import ExchangeItem, InvoiceItem, ReturnItem, ReturnRecord
from stockline.services import checkout_service, inventory_service, return_service
from stockline.validation import ValidationError


@pytest.fixture
def sale(db_session, make_unit, store_a):
    """Invoice at Store A: 3 x shirt at 20.00 for customer 9876543210."""
    shirt = make_unit(size_code="M", barcode="701", price_cents=2000, warehouse_stock=20)
    swap = make_unit(size_code="L", barcode="702", price_cents=2500, warehouse_stock=20)
    inventory_service.distribute(store_a, shirt, 10)
    inventory_service.distribute(store_a, swap, 2)
    invoice = checkout_service.settle_cart(
        store_a,
        [{"size_stock_id": shirt, "quantity": 3}],
        gst_enabled=False,
        customer_phone="9876543210",
        customer_name="Asha",
    )
    return {
        "store_id": store_a,
        "shirt": shirt,
        "swap": swap,
        "invoice_id": invoice.id,
        "invoice_number": invoice.invoice_number,
        "item_id": invoice.items[0].id,
        "created_at": invoice.created_at,
    }


def test_invoice_older_than_window_is_expired(db_session, sale):
    now = sale["created_at"] + timedelta(days=15)

    with pytest.raises(ExpiredError):
        return_service.find_eligible_invoices(sale["store_id"], invoice_number=sale["invoice_number"], now=now)
    with pytest.raises(ExpiredError):
        return_service.settle_return(
            sale["store_id"], sale["invoice_id"], [{"invoice_item_id": sale["item_id"], "quantity": 1}], now=now
        )
    assert db_session.query(ReturnRecord).count() == 0


def test_invoice_just_inside_window_is_accepted(db_session, sale):
    now = sale["created_at"] + timedelta(days=13, hours=23)

    invoices = return_service.find_eligible_invoices(
        sale["store_id"], invoice_number=sale["invoice_number"], now=now
    )
    assert [inv.id for inv in invoices] == [sale["invoice_id"]]


def test_window_boundary_is_exclusive(db_session, sale):
    invoice = checkout_service.get_invoice(sale["invoice_id"])

    with pytest.raises(ExpiredError):
        return_service.check_eligibility(invoice, sale["store_id"], now=sale["created_at"] + timedelta(days=14))


def test_search_by_phone_lists_only_eligible_invoices(db_session, sale, store_b):
    now = sale["created_at"] + timedelta(days=1)

    invoices = return_service.find_eligible_invoices(sale["store_id"], phone="9876543210", now=now)
    assert [inv.id for inv in invoices] == [sale["invoice_id"]]

    later = sale["created_at"] + timedelta(days=20)
    assert return_service.find_eligible_invoices(sale["store_id"], phone="9876543210", now=later) == []
    assert return_service.find_eligible_invoices(store_b, phone="9876543210", now=now) == []

    with pytest.raises(NotFoundError):
        return_service.find_eligible_invoices(sale["store_id"], phone="9999999999", now=now)
    with pytest.raises(ValidationError):
        return_service.find_eligible_invoices(sale["store_id"])


def test_invoice_from_another_store_is_not_found(db_session, sale, store_b):
    with pytest.raises(NotFoundError):
        return_service.find_eligible_invoices(store_b, invoice_number=sale["invoice_number"])


def test_return_more_than_sold_is_invalid(db_session, sale):
    with pytest.raises(InvalidQuantityError):
        return_service.settle_return(
            sale["store_id"], sale["invoice_id"], [{"invoice_item_id": sale["item_id"], "quantity": 5}]
        )

    assert inventory_service.get_store_quantity(sale["store_id"], sale["shirt"]) == 7
    assert db_session.query(ReturnRecord).count() == 0


def test_full_return_restocks_store(db_session, sale):
    record = return_service.settle_return(
        sale["store_id"],
        sale["invoice_id"],
        [{"invoice_item_id": sale["item_id"], "quantity": 3}],
        reason="Too small",
    )

    assert record.total_refund_cents == 6000
    assert record.net_amount_cents == -6000
    assert record.document_number.startswith("R-")
    assert inventory_service.get_store_quantity(sale["store_id"], sale["shirt"]) == 10
    assert inventory_service.get_warehouse_stock(sale["shirt"]) == 10
    assert db_session.query(ReturnItem).count() == 1


def test_returns_cannot_exceed_original_across_sessions(db_session, sale):
    line = [{"invoice_item_id": sale["item_id"], "quantity": 2}]
    return_service.settle_return(sale["store_id"], sale["invoice_id"], line)

    invoice = return_service.invoice_for_return(sale["store_id"], sale["invoice_id"])
    assert invoice["items"][0]["returnable_quantity"] == 1

    with pytest.raises(InvalidQuantityError):
        return_service.settle_return(sale["store_id"], sale["invoice_id"], line)


def test_stale_returnable_read_cannot_return_twice(db_session, sale, monkeypatch):
    line = [{"invoice_item_id": sale["item_id"], "quantity": 3}]
    return_service.settle_return(sale["store_id"], sale["invoice_id"], line)

    # Second settlement still sees the line as fully returnable
    monkeypatch.setattr(return_service, "returnable_quantities", lambda invoice: {sale["item_id"]: 3})

    with pytest.raises(InvalidQuantityError) as exc:
        return_service.settle_return(sale["store_id"], sale["invoice_id"], line)

    assert exc.value.details["returnable"] == 0
    assert db_session.get(InvoiceItem, sale["item_id"]).returned_quantity == 3
    assert inventory_service.get_store_quantity(sale["store_id"], sale["shirt"]) == 10
    assert db_session.query(ReturnRecord).count() == 1


def test_return_needs_a_positive_line(db_session, sale):
    with pytest.raises(InvalidQuantityError):
        return_service.settle_return(
            sale["store_id"], sale["invoice_id"], [{"invoice_item_id": sale["item_id"], "quantity": 0}]
        )
    with pytest.raises(InvalidQuantityError):
        return_service.settle_return(
            sale["store_id"], sale["invoice_id"], [{"invoice_item_id": sale["item_id"], "quantity": -1}]
        )


def test_exchange_moves_both_directions(db_session, sale):
    record = return_service.settle_return(
        sale["store_id"],
        sale["invoice_id"],
        [{"invoice_item_id": sale["item_id"], "quantity": 1}],
        return_type="exchange",
        exchange_lines=[{"size_stock_id": sale["swap"], "quantity": 1}],
        reason="Wrong size",
    )

    assert record.total_refund_cents == 2000
    assert record.total_exchange_cents == 2500
    assert record.net_amount_cents == 500
    assert record.to_dict()["amount_due_cents"] == 500
    assert inventory_service.get_store_quantity(sale["store_id"], sale["shirt"]) == 8
    assert inventory_service.get_store_quantity(sale["store_id"], sale["swap"]) == 1
    assert db_session.query(ExchangeItem).count() == 1


def test_exchange_short_of_stock_rolls_back(db_session, sale):
    with pytest.raises(InsufficientStockError):
        return_service.settle_return(
            sale["store_id"],
            sale["invoice_id"],
            [{"invoice_item_id": sale["item_id"], "quantity": 1}],
            return_type="exchange",
            exchange_lines=[{"size_stock_id": sale["swap"], "quantity": 3}],
        )

    assert inventory_service.get_store_quantity(sale["store_id"], sale["shirt"]) == 7
    assert inventory_service.get_store_quantity(sale["store_id"], sale["swap"]) == 2
    assert db_session.query(ReturnRecord).count() == 0


def test_exchange_scan_rejects_unstocked_barcode(db_session, sale, make_unit):
    make_unit(size_code="XL", barcode="703")

    with pytest.raises(NotFoundError):
        return_service.scan_exchange_item(sale["store_id"], "703")

    lines = return_service.scan_exchange_item(sale["store_id"], "702")
    assert lines[0].size_stock_id == sale["swap"]
