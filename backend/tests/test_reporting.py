"""Reporting aggregation over sales facts, invoices and returns."""

from datetime import timedelta

from stockline.models import SalesTransaction
from stockline.services import checkout_service, inventory_service, reporting_service, return_service
from stockline.time_utils import utcnow


def _sell(store_id, lines, **kwargs):
    return checkout_service.settle_cart(store_id, lines, gst_enabled=False, **kwargs)


def test_dashboard_metrics(db_session, make_unit, store_a, store_b):
    shirt = make_unit(size_code="M", barcode="801", price_cents=2000)
    tee = make_unit(size_code="L", barcode="802", price_cents=1000)
    for store in (store_a, store_b):
        inventory_service.distribute(store, shirt, 10)
        inventory_service.distribute(store, tee, 10)

    _sell(store_a, [{"size_stock_id": shirt, "quantity": 2}, {"size_stock_id": tee, "quantity": 1}])
    _sell(store_a, [{"size_stock_id": tee, "quantity": 4}], discount_type="fixed", discount_value=500)
    _sell(store_b, [{"size_stock_id": shirt, "quantity": 1}])

    report = reporting_service.dashboard_metrics()

    assert report["total_revenue_cents"] == 5000 + 3500 + 2000
    assert report["total_discount_cents"] == 500
    assert report["total_gst_cents"] == 0
    assert report["transaction_count"] == 3
    assert report["average_order_value_cents"] == 3500
    assert report["units_sold"] == 8
    assert report["top_products"][0]["size_stock_id"] == tee
    assert report["top_products"][0]["units_sold"] == 5
    assert {row["store_id"]: row["revenue_cents"] for row in report["stores"]} == {
        store_a: 8500,
        store_b: 2000,
    }
    assert sum(day["revenue_cents"] for day in report["daily"]) == 10500

    only_b = reporting_service.dashboard_metrics(store_id=store_b)
    assert only_b["total_revenue_cents"] == 2000
    assert only_b["transaction_count"] == 1


def test_dashboard_tolerates_null_amounts_and_date_window(db_session, stocked):
    inventory_service.sell_at_store(stocked["store_id"], stocked["barcode"])
    fact = db_session.query(SalesTransaction).one()
    fact.discount_amount_cents = None
    fact.gst_amount_cents = None
    db_session.commit()

    today = utcnow().date()
    report = reporting_service.dashboard_metrics(start=today.isoformat(), end=today.isoformat())
    assert report["total_revenue_cents"] == 2000
    assert report["total_discount_cents"] == 0

    tomorrow = (utcnow() + timedelta(days=1)).date().isoformat()
    empty = reporting_service.dashboard_metrics(start=tomorrow)
    assert empty["total_revenue_cents"] == 0
    assert empty["transaction_count"] == 0
    assert empty["average_order_value_cents"] == 0


def test_store_accounts_nets_out_refunds(db_session, stocked):
    store_id = stocked["store_id"]
    invoice = _sell(store_id, [{"size_stock_id": stocked["size_stock_id"], "quantity": 3}])
    return_service.settle_return(store_id, invoice.id, [{"invoice_item_id": invoice.items[0].id, "quantity": 1}])

    report = reporting_service.store_accounts(store_id=store_id)

    assert len(report["rows"]) == 1
    row = report["rows"][0]
    assert row["store_name"] == "Store A"
    assert row["sales_total_cents"] == 6000
    assert row["refunds_cents"] == 2000
    assert row["net_revenue_cents"] == 4000
    assert "profit_cents" not in row
    assert report["totals"]["net_revenue_cents"] == 4000


def test_store_summary_flags_low_stock(db_session, make_unit, store_a):
    plenty = make_unit(size_code="M", barcode="811")
    scarce = make_unit(size_code="S", barcode="812")
    inventory_service.distribute(store_a, plenty, 20)
    inventory_service.distribute(store_a, scarce, 4)
    inventory_service.sell_at_store(store_a, "811")

    summary = reporting_service.store_summary(store_a)

    assert summary["units_on_hand"] == 23
    assert summary["units_sold_today"] == 1
    assert summary["revenue_today_cents"] == 2000
    assert [row["size_stock_id"] for row in summary["low_stock"]] == [scarce]
