# Overview: Service-layer operations for reporting; read-only aggregation over sales facts.

from __future__ import annotations

from datetime import date, datetime, timedelta

from flask import current_app
from sqlalchemy import func

from stockline.extensions import db
from stockline.errors import NotFoundError
from stockline.models import (
    Invoice,
    InvoiceItem,
    ReturnRecord,
    SalesTransaction,
    SizeStockUnit,
    Store,
    StoreInventory,
)
from stockline.models.documents import RETURN_TYPE_EXCHANGE
from stockline.time_utils import day_bounds, parse_iso_datetime, to_utc_z, utcnow
from stockline.validation import ValidationError


def _parse_bound(value, *, is_end: bool) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        start, end = day_bounds(value)
        return end if is_end else start
    try:
        parsed = parse_iso_datetime(str(value))
    except ValueError:
        raise ValidationError(f"Invalid date: {value}")
    # A bare date as the end bound covers that whole day
    if is_end and len(str(value).strip()) == 10:
        parsed += timedelta(days=1)
    return parsed


def _parse_range(start, end) -> tuple[datetime | None, datetime | None]:
    """Half-open [start, end) window; either side may be open."""
    start_dt = _parse_bound(start, is_end=False)
    end_dt = _parse_bound(end, is_end=True)
    if start_dt and end_dt and end_dt <= start_dt:
        raise ValidationError("end must be after start")
    return start_dt, end_dt


def _in_range(query, column, start_dt, end_dt):
    if start_dt:
        query = query.filter(column >= start_dt)
    if end_dt:
        query = query.filter(column < end_dt)
    return query


def _half_up_div(numerator: int, denominator: int) -> int:
    if denominator <= 0:
        return 0
    return (numerator * 2 + denominator) // (2 * denominator)


def _day(column):
    return func.strftime("%Y-%m-%d", column)


def dashboard_metrics(
    *,
    start=None,
    end=None,
    store_id: int | None = None,
    top_n: int = 5,
) -> dict:
    """
    Dashboard aggregation over sales facts.

    NULL discount/GST amounts count as zero. Transaction count is distinct
    invoices plus facts recorded without one.
    """
    start_dt, end_dt = _parse_range(start, end)
    top_n = max(1, min(int(top_n or 5), 50))

    def _facts(*columns):
        query = db.session.query(*columns)
        query = _in_range(query, SalesTransaction.created_at, start_dt, end_dt)
        if store_id is not None:
            query = query.filter(SalesTransaction.store_id == store_id)
        return query

    revenue_expr = func.coalesce(func.sum(func.coalesce(SalesTransaction.final_amount_cents, 0)), 0)
    discount_expr = func.coalesce(func.sum(func.coalesce(SalesTransaction.discount_amount_cents, 0)), 0)
    gst_expr = func.coalesce(func.sum(func.coalesce(SalesTransaction.gst_amount_cents, 0)), 0)
    units_expr = func.coalesce(func.sum(SalesTransaction.quantity), 0)

    totals = _facts(
        revenue_expr.label("revenue"),
        discount_expr.label("discount"),
        gst_expr.label("gst"),
        units_expr.label("units"),
    ).one()
    invoice_count = _facts(func.count(func.distinct(SalesTransaction.invoice_id))).scalar() or 0
    loose_count = _facts(func.count(SalesTransaction.id)).filter(SalesTransaction.invoice_id.is_(None)).scalar() or 0
    transaction_count = int(invoice_count) + int(loose_count)
    revenue = int(totals.revenue or 0)

    top_rows = (
        _facts(
            SalesTransaction.size_stock_id,
            units_expr.label("units"),
            revenue_expr.label("revenue"),
        )
        .filter(SalesTransaction.size_stock_id.isnot(None))
        .group_by(SalesTransaction.size_stock_id)
        .order_by(units_expr.desc(), SalesTransaction.size_stock_id.asc())
        .limit(top_n)
        .all()
    )
    units_by_id = {
        unit.id: unit
        for unit in db.session.query(SizeStockUnit)
        .filter(SizeStockUnit.id.in_([row.size_stock_id for row in top_rows]))
        .all()
    } if top_rows else {}
    top_products = []
    for row in top_rows:
        unit = units_by_id.get(row.size_stock_id)
        top_products.append({
            "size_stock_id": row.size_stock_id,
            "barcode": unit.barcode if unit else None,
            **(unit.describe() if unit else {}),
            "units_sold": int(row.units or 0),
            "revenue_cents": int(row.revenue or 0),
        })

    store_rows = (
        _facts(
            SalesTransaction.store_id,
            Store.name,
            revenue_expr.label("revenue"),
            units_expr.label("units"),
        )
        .join(Store, Store.id == SalesTransaction.store_id)
        .group_by(SalesTransaction.store_id, Store.name)
        .order_by(SalesTransaction.store_id.asc())
        .all()
    )

    day_expr = _day(SalesTransaction.created_at)
    day_rows = (
        _facts(day_expr.label("day"), revenue_expr.label("revenue"), units_expr.label("units"))
        .group_by(day_expr)
        .order_by(day_expr)
        .all()
    )

    refund_query = db.session.query(
        func.coalesce(func.sum(ReturnRecord.total_refund_cents), 0),
        func.count(ReturnRecord.id),
    )
    refund_query = _in_range(refund_query, ReturnRecord.created_at, start_dt, end_dt)
    if store_id is not None:
        refund_query = refund_query.filter(ReturnRecord.store_id == store_id)
    refunds, return_count = refund_query.one()

    return {
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
        "store_id": store_id,
        "total_revenue_cents": revenue,
        "total_discount_cents": int(totals.discount or 0),
        "total_gst_cents": int(totals.gst or 0),
        "units_sold": int(totals.units or 0),
        "transaction_count": transaction_count,
        "average_order_value_cents": _half_up_div(revenue, transaction_count),
        "total_refunds_cents": int(refunds or 0),
        "return_count": int(return_count or 0),
        "top_products": top_products,
        "stores": [
            {
                "store_id": row.store_id,
                "store_name": row.name,
                "revenue_cents": int(row.revenue or 0),
                "units_sold": int(row.units or 0),
            }
            for row in store_rows
        ],
        "daily": [
            {"day": row.day, "revenue_cents": int(row.revenue or 0), "units_sold": int(row.units or 0)}
            for row in day_rows
        ],
    }


def _empty_account(store_id: int, day: str) -> dict:
    return {
        "store_id": store_id,
        "day": day,
        "invoice_count": 0,
        "gross_sales_cents": 0,
        "discount_cents": 0,
        "gst_cents": 0,
        "sales_total_cents": 0,
        "refunds_cents": 0,
        "exchange_collected_cents": 0,
        "net_revenue_cents": 0,
    }


def store_accounts(*, start=None, end=None, store_id: int | None = None) -> dict:
    """
    Per store, per day: sales, GST collected, discounts given, refunds paid
    and net revenue. An exchange counts as a refund only when the store paid
    money back, and as income when the customer paid the difference.
    """
    start_dt, end_dt = _parse_range(start, end)

    invoice_day = _day(Invoice.created_at)
    invoice_query = db.session.query(
        Invoice.store_id,
        invoice_day.label("day"),
        func.count(Invoice.id).label("invoices"),
        func.coalesce(func.sum(Invoice.subtotal_cents), 0).label("gross"),
        func.coalesce(func.sum(Invoice.discount_amount_cents), 0).label("discount"),
        func.coalesce(func.sum(Invoice.gst_amount_cents), 0).label("gst"),
        func.coalesce(func.sum(Invoice.total_cents), 0).label("total"),
    )
    invoice_query = _in_range(invoice_query, Invoice.created_at, start_dt, end_dt)
    if store_id is not None:
        invoice_query = invoice_query.filter(Invoice.store_id == store_id)

    accounts: dict[tuple[int, str], dict] = {}
    for row in invoice_query.group_by(Invoice.store_id, invoice_day).all():
        account = accounts.setdefault((row.store_id, row.day), _empty_account(row.store_id, row.day))
        account["invoice_count"] = int(row.invoices or 0)
        account["gross_sales_cents"] = int(row.gross or 0)
        account["discount_cents"] = int(row.discount or 0)
        account["gst_cents"] = int(row.gst or 0)
        account["sales_total_cents"] = int(row.total or 0)

    return_query = db.session.query(ReturnRecord)
    return_query = _in_range(return_query, ReturnRecord.created_at, start_dt, end_dt)
    if store_id is not None:
        return_query = return_query.filter(ReturnRecord.store_id == store_id)

    for record in return_query.all():
        day = record.created_at.strftime("%Y-%m-%d")
        account = accounts.setdefault((record.store_id, day), _empty_account(record.store_id, day))
        if record.return_type == RETURN_TYPE_EXCHANGE:
            account["refunds_cents"] += max(0, -record.net_amount_cents)
            account["exchange_collected_cents"] += max(0, record.net_amount_cents)
        else:
            account["refunds_cents"] += record.total_refund_cents

    names = dict(db.session.query(Store.id, Store.name).all())
    rows = []
    for key in sorted(accounts):
        account = accounts[key]
        account["store_name"] = names.get(account["store_id"])
        account["net_revenue_cents"] = (
            account["sales_total_cents"] - account["refunds_cents"] + account["exchange_collected_cents"]
        )
        rows.append(account)

    return {
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
        "rows": rows,
        "totals": {
            field: sum(row[field] for row in rows)
            for field in (
                "gross_sales_cents",
                "discount_cents",
                "gst_cents",
                "sales_total_cents",
                "refunds_cents",
                "exchange_collected_cents",
                "net_revenue_cents",
            )
        },
    }


def store_summary(store_id: int, *, threshold: int | None = None, now: datetime | None = None) -> dict:
    """Store dashboard: today's sales, units on hand and low-stock units."""
    store = db.session.query(Store).filter_by(id=store_id).first()
    if not store:
        raise NotFoundError("Store not found", details={"store_id": store_id})
    if threshold is None:
        threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 5)

    today_start, today_end = day_bounds((now or utcnow()).date())
    revenue_today = (
        db.session.query(func.coalesce(func.sum(Invoice.total_cents), 0))
        .filter(
            Invoice.store_id == store_id,
            Invoice.created_at >= today_start,
            Invoice.created_at < today_end,
        )
        .scalar()
    )
    units_today = (
        db.session.query(func.coalesce(func.sum(InvoiceItem.quantity), 0))
        .join(Invoice, Invoice.id == InvoiceItem.invoice_id)
        .filter(
            Invoice.store_id == store_id,
            Invoice.created_at >= today_start,
            Invoice.created_at < today_end,
        )
        .scalar()
    )
    on_hand, sku_count = (
        db.session.query(
            func.coalesce(func.sum(StoreInventory.quantity), 0),
            func.count(StoreInventory.id),
        )
        .filter(StoreInventory.store_id == store_id, StoreInventory.quantity > 0)
        .one()
    )

    low_rows = (
        db.session.query(StoreInventory)
        .filter(StoreInventory.store_id == store_id, StoreInventory.quantity <= threshold)
        .order_by(StoreInventory.quantity.asc(), StoreInventory.size_stock_id.asc())
        .all()
    )

    return {
        "store": store.to_dict(),
        "revenue_today_cents": int(revenue_today or 0),
        "units_sold_today": int(units_today or 0),
        "units_on_hand": int(on_hand or 0),
        "sku_count": int(sku_count or 0),
        "low_stock_threshold": threshold,
        "low_stock": [
            {
                "size_stock_id": row.size_stock_id,
                "quantity": row.quantity,
                "barcode": row.size_stock.barcode,
                **row.size_stock.describe(),
            }
            for row in low_rows
        ],
    }
