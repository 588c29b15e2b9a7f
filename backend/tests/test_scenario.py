"""End-to-end ledger walk-through for one unit at one store."""

from stockline.models import ReturnRecord, SalesTransaction
from stockline.services import inventory_service, return_service


def test_distribute_sell_and_return(db_session, store_a, unit_id):
    inventory_service.distribute(store_a, unit_id, 30)
    assert inventory_service.get_warehouse_stock(unit_id) == 70
    assert inventory_service.get_store_quantity(store_a, unit_id) == 30

    invoices = [inventory_service.sell_at_store(store_a, "8900000000017") for _ in range(3)]

    assert inventory_service.get_store_quantity(store_a, unit_id) == 27
    facts = db_session.query(SalesTransaction).filter_by(store_id=store_a).all()
    assert len(facts) == 3
    assert all(fact.final_amount_cents == 2000 for fact in facts)

    sold = invoices[0]
    record = return_service.settle_return(
        store_a,
        sold.id,
        [{"invoice_item_id": sold.items[0].id, "quantity": 1}],
    )

    assert inventory_service.get_store_quantity(store_a, unit_id) == 28
    assert record.total_refund_cents == 2000
    assert db_session.query(ReturnRecord).count() == 1
    assert inventory_service.unit_balance(unit_id)["total"] == 98
