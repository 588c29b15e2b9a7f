"""
HTTP surface tests.

Verifies:
- Typed errors render as {"error", "code", "details", "retryable"} with
  the mapped status code
- Payload validation returns 400
- Catalog -> distribute -> scan -> settle -> return works over HTTP
"""

import pytest


# =============================================================================
# SYSTEM
# =============================================================================


def test_health(client, db_session):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json()["database"]["status"] == "healthy"


def test_unknown_route_is_json_404(client, db_session):
    resp = client.get("/api/nope")
    assert resp.status_code == 404


# =============================================================================
# CATALOG AND STORES
# =============================================================================


class TestCatalogRoutes:

    def test_build_catalog_and_unit(self, client, sizes):
        category = client.post("/api/catalog/categories", json={"name": "Kurtas"}).get_json()
        variant = client.post(
            f"/api/catalog/categories/{category['id']}/variants", json={"name": "Cotton Kurta"}
        ).get_json()
        color = client.post(
            f"/api/catalog/variants/{variant['id']}/colors", json={"name": "Red", "hex": "#FF0000"}
        ).get_json()

        resp = client.post("/api/catalog/size-stock", json={
            "variant_id": variant["id"],
            "color_id": color["id"],
            "size_id": sizes["M"],
            "barcode": " 4000001 ",
            "price_cents": 150000,
            "warehouse_stock": 12,
        })
        assert resp.status_code == 201
        assert resp.get_json()["barcode"] == "4000001"

        dup = client.post("/api/catalog/size-stock", json={
            "variant_id": variant["id"],
            "color_id": color["id"],
            "size_id": sizes["L"],
            "barcode": "4000001",
            "price_cents": 150000,
        })
        assert dup.status_code == 409
        assert dup.get_json()["code"] == "DUPLICATE_BARCODE"
        assert dup.get_json()["retryable"] is False

        tree = client.get("/api/catalog/tree").get_json()["categories"]
        colors = tree[0]["variants"][0]["colors"]
        assert colors[0]["stock_by_size"] == {str(sizes["M"]): 12}

    @pytest.mark.parametrize("payload", [
        {},
        {"name": ""},
        {"name": "Kurtas", "extra": 1},
    ])
    def test_invalid_category_payloads(self, client, db_session, payload):
        resp = client.post("/api/catalog/categories", json=payload)
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "VALIDATION_ERROR"

    def test_negative_price_rejected(self, client, catalog):
        resp = client.post("/api/catalog/size-stock", json={
            "variant_id": catalog["variant_id"],
            "color_id": catalog["color_id"],
            "size_id": catalog["sizes"]["S"],
            "barcode": "5",
            "price_cents": -1,
        })
        assert resp.status_code == 400

    def test_lookup_barcode(self, client, stocked):
        resp = client.get(f"/api/catalog/lookup/{stocked['barcode']}?store_id={stocked['store_id']}")
        body = resp.get_json()
        assert resp.status_code == 200
        assert body["sku"]["kind"] == "PER_SIZE"
        assert body["store_quantity"] == 30
        assert body["color"] == "Blue"

        assert client.get("/api/catalog/lookup/nope").status_code == 404


class TestStoreRoutes:

    def test_create_rename_and_tax_settings(self, client, db_session):
        resp = client.post("/api/stores", json={"name": "Koramangala", "location": "Bengaluru"})
        assert resp.status_code == 201
        store_id = resp.get_json()["id"]

        assert client.post("/api/stores", json={"name": "Koramangala"}).status_code == 409

        renamed = client.patch(f"/api/stores/{store_id}", json={"name": "Koramangala 5th Block"})
        assert renamed.get_json()["name"] == "Koramangala 5th Block"

        tax = client.get(f"/api/stores/{store_id}/tax-settings").get_json()
        assert tax["gst_rate_bps"] == 1800
        assert tax["is_gst_enabled"] is True

        updated = client.patch(f"/api/stores/{store_id}/tax-settings", json={"gst_rate_bps": 1200})
        assert updated.get_json()["gst_rate_bps"] == 1200
        assert client.patch(f"/api/stores/{store_id}/tax-settings", json={"gst_rate_bps": 20000}).status_code == 400

    def test_inactive_store_hidden_by_default(self, client, store_a, store_b):
        client.patch(f"/api/stores/{store_b}", json={"is_active": False})

        names = [s["name"] for s in client.get("/api/stores").get_json()]
        assert names == ["Store A"]
        everything = client.get("/api/stores?include_inactive=true").get_json()
        assert len(everything) == 2


# =============================================================================
# LEDGER, CHECKOUT AND RETURNS
# =============================================================================


class TestInventoryRoutes:

    def test_distribute_and_insufficient_stock(self, client, store_a, unit_id):
        ok = client.post("/api/inventory/distribute", json={
            "store_id": store_a, "size_stock_id": unit_id, "quantity": 30,
        })
        assert ok.status_code == 200
        assert ok.get_json()["warehouse_stock"] == 70

        too_many = client.post("/api/inventory/distribute", json={
            "store_id": store_a, "size_stock_id": unit_id, "quantity": 71,
        })
        body = too_many.get_json()
        assert too_many.status_code == 409
        assert body["code"] == "INSUFFICIENT_STOCK"
        assert body["details"]["available"] == 70

        bad = client.post("/api/inventory/distribute", json={
            "store_id": store_a, "size_stock_id": unit_id, "quantity": 0,
        })
        assert bad.status_code == 400
        assert bad.get_json()["code"] == "INVALID_QUANTITY"

    def test_available_and_movements(self, client, catalog, stocked):
        resp = client.get(
            "/api/inventory/available",
            query_string={
                "variant_id": catalog["variant_id"],
                "color_id": catalog["color_id"],
                "size_id": catalog["sizes"]["M"],
            },
        )
        assert resp.get_json()["available"] == 70

        movements = client.get(f"/api/inventory/size-stock/{stocked['size_stock_id']}/movements").get_json()
        types = [m["movement_type"] for m in movements["movements"]]
        assert types.count("DISTRIBUTE") == 2
        assert "INITIAL" in types

        listing = client.get(f"/api/inventory/stores/{stocked['store_id']}").get_json()
        assert listing["items"][0]["quantity"] == 30

    def test_sell_endpoint(self, client, stocked):
        resp = client.post(f"/api/inventory/stores/{stocked['store_id']}/sell", json={"barcode": stocked["barcode"]})
        assert resp.status_code == 201
        assert resp.get_json()["invoice"]["total_cents"] == 2000


class TestCheckoutAndReturnRoutes:

    def test_scan_settle_and_return(self, client, stocked):
        store_id = stocked["store_id"]

        cart = client.post(f"/api/checkout/stores/{store_id}/scan", json={"barcode": stocked["barcode"]}).get_json()
        cart = client.post(
            f"/api/checkout/stores/{store_id}/scan",
            json={"barcode": stocked["barcode"], "lines": cart["lines"]},
        ).get_json()
        assert cart["lines"][0]["quantity"] == 2

        quote = client.post("/api/checkout/quote", json={
            "store_id": store_id,
            "lines": cart["lines"],
            "discount_type": "percentage",
            "discount_value": 1000,
        }).get_json()
        assert quote["pricing"]["total_cents"] == 4248

        settled = client.post(f"/api/checkout/stores/{store_id}/settle", json={
            "lines": cart["lines"],
            "discount_type": "percentage",
            "discount_value": 1000,
            "customer_phone": "9123456780",
            "customer_name": "Ravi",
        })
        assert settled.status_code == 201
        invoice = settled.get_json()["invoice"]
        assert invoice["total_cents"] == 4248
        assert len(invoice["items"]) == 1

        by_number = client.get(f"/api/checkout/invoices/by-number/{invoice['invoice_number']}")
        assert by_number.get_json()["invoice"]["id"] == invoice["id"]

        eligible = client.get(
            f"/api/returns/stores/{store_id}/eligible", query_string={"phone": "9123456780"}
        ).get_json()
        assert [inv["id"] for inv in eligible["invoices"]] == [invoice["id"]]

        too_many = client.post(f"/api/returns/stores/{store_id}/settle", json={
            "invoice_id": invoice["id"],
            "lines": [{"invoice_item_id": invoice["items"][0]["id"], "quantity": 3}],
        })
        assert too_many.status_code == 400
        assert too_many.get_json()["code"] == "INVALID_QUANTITY"

        returned = client.post(f"/api/returns/stores/{store_id}/settle", json={
            "invoice_id": invoice["id"],
            "lines": [{"invoice_item_id": invoice["items"][0]["id"], "quantity": 1}],
        })
        assert returned.status_code == 201
        record = returned.get_json()["return"]
        assert record["total_refund_cents"] == 2000
        assert record["amount_due_cents"] == 2000

        fetched = client.get(f"/api/returns/{record['id']}").get_json()["return"]
        assert len(fetched["items"]) == 1

        history = client.get(f"/api/customers/{invoice['customer_id']}/invoices").get_json()
        assert len(history["invoices"]) == 1

        accounts = client.get("/api/reports/store-accounts").get_json()
        assert accounts["totals"]["refunds_cents"] == 2000

    def test_empty_cart_settle_is_rejected(self, client, stocked):
        resp = client.post(f"/api/checkout/stores/{stocked['store_id']}/settle", json={"lines": []})
        assert resp.status_code == 400

    def test_customer_lookup(self, client, db_session):
        created = client.post("/api/customers", json={"phone": "9000011111", "name": "Meera"})
        assert created.status_code == 201

        found = client.get("/api/customers/lookup?phone=9000011111")
        assert found.get_json()["name"] == "Meera"
        assert client.get("/api/customers/lookup?phone=1").status_code == 404
        assert client.get("/api/customers?search=Mee").get_json()["customers"][0]["phone"] == "9000011111"

    def test_dashboard_route(self, client, stocked):
        client.post(f"/api/inventory/stores/{stocked['store_id']}/sell", json={"barcode": stocked["barcode"]})

        report = client.get("/api/reports/dashboard").get_json()
        assert report["total_revenue_cents"] == 2000
        summary = client.get(f"/api/reports/stores/{stocked['store_id']}/summary").get_json()
        assert summary["units_on_hand"] == 29
