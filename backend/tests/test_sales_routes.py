"""HTTP tests for /api/sales, /api/inventory and /api/movements."""

import pytest

from pharmapos.models import Sale
from pharmapos.services import inventory_service


def _sale_body(*lines, **extra):
    body = {"items": [{"product_id": pid, "quantity": qty} for pid, qty in lines], "payment_method": "cash"}
    body.update(extra)
    return body


class TestCreateSaleRoute:
    def test_create_sale(self, client, cashier_headers, stocked):
        p, wh = stocked["paracetamol"], stocked["warehouse"]
        resp = client.post("/api/sales", headers=cashier_headers, json=_sale_body((p.id, 3)))

        assert resp.status_code == 201
        sale = resp.get_json()["sale"]
        assert sale["status"] == "ACTIVE"
        assert sale["total"] == "43.50"
        assert sale["warehouse_id"] == wh.id
        assert len(sale["lines"]) == 1
        assert inventory_service.get_quantity(p.id, wh.id) == 7

    def test_guard_rejects_with_every_shortage(self, client, cashier_headers, stocked):
        p, i = stocked["paracetamol"], stocked["ibuprofen"]
        resp = client.post("/api/sales", headers=cashier_headers, json=_sale_body((p.id, 11), (i.id, 6)))

        assert resp.status_code == 409
        body = resp.get_json()
        assert "Insufficient stock" in body["error"]
        assert len(body["details"]["shortages"]) == 2
        assert Sale.query.count() == 0

    def test_guard_reports_missing_inventory(self, client, cashier_headers, stocked, make_product):
        other = make_product("Amoxicilina 500mg", "80.00")
        resp = client.post("/api/sales", headers=cashier_headers, json=_sale_body((other.id, 1)))
        assert resp.status_code == 404

    @pytest.mark.parametrize(
        "body",
        [
            {"items": [], "payment_method": "cash"},
            {"items": [{"product_id": 1}], "payment_method": "cash"},
            {"items": [{"product_id": 1, "quantity": 0}], "payment_method": "cash"},
            {"items": [{"product_id": 1, "quantity": 1}]},
            {"items": [{"product_id": 1, "quantity": 1}], "payment_method": "cash", "discount": 5},
        ],
    )
    def test_invalid_body(self, client, cashier_headers, stocked, body):
        resp = client.post("/api/sales", headers=cashier_headers, json=body)
        assert resp.status_code == 400
        assert "error" in resp.get_json()

    def test_unknown_warehouse(self, client, cashier_headers, stocked):
        p = stocked["paracetamol"]
        resp = client.post("/api/sales", headers=cashier_headers, json=_sale_body((p.id, 1), warehouse_id=999999))
        assert resp.status_code == 404


class TestSaleLifecycleRoutes:
    def _create(self, client, headers, product, qty=2):
        resp = client.post("/api/sales", headers=headers, json=_sale_body((product.id, qty)))
        assert resp.status_code == 201
        return resp.get_json()["sale"]["id"]

    def test_get_and_list(self, client, cashier_headers, stocked):
        sale_id = self._create(client, cashier_headers, stocked["paracetamol"])

        resp = client.get(f"/api/sales/{sale_id}", headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.get_json()["sale"]["id"] == sale_id

        listed = client.get("/api/sales?status=active", headers=cashier_headers)
        assert [s["id"] for s in listed.get_json()["sales"]] == [sale_id]

        assert client.get("/api/sales/999999", headers=cashier_headers).status_code == 404
        assert client.get("/api/sales?status=void", headers=cashier_headers).status_code == 400

    def test_list_by_calendar_day(self, client, cashier_headers, stocked):
        sale_id = self._create(client, cashier_headers, stocked["paracetamol"])
        day = client.get(f"/api/sales/{sale_id}", headers=cashier_headers).get_json()["sale"]["sale_date"][:10]

        same_day = client.get(f"/api/sales?start_date={day}&end_date={day}", headers=cashier_headers)
        assert same_day.status_code == 200
        assert [s["id"] for s in same_day.get_json()["sales"]] == [sale_id]

        resp = client.get(
            f"/api/movements?reference_type=sale&reference_id={sale_id}&date_from={day}&date_to={day}",
            headers=cashier_headers,
        )
        assert len(resp.get_json()["items"]) == 1

        earlier = client.get("/api/sales?end_date=2020-01-01T00:00:00Z", headers=cashier_headers)
        assert earlier.get_json()["sales"] == []

    def test_cancel_then_cancel_again(self, client, cashier_headers, stocked):
        p, wh = stocked["paracetamol"], stocked["warehouse"]
        sale_id = self._create(client, cashier_headers, p, qty=4)

        resp = client.post(f"/api/sales/{sale_id}/cancel", headers=cashier_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["sale"]["status"] == "CANCELLED"
        assert body["restored"][0]["new_quantity"] == 10

        again = client.delete(f"/api/sales/{sale_id}", headers=cashier_headers)
        assert again.status_code == 409
        assert inventory_service.get_quantity(p.id, wh.id) == 10

    def test_cancel_unknown_sale(self, client, cashier_headers, db_session):
        assert client.post("/api/sales/999999/cancel", headers=cashier_headers).status_code == 404


class TestInventoryRoutes:
    def test_quantity(self, client, cashier_headers, stocked):
        p, wh = stocked["ibuprofen"], stocked["warehouse"]
        resp = client.get(
            f"/api/inventory/quantity?product_id={p.id}&warehouse_id={wh.id}", headers=cashier_headers
        )
        assert resp.status_code == 200
        assert resp.get_json()["quantity"] == 5

        missing = client.get("/api/inventory/quantity?product_id=1", headers=cashier_headers)
        assert missing.status_code == 400

    def test_adjust_below_zero(self, client, admin_headers, stocked):
        resp = client.post("/api/inventory/adjust", headers=admin_headers, json={
            "product_id": stocked["ibuprofen"].id,
            "warehouse_id": stocked["warehouse"].id,
            "delta": -6,
        })
        assert resp.status_code == 409
        assert resp.get_json()["details"]["available"] == 5

    def test_set_levels_and_low_stock(self, client, admin_headers, stocked):
        p, wh = stocked["paracetamol"], stocked["warehouse"]
        resp = client.put("/api/inventory/levels", headers=admin_headers, json={
            "product_id": p.id,
            "warehouse_id": wh.id,
            "quantity": 3,
            "min_stock": 4,
            "max_stock": 40,
        })
        assert resp.status_code == 200
        assert resp.get_json()["item"]["is_low_stock"] is True

        low = client.get("/api/inventory?low_stock=true", headers=admin_headers).get_json()["items"]
        assert [item["product_id"] for item in low] == [p.id]

    def test_delete_record_with_stock_is_conflict(self, client, admin_headers, stocked):
        p, wh = stocked["paracetamol"], stocked["warehouse"]
        resp = client.delete(f"/api/inventory?product_id={p.id}&warehouse_id={wh.id}", headers=admin_headers)
        assert resp.status_code == 409

    def test_reconcile(self, client, cashier_headers, stocked):
        p, wh = stocked["paracetamol"], stocked["warehouse"]
        client.post("/api/sales", headers=cashier_headers, json=_sale_body((p.id, 2)))

        resp = client.get(
            f"/api/inventory/reconcile?product_id={p.id}&warehouse_id={wh.id}", headers=cashier_headers
        )
        assert resp.status_code == 200
        report = resp.get_json()
        assert report["is_consistent"] is True
        assert report["stored_quantity"] == 8


class TestMovementRoutes:
    def test_list_and_get(self, client, cashier_headers, stocked):
        p, wh = stocked["paracetamol"], stocked["warehouse"]
        sale_resp = client.post("/api/sales", headers=cashier_headers, json=_sale_body((p.id, 1)))
        sale_id = sale_resp.get_json()["sale"]["id"]

        resp = client.get(
            f"/api/movements?reference_type=sale&reference_id={sale_id}", headers=cashier_headers
        )
        assert resp.status_code == 200
        items = resp.get_json()["items"]
        assert len(items) == 1
        assert items[0]["movement_type"] == "Salida"
        assert items[0]["warehouse_id"] == wh.id

        one = client.get(f"/api/movements/{items[0]['id']}", headers=cashier_headers)
        assert one.status_code == 200
        assert one.get_json()["movement"]["reason"] == f"Sale #{sale_id}"

        assert client.get("/api/movements/999999", headers=cashier_headers).status_code == 404
        assert client.get("/api/movements?movement_type=Robo", headers=cashier_headers).status_code == 400
        assert client.get("/api/movements?date_from=ayer", headers=cashier_headers).status_code == 400
