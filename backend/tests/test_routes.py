# Overview: Pytest coverage for the HTTP layer; status codes and JSON shapes per blueprint.

import pytest

from liveseller.models import Order


@pytest.fixture
def built_order(db_session, client, live_session, make_item, make_claim):
    """One 1000-cent order for Ana, built through the API."""
    item = make_item(price=500, reserved=2)
    make_claim(live_session, item, qty=2)
    resp = client.post(f"/api/orders/sessions/{live_session.id}/build")
    assert resp.status_code == 200
    return db_session.query(Order).one()


# =============================================================================
# SYSTEM
# =============================================================================


class TestSystem:
    def test_health(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["checks"]["database"]["status"] == "healthy"

    def test_cors_allowed_origin(self, client, db_session):
        resp = client.get("/health", headers={"Origin": "http://localhost:5173"})
        assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"

    def test_cors_other_origin(self, client, db_session):
        resp = client.get("/health", headers={"Origin": "http://evil.example"})
        assert "Access-Control-Allow-Origin" not in resp.headers


# =============================================================================
# INVENTORY
# =============================================================================


class TestInventoryRoutes:
    def test_create_and_duplicate(self, client, db_session):
        body = {"item_code": "D-001", "name": "Floral dress", "selling_price_cents": 35000, "initial_stock": 5}
        resp = client.post("/api/inventory/items", json=body)
        assert resp.status_code == 201
        item = resp.get_json()["item"]
        assert item["current_stock"] == 5
        assert item["stock_status"] == "OK"

        resp = client.post("/api/inventory/items", json=dict(body, item_code="d-001"))
        assert resp.status_code == 409

    def test_create_missing_name(self, client, db_session):
        resp = client.post("/api/inventory/items", json={"item_code": "X"})
        assert resp.status_code == 400

    def test_adjust_clamps(self, client, make_item):
        item = make_item(current=2)
        resp = client.post(f"/api/inventory/items/{item.id}/adjust", json={"current_delta": -5})
        assert resp.status_code == 200
        assert resp.get_json()["item"]["current_stock"] == 0

    def test_adjust_rejects_non_integer(self, client, make_item):
        item = make_item()
        resp = client.post(f"/api/inventory/items/{item.id}/adjust", json={"current_delta": 1.5})
        assert resp.status_code == 400

    def test_unknown_item(self, client, db_session):
        assert client.get("/api/inventory/items/999").status_code == 404
        assert client.post("/api/inventory/items/999/adjust", json={"current_delta": 1}).status_code == 404


# =============================================================================
# SESSIONS
# =============================================================================


class TestSessionRoutes:
    def test_lifecycle(self, client, db_session):
        resp = client.post("/api/sessions/", json={"title": "Friday ukay"})
        assert resp.status_code == 201
        session_id = resp.get_json()["session"]["id"]

        resp = client.post(f"/api/sessions/{session_id}/status", json={"status": "LIVE"})
        assert resp.status_code == 200
        assert resp.get_json()["session"]["status"] == "LIVE"

        resp = client.get("/api/sessions/")
        assert [s["id"] for s in resp.get_json()["sessions"]] == [session_id]

    def test_create_invalid(self, client, db_session):
        assert client.post("/api/sessions/", json={}).status_code == 400

    def test_unknown_session(self, client, db_session):
        assert client.get("/api/sessions/404").status_code == 404


# =============================================================================
# ORDERS / PAYMENTS / SHIPMENTS
# =============================================================================


class TestOrderRoutes:
    def test_build_unknown_session(self, client, db_session):
        assert client.post("/api/orders/sessions/999/build").status_code == 404

    def test_detail_and_list(self, client, built_order, live_session):
        resp = client.get(f"/api/orders/{built_order.id}")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["order"]["grand_total_cents"] == 1000
        assert len(data["lines"]) == 1
        assert data["customer"]["display_name"] == "Ana"

        resp = client.get(f"/api/orders/sessions/{live_session.id}")
        assert resp.get_json()["count"] == 1

        resp = client.get("/api/orders/", query_string={"payment_status": "UNPAID"})
        assert resp.get_json()["total"] == 1

    def test_fees_reject_unknown_fields(self, client, built_order):
        resp = client.patch(f"/api/orders/{built_order.id}/fees", json={"grand_total_cents": 1})
        assert resp.status_code == 400

    def test_fees_update(self, client, built_order):
        resp = client.patch(f"/api/orders/{built_order.id}/fees", json={"shipping_fee_cents": 50, "cod_fee_cents": 60})
        assert resp.status_code == 200
        assert resp.get_json()["order"]["grand_total_cents"] == 1110

    def test_status_conflict(self, client, built_order):
        resp = client.post(f"/api/orders/{built_order.id}/status", json={"status": "CANCELLED"})
        assert resp.status_code == 200

        resp = client.post(f"/api/orders/{built_order.id}/status", json={"status": "PENDING_PAYMENT"})
        assert resp.status_code == 409

    def test_status_unknown_value(self, client, built_order):
        resp = client.post(f"/api/orders/{built_order.id}/status", json={"status": "LOST"})
        assert resp.status_code == 400

    def test_unknown_order(self, client, db_session):
        assert client.get("/api/orders/999").status_code == 404
        assert client.get("/api/orders/999/tax").status_code == 404


class TestPaymentRoutes:
    def test_record_and_void(self, client, built_order):
        resp = client.post("/api/payments/", json={"order_id": built_order.id, "amount_cents": 400, "method": "GCASH"})
        assert resp.status_code == 201
        data = resp.get_json()
        assert data["order"]["status"] == "PARTIALLY_PAID"
        assert data["order"]["balance_due_cents"] == 600

        payment_id = data["payment"]["id"]
        resp = client.post(f"/api/payments/{payment_id}/void", json={"reason": "bounced"})
        assert resp.status_code == 200
        assert resp.get_json()["order"]["status"] == "PENDING_PAYMENT"

        resp = client.get(f"/api/payments/orders/{built_order.id}", query_string={"include_voided": "false"})
        assert resp.get_json()["count"] == 0

        resp = client.get(f"/api/orders/{built_order.id}/events")
        event_types = [ev["event_type"] for ev in resp.get_json()["events"]]
        assert event_types.index("payment.voided") < event_types.index("payment.posted")

    def test_events_unknown_order(self, client, db_session):
        assert client.get("/api/orders/999/events").status_code == 404

    @pytest.mark.parametrize("body", [
        {"amount_cents": 0, "method": "GCASH"},
        {"amount_cents": 100, "method": "BARTER"},
        {"amount_cents": 12.5, "method": "GCASH"},
    ])
    def test_record_invalid(self, client, built_order, body):
        resp = client.post("/api/payments/", json=dict(body, order_id=built_order.id))
        assert resp.status_code == 400

    def test_record_unknown_order(self, client, db_session):
        resp = client.post("/api/payments/", json={"order_id": 999, "amount_cents": 100, "method": "CASH"})
        assert resp.status_code == 404


class TestShipmentRoutes:
    def test_upsert_and_deliver(self, client, built_order):
        client.post("/api/payments/", json={"order_id": built_order.id, "amount_cents": 1000, "method": "CASH"})

        resp = client.put(f"/api/shipments/orders/{built_order.id}", json={"courier": "LBC", "status": "IN_TRANSIT"})
        assert resp.status_code == 200
        shipment_id = resp.get_json()["shipment"]["id"]
        assert resp.get_json()["order"]["status"] == "SHIPPED"

        resp = client.post(f"/api/shipments/{shipment_id}/status", json={"status": "DELIVERED"})
        assert resp.status_code == 200
        assert resp.get_json()["order"]["status"] == "DELIVERED"

    def test_cancelled_order_keeps_status(self, client, built_order):
        client.post(f"/api/orders/{built_order.id}/status", json={"status": "CANCELLED"})
        resp = client.put(f"/api/shipments/orders/{built_order.id}", json={"status": "DELIVERED"})
        assert resp.status_code == 200
        assert resp.get_json()["order"]["status"] == "CANCELLED"
        assert resp.get_json()["shipment"]["status"] == "DELIVERED"

    def test_status_required(self, client, db_session):
        assert client.post("/api/shipments/1/status", json={}).status_code == 400


# =============================================================================
# CUSTOMERS / FINANCE
# =============================================================================


class TestCustomerAndFinanceRoutes:
    def test_customer_overview(self, client, built_order):
        resp = client.get("/api/customers/", query_string={"joy_filter": "JOY_ONLY"})
        assert resp.status_code == 200
        assert [r["customer"]["display_name"] for r in resp.get_json()["customers"]] == ["Ana"]

        assert client.get("/api/customers/", query_string={"joy_filter": "MAYBE"}).status_code == 400

    def test_customer_patch_and_recompute(self, client, built_order):
        resp = client.patch(f"/api/customers/{built_order.customer_id}", json={"phone": "0917"})
        assert resp.status_code == 200
        assert resp.get_json()["customer"]["phone"] == "0917"

        resp = client.post(f"/api/customers/{built_order.customer_id}/recompute")
        assert resp.get_json()["customer"]["no_pay_count"] == 1

    def test_snapshot_requires_range(self, client, db_session):
        assert client.get("/api/finance/snapshot").status_code == 400

    def test_snapshot(self, client, built_order):
        client.post("/api/payments/", json={"order_id": built_order.id, "amount_cents": 1000, "method": "CASH"})
        resp = client.get("/api/finance/snapshot", query_string={"from": "2000-01-01", "to": "2100-01-01"})
        assert resp.status_code == 200
        assert resp.get_json()["total_sales_cents"] == 1000

    def test_session_snapshot_unknown(self, client, db_session):
        assert client.get("/api/finance/sessions/999").status_code == 404

    def test_dashboard(self, client, built_order):
        resp = client.get("/api/finance/dashboard")
        assert resp.status_code == 200
        assert resp.get_json()["pending_payments_cents"] == 1000
