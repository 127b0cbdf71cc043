"""Tests for the FastAPI adapter."""

import uuid

import pytest
from fastapi.testclient import TestClient

from storefront_checkout.adapters.inbound.web.fastapi_app import create_app

SHIPPING = {
    "name": "Asha Rao",
    "email": "asha@example.com",
    "phone": "9876543210",
    "address": "12 MG Road",
    "city": "Bengaluru",
    "state": "Karnataka",
    "pincode": "560001",
}

ASHA = {"X-User-Id": "u-1", "X-User-Email": "asha@example.com"}
RAVI = {"X-User-Id": "u-2", "X-User-Email": "ravi@example.com"}


@pytest.fixture
def client(usecases):
    return TestClient(create_app(usecases))


def add_to_cart(client, product_id, headers=ASHA):
    response = client.post("/cart/items", json={"product_id": product_id}, headers=headers)
    assert response.status_code == 201
    return response.json()


def place(client, headers=ASHA, **body):
    return client.post(
        "/orders",
        json={"source": "cart", "shipping": SHIPPING, "payment_mode": "cod", **body},
        headers=headers,
    )


class TestHealthCheck:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestStockValidation:
    def test_verdict(self, client):
        response = client.post(
            "/stock/validate",
            json={"lines": [{"product_id": "P1", "quantity": 2}, {"product_id": "P2", "quantity": 9}]},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is False
        assert [it["sufficient"] for it in data["items"]] == [True, False]
        assert data["items"][1]["available"] == 5

    def test_bad_request_body(self, client):
        response = client.post("/stock/validate", json={"lines": [{"product_id": "P1", "quantity": 0}]})

        assert response.status_code == 400
        assert response.json()["type"] == "RequestValidationError"

    def test_storage_down(self, client, products):
        products.fail_reads = True

        response = client.post("/stock/validate", json={"lines": [{"product_id": "P1", "quantity": 1}]})

        assert response.status_code == 503
        assert response.json()["type"] == "StorageFailure"


class TestCart:
    def test_requires_identity(self, client):
        response = client.post("/cart/items", json={"product_id": "P1"})

        assert response.status_code == 401
        assert response.json()["type"] == "AuthenticationRequired"

    def test_add_update_remove(self, client):
        add_to_cart(client, "P1")
        assert add_to_cart(client, "P1")["quantity"] == 2

        response = client.put("/cart/items/P1", json={"quantity": 4}, headers=ASHA)
        assert response.status_code == 200
        assert response.json() == {"product_id": "P1", "quantity": 4}

        cart = client.get("/cart", headers=ASHA).json()
        assert (cart["item_count"], cart["total_quantity"]) == (1, 4)

        assert client.delete("/cart/items/P1", headers=ASHA).status_code == 204
        assert client.get("/cart", headers=ASHA).json()["items"] == []

    def test_unknown_product(self, client):
        response = client.post("/cart/items", json={"product_id": "NOPE"}, headers=ASHA)

        assert response.status_code == 404
        assert response.json()["details"] == [{"entity": "product", "key": "NOPE"}]

    def test_clear(self, client):
        add_to_cart(client, "P1")
        add_to_cart(client, "P2")

        assert client.delete("/cart", headers=ASHA).json() == {"removed": 2}


class TestCheckout:
    def test_session_preview(self, client):
        add_to_cart(client, "P1")
        add_to_cart(client, "P1")

        response = client.post("/checkout/session", json={"source": "cart"}, headers=ASHA)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == "200.00"
        assert data["currency"] == "INR"
        assert data["lines"][0]["name"] == "Cotton Kurta"

    def test_empty_cart(self, client):
        response = client.post("/checkout/session", json={"source": "cart"}, headers=ASHA)

        assert response.status_code == 400
        assert response.json()["type"] == "EmptySelection"

    def test_place_order(self, client):
        add_to_cart(client, "P1")
        add_to_cart(client, "P1")

        response = place(client)

        assert response.status_code == 201
        data = response.json()
        assert response.headers["Location"] == f"/orders/{data['order_id']}"
        assert data["total"] == "200.00"
        assert data["status"] == "pending"
        assert data["lines"] == [
            {"product_id": "P1", "quantity": 2, "price": "100.00", "subtotal": "200.00"}
        ]
        assert client.get("/cart", headers=ASHA).json()["items"] == []

    def test_receipt_hides_owed_stock_adjustments(self, client, products, adapters):
        add_to_cart(client, "P1")
        products.failing_writes = {"P1"}

        response = place(client)

        assert response.status_code == 201
        assert "reconciliation_pending" not in response.json()
        assert "write to product" not in response.text
        (entry,) = adapters.outbox.list().unwrap()
        assert entry.product_id == "P1"

    def test_insufficient_stock_details(self, client):
        add_to_cart(client, "P2")
        client.put("/cart/items/P2", json={"quantity": 7}, headers=ASHA)

        response = place(client)

        assert response.status_code == 409
        body = response.json()
        assert body["type"] == "InsufficientStock"
        assert body["details"] == [
            {"product_id": "P2", "product_name": "Silk Dupatta", "requested": 7, "available": 5}
        ]

    def test_buy_now_out_of_stock(self, client):
        response = place(client, source="buynow", product_id="GONE")

        assert response.status_code == 409
        assert response.json()["type"] == "OutOfStock"

    def test_invalid_shipping(self, client):
        add_to_cart(client, "P1")

        response = place(client, shipping={**SHIPPING, "phone": "12345"})

        assert response.status_code == 400
        assert "phone" in response.json()["message"]


class TestOrders:
    @pytest.fixture
    def order_id(self, client):
        response = place(client, source="buynow", product_id="P1")
        assert response.status_code == 201
        return response.json()["order_id"]

    def test_own_orders(self, client, order_id):
        mine = client.get("/orders", headers=ASHA).json()
        theirs = client.get("/orders", headers=RAVI).json()

        assert [o["order_id"] for o in mine["items"]] == [order_id]
        assert theirs["items"] == []

    def test_order_details_are_owner_scoped(self, client, order_id):
        assert client.get(f"/orders/{order_id}", headers=ASHA).status_code == 200
        assert client.get(f"/orders/{order_id}", headers=RAVI).status_code == 403
        assert client.get(f"/orders/{order_id}").status_code == 401

    def test_bad_and_unknown_ids(self, client):
        assert client.get("/orders/not-a-uuid", headers=ASHA).status_code == 400
        assert client.get(f"/orders/{uuid.uuid4()}", headers=ASHA).status_code == 404

    def test_cancel_twice(self, client, order_id):
        first = client.post(f"/orders/{order_id}/cancel", headers=ASHA)
        second = client.post(f"/orders/{order_id}/cancel", headers=ASHA)

        assert first.status_code == 200
        assert first.json()["status"] == "cancelled"
        assert second.status_code == 409
        assert second.json()["details"] == [{"current": "cancelled", "requested": "cancelled"}]


class TestAdmin:
    @pytest.fixture
    def order_id(self, client):
        return place(client, source="buynow", product_id="P2").json()["order_id"]

    def test_status_change(self, client, order_id):
        response = client.put(f"/admin/orders/{order_id}/status", json={"status": "Picked Up"})

        assert response.status_code == 200
        assert response.json()["status"] == "picked_up"

    def test_unknown_status(self, client, order_id):
        response = client.put(f"/admin/orders/{order_id}/status", json={"status": "lost"})

        assert response.status_code == 400

    def test_admin_view_is_unscoped(self, client, order_id):
        response = client.get(f"/admin/orders/{order_id}")

        assert response.status_code == 200
        assert response.json()["shipping_address"]["pincode"] == "560001"

    def test_list_and_stats(self, client, order_id):
        place(client, headers=RAVI, source="buynow", product_id="P1")

        listed = client.get("/admin/orders", params={"sort_by": "total", "sort_dir": "asc"}).json()
        assert [o["total"] for o in listed["items"]] == ["100.00", "200.00"]

        stats = client.get("/admin/orders/stats").json()
        assert stats == {
            "day": None,
            "total_orders": 2,
            "total_revenue": "300.00",
            "currency": "INR",
        }

    def test_invalid_sort(self, client):
        assert client.get("/admin/orders", params={"sort_by": "email"}).status_code == 400
