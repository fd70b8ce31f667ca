"""Tests for order endpoints, customer and admin."""

from fastapi.testclient import TestClient

from tests.api.conftest import add_to_cart, checkout


class TestCheckoutEndpoint:
    """Tests for POST /orders."""

    def test_places_order(self, client: TestClient, customer_headers, catalog, save10) -> None:
        add_to_cart(client, customer_headers, catalog.shirt_m, 2)
        client.post("/cart/coupon", json={"code": save10}, headers=customer_headers)

        response = client.post(
            "/orders",
            json={"addressId": catalog.address_id, "notes": "Call on arrival"},
            headers=customer_headers,
        )

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Order placed"
        order = body["data"]
        assert order["status"] == "PENDING"
        assert order["subtotal"] == "10000.00"
        assert order["discount"] == "1000.00"
        assert order["shippingCost"] == "2500.00"
        assert order["vat"] == "675.00"
        assert order["total"] == "12175.00"
        assert order["couponCode"] == "SAVE10"
        assert order["shippingAddress"]["city"] == "Lagos"
        assert order["items"][0]["variantSku"] == "ANK-M"
        assert order["paymentStatus"] is None
        assert order["payments"] == []

        cart = client.get("/cart", headers=customer_headers).json()["data"]
        assert cart["items"] == []

    def test_empty_cart(self, client: TestClient, customer_headers, catalog) -> None:
        response = client.post(
            "/orders", json={"addressId": catalog.address_id}, headers=customer_headers
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "EMPTY_CART"

    def test_requires_login(self, client: TestClient, catalog) -> None:
        response = client.post("/orders", json={"addressId": catalog.address_id})

        assert response.status_code == 401


class TestCustomerOrders:
    """Tests for reading and cancelling the caller's orders."""

    def test_list_is_paginated(self, client: TestClient, customer_headers, catalog) -> None:
        for _ in range(3):
            add_to_cart(client, customer_headers, catalog.shirt_m)
            checkout(client, customer_headers, catalog.address_id)

        body = client.get("/orders?page=2&limit=2", headers=customer_headers).json()

        assert len(body["data"]) == 1
        assert body["meta"] == {"page": 2, "limit": 2, "total": 3, "totalPages": 2}

    def test_status_filter(self, client: TestClient, customer_headers, catalog) -> None:
        add_to_cart(client, customer_headers, catalog.shirt_m)
        order = checkout(client, customer_headers, catalog.address_id)
        client.put(f"/orders/{order['id']}/cancel", headers=customer_headers)

        pending = client.get("/orders?status=PENDING", headers=customer_headers).json()
        cancelled = client.get("/orders?status=CANCELLED", headers=customer_headers).json()

        assert pending["meta"]["total"] == 0
        assert [o["id"] for o in cancelled["data"]] == [order["id"]]

    def test_other_users_order_is_not_found(
        self, client: TestClient, customer_headers, other_customer_headers, catalog
    ) -> None:
        add_to_cart(client, customer_headers, catalog.shirt_m)
        order = checkout(client, customer_headers, catalog.address_id)

        response = client.get(f"/orders/{order['id']}", headers=other_customer_headers)

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "ORDER_NOT_FOUND"

    def test_cancel_restores_stock_once(self, client: TestClient, customer_headers, catalog) -> None:
        add_to_cart(client, customer_headers, catalog.shirt_m, 2)
        order = checkout(client, customer_headers, catalog.address_id)

        response = client.put(f"/orders/{order['id']}/cancel", headers=customer_headers)
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "CANCELLED"
        assert response.json()["data"]["cancelledAt"] is not None

        response = client.put(f"/orders/{order['id']}/cancel", headers=customer_headers)
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "CANCEL_NOT_ALLOWED"

        line = add_to_cart(client, customer_headers, catalog.shirt_m)["items"][0]
        assert line["stockQuantity"] == 10


class TestAdminOrders:
    """Tests for /admin/orders."""

    def test_lists_every_customer(
        self, client: TestClient, customer_headers, other_customer_headers, admin_headers, catalog
    ) -> None:
        add_to_cart(client, customer_headers, catalog.shirt_m)
        checkout(client, customer_headers, catalog.address_id)
        add_to_cart(client, other_customer_headers, catalog.shirt_m)
        checkout(client, other_customer_headers, catalog.other_address_id)

        body = client.get("/admin/orders", headers=admin_headers).json()

        assert body["meta"]["total"] == 2

    def test_strict_status_update(
        self, client: TestClient, customer_headers, admin_headers, catalog
    ) -> None:
        add_to_cart(client, customer_headers, catalog.shirt_m)
        order = checkout(client, customer_headers, catalog.address_id)
        url = f"/admin/orders/{order['id']}/status"

        response = client.put(url, json={"status": "SHIPPED"}, headers=admin_headers)
        assert response.status_code == 409
        error = response.json()["error"]
        assert error["code"] == "INVALID_STATUS_TRANSITION"
        assert error["details"]["allowed_transitions"] == ["CONFIRMED", "CANCELLED"]

        response = client.put(url, json={"status": "CONFIRMED"}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "CONFIRMED"

    def test_unknown_status_value(
        self, client: TestClient, customer_headers, admin_headers, catalog
    ) -> None:
        add_to_cart(client, customer_headers, catalog.shirt_m)
        order = checkout(client, customer_headers, catalog.address_id)

        response = client.put(
            f"/admin/orders/{order['id']}/status", json={"status": "LOST"}, headers=admin_headers
        )

        assert response.status_code == 422

    def test_customer_cannot_update_status(
        self, client: TestClient, customer_headers, catalog
    ) -> None:
        add_to_cart(client, customer_headers, catalog.shirt_m)
        order = checkout(client, customer_headers, catalog.address_id)

        response = client.put(
            f"/admin/orders/{order['id']}/status",
            json={"status": "CONFIRMED"},
            headers=customer_headers,
        )

        assert response.status_code == 403
