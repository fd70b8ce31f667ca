"""Tests for cart endpoints."""

from fastapi.testclient import TestClient

from tests.api.conftest import add_to_cart


class TestCartEndpoints:
    """Tests for /cart."""

    def test_empty_cart(self, client: TestClient, customer_headers, catalog) -> None:
        response = client.get("/cart", headers=customer_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Cart retrieved"
        assert body["data"]["items"] == []
        assert body["data"]["itemCount"] == 0

    def test_add_then_read(self, client: TestClient, customer_headers, catalog) -> None:
        """Money is serialized as two-place decimal strings."""
        add_to_cart(client, customer_headers, catalog.shirt_m, 2)

        data = client.get("/cart", headers=customer_headers).json()["data"]

        assert data["itemCount"] == 2
        assert data["subtotal"] == "10000.00"
        assert data["total"] == "10000.00"
        [line] = data["items"]
        assert line["variantId"] == catalog.shirt_m
        assert line["unitPrice"] == "5000.00"
        assert line["lineTotal"] == "10000.00"
        assert line["stockQuantity"] == 10

    def test_update_and_remove(self, client: TestClient, customer_headers, catalog) -> None:
        data = add_to_cart(client, customer_headers, catalog.shirt_m, 1)
        item_id = data["items"][0]["id"]

        response = client.put(
            f"/cart/items/{item_id}", json={"quantity": 3}, headers=customer_headers
        )
        assert response.status_code == 200
        assert response.json()["data"]["itemCount"] == 3

        response = client.delete(f"/cart/items/{item_id}", headers=customer_headers)
        assert response.status_code == 200
        assert response.json()["data"]["items"] == []

    def test_other_users_line_is_not_found(
        self, client: TestClient, customer_headers, other_customer_headers, catalog
    ) -> None:
        item_id = add_to_cart(client, customer_headers, catalog.shirt_m)["items"][0]["id"]
        add_to_cart(client, other_customer_headers, catalog.cap)

        response = client.delete(f"/cart/items/{item_id}", headers=other_customer_headers)

        assert response.status_code == 404

    def test_out_of_stock(self, client: TestClient, customer_headers, catalog) -> None:
        response = client.post(
            "/cart/items", json={"variantId": catalog.sold_out, "quantity": 1}, headers=customer_headers
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "OUT_OF_STOCK"

    def test_clear_cart(self, client: TestClient, customer_headers, catalog) -> None:
        add_to_cart(client, customer_headers, catalog.shirt_m)

        response = client.delete("/cart", headers=customer_headers)

        assert response.json()["data"]["items"] == []
        assert response.json()["message"] == "Cart cleared"


class TestCartCoupon:
    """Tests for /cart/coupon."""

    def test_apply_and_remove(self, client: TestClient, customer_headers, catalog, save10) -> None:
        add_to_cart(client, customer_headers, catalog.shirt_m, 2)

        response = client.post("/cart/coupon", json={"code": "save10"}, headers=customer_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["coupon"]["code"] == "SAVE10"
        assert data["coupon"]["applicable"] is True
        assert data["discount"] == "1000.00"
        assert data["total"] == "9000.00"

        response = client.delete("/cart/coupon", headers=customer_headers)
        assert response.json()["data"]["coupon"] is None

    def test_unknown_coupon(self, client: TestClient, customer_headers, catalog) -> None:
        add_to_cart(client, customer_headers, catalog.shirt_m)

        response = client.post("/cart/coupon", json={"code": "NOPE"}, headers=customer_headers)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_COUPON"

    def test_coupon_on_empty_cart(self, client: TestClient, customer_headers, save10) -> None:
        response = client.post("/cart/coupon", json={"code": save10}, headers=customer_headers)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "EMPTY_CART"
