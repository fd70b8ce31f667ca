"""Helpers for driving the API through the test client."""

import json

import pytest
from fastapi.testclient import TestClient

from storefront.application.payment_service import PaymentWebhookVerifier
from storefront.infrastructure.config import settings


@pytest.fixture
async def save10(add_coupon) -> str:
    """Active 10% coupon."""
    return await add_coupon("SAVE10")


def add_to_cart(client: TestClient, headers: dict, variant_id: str, quantity: int = 1) -> dict:
    response = client.post(
        "/cart/items", json={"variantId": variant_id, "quantity": quantity}, headers=headers
    )
    assert response.status_code == 200, response.text
    return response.json()["data"]


def checkout(client: TestClient, headers: dict, address_id: str, **extra) -> dict:
    """Place an order from the current cart; returns the order."""
    response = client.post("/orders", json={"addressId": address_id, **extra}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def initialize_payment(client: TestClient, headers: dict, order_id: str) -> dict:
    response = client.post("/payments/initialize", json={"orderId": order_id}, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()["data"]


def webhook_body(reference: str, amount: str, status: str = "SUCCESS", currency: str = "NGN") -> bytes:
    return json.dumps(
        {
            "orderId": "opay-240101-0001",
            "reference": reference,
            "status": status,
            "amount": amount,
            "currency": currency,
        }
    ).encode()


def send_webhook(client: TestClient, body: bytes, signature: str | None = "sign"):
    """POST a provider callback; ``"sign"`` signs with the configured secret."""
    headers = {"Content-Type": "application/json"}
    if signature == "sign":
        signature = PaymentWebhookVerifier(settings.opay_secret_key).sign(body)
    if signature is not None:
        headers["X-OPay-Signature"] = signature
    return client.post("/webhooks/payments/opay", content=body, headers=headers)
