"""Shipping rate capability.

Checkout asks a ``ShippingRateProvider`` for the cost and never computes
it itself, so a carrier-backed provider can replace the flat rate
without touching checkout.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Protocol

from storefront.domain.pricing import round_money


@dataclass(frozen=True)
class ShipmentRequest:
    """What a rate provider gets to price a shipment."""

    destination: dict[str, Any]
    item_count: int
    subtotal: Decimal


class ShippingRateProvider(Protocol):
    async def quote(self, shipment: ShipmentRequest) -> Decimal:
        """Return the shipping cost for ``shipment``."""
        ...


class FlatRateShipping:
    """Same cost for every shipment."""

    def __init__(self, rate: Decimal) -> None:
        if rate < 0:
            raise ValueError(f"Shipping rate cannot be negative: {rate}")
        self.rate = round_money(rate)

    async def quote(self, shipment: ShipmentRequest) -> Decimal:
        return self.rate
