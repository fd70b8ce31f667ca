"""Order pricing arithmetic.

Pure functions over ``Decimal`` amounts. Every intermediate result is
rounded to two places (half up) so repeated additions cannot drift.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def round_money(amount: Decimal | int | str) -> Decimal:
    """Round an amount to two decimal places, half up."""
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PricingConfig:
    """Process-wide pricing settings, injected at construction.

    Attributes:
        vat_rate: Value-added tax as a fraction (0.075 is 7.5%).
    """

    vat_rate: Decimal = Decimal("0.075")

    def __post_init__(self) -> None:
        if self.vat_rate < 0:
            raise ValueError(f"VAT rate cannot be negative: {self.vat_rate}")


@dataclass(frozen=True)
class OrderTotals:
    """Computed money fields of an order."""

    subtotal: Decimal
    discount: Decimal
    discounted_subtotal: Decimal
    shipping_cost: Decimal
    vat: Decimal
    total: Decimal


class PricingCalculator:
    """Computes VAT and order totals at a configured rate."""

    def __init__(self, config: PricingConfig) -> None:
        self.config = config

    def vat(self, amount: Decimal) -> Decimal:
        """VAT due on ``amount``."""
        return round_money(round_money(amount) * self.config.vat_rate)

    def line_total(self, unit_price: Decimal, quantity: int) -> Decimal:
        return round_money(round_money(unit_price) * quantity)

    def order_totals(
        self,
        subtotal: Decimal,
        shipping_cost: Decimal,
        discount: Decimal = ZERO,
    ) -> OrderTotals:
        """Compute the money fields of an order.

        The discount is taken off first and floored at zero, so VAT is
        only charged on what the customer actually pays for goods.

        Args:
            subtotal: Sum of line totals, at least zero.
            shipping_cost: Shipping charge, at least zero.
            discount: Coupon discount, at least zero.

        Returns:
            OrderTotals with total = discounted subtotal + VAT + shipping.
        """
        if subtotal < 0 or shipping_cost < 0 or discount < 0:
            raise ValueError("Subtotal, shipping and discount must not be negative")

        subtotal = round_money(subtotal)
        shipping_cost = round_money(shipping_cost)
        discount = round_money(discount)

        discounted_subtotal = round_money(max(subtotal - discount, ZERO))
        vat = self.vat(discounted_subtotal)
        total = round_money(discounted_subtotal + vat + shipping_cost)

        return OrderTotals(
            subtotal=subtotal,
            discount=discount,
            discounted_subtotal=discounted_subtotal,
            shipping_cost=shipping_cost,
            vat=vat,
            total=total,
        )
