"""Domain layer module.

Contains the pure business rules: pricing, coupons, shipping rates,
order and payment state machines, and domain errors.
"""

from storefront.domain.coupons import (
    CouponEffect,
    CouponRules,
    CouponType,
    FixedAmountOff,
    FreeShipping,
    PercentageOff,
    evaluate_coupon,
    resolve_effect,
    validate_coupon,
)
from storefront.domain.exceptions import DomainError
from storefront.domain.pricing import OrderTotals, PricingCalculator, PricingConfig, round_money
from storefront.domain.shipping import FlatRateShipping, ShipmentRequest, ShippingRateProvider
from storefront.domain.state_machines import OrderStatus, PaymentStatus, StatusPolicy

__all__ = [
    "CouponEffect",
    "CouponRules",
    "CouponType",
    "DomainError",
    "FixedAmountOff",
    "FlatRateShipping",
    "FreeShipping",
    "OrderStatus",
    "OrderTotals",
    "PaymentStatus",
    "PercentageOff",
    "PricingCalculator",
    "PricingConfig",
    "ShipmentRequest",
    "ShippingRateProvider",
    "StatusPolicy",
    "evaluate_coupon",
    "resolve_effect",
    "round_money",
    "validate_coupon",
]
