"""Service wiring.

Builds application services per request from the request's database
session and the settings. Pricing config, the shipping rate provider
and the status policy are constructed here and injected, so services
never read settings themselves.
"""

from datetime import timedelta
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.application.cart_service import CartService
from storefront.application.checkout_service import CheckoutService
from storefront.application.order_service import OrderService
from storefront.application.payment_service import PaymentService, PaymentWebhookVerifier
from storefront.domain.pricing import PricingCalculator, PricingConfig
from storefront.domain.shipping import FlatRateShipping, ShippingRateProvider
from storefront.domain.state_machines import StatusPolicy
from storefront.infrastructure.config import settings
from storefront.infrastructure.database import get_session

SessionDep = Annotated[AsyncSession, Depends(get_session)]


def get_calculator() -> PricingCalculator:
    """Get the order totals calculator."""
    return PricingCalculator(PricingConfig(vat_rate=settings.vat_rate))


def get_shipping_provider() -> ShippingRateProvider:
    """Get the shipping rate provider."""
    return FlatRateShipping(settings.shipping_flat_rate)


def get_cart_service(session: SessionDep) -> CartService:
    """Get cart service."""
    return CartService(session, cart_ttl=timedelta(days=settings.cart_ttl_days))


def get_checkout_service(
    session: SessionDep,
    calculator: Annotated[PricingCalculator, Depends(get_calculator)],
    shipping: Annotated[ShippingRateProvider, Depends(get_shipping_provider)],
) -> CheckoutService:
    """Get checkout service."""
    return CheckoutService(
        session,
        calculator=calculator,
        shipping=shipping,
        order_prefix=settings.order_prefix,
        currency=settings.currency,
    )


def get_order_service(session: SessionDep) -> OrderService:
    """Get order service."""
    return OrderService(session, policy=StatusPolicy(settings.order_status_policy))


def get_payment_service(
    session: SessionDep,
    orders: Annotated[OrderService, Depends(get_order_service)],
) -> PaymentService:
    """Get payment service."""
    return PaymentService(session, orders=orders, payment_page_url=settings.payment_page_url)


def get_webhook_verifier() -> PaymentWebhookVerifier:
    """Get the payment webhook signature verifier."""
    return PaymentWebhookVerifier(
        settings.opay_secret_key,
        required=settings.webhook_signature_required,
    )
