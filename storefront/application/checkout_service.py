"""Checkout application service.

Turns the caller's cart into an order in one transaction:
- Re-prices every line from current variant prices
- Re-validates the attached coupon
- Persists the order with frozen line prices and address snapshot
- Decrements stock, counts the coupon use and empties the cart

Any failure rolls the whole unit back, so no partial order, stock
change or coupon use survives.
"""

from datetime import datetime, timezone

import structlog
from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from storefront.application.cart_service import unit_price
from storefront.application.order_service import load_order
from storefront.domain.coupons import NO_EFFECT, CouponRules, evaluate_coupon
from storefront.domain.exceptions import (
    CouponUsageLimitError,
    EmptyCartError,
    InsufficientStockError,
    NotFoundError,
)
from storefront.domain.identifiers import generate_order_number
from storefront.domain.pricing import ZERO, PricingCalculator, round_money
from storefront.domain.shipping import ShipmentRequest, ShippingRateProvider
from storefront.domain.state_machines import OrderStatus
from storefront.infrastructure.database import transaction
from storefront.infrastructure.inventory import available_stock, decrement_stock
from storefront.infrastructure.models import (
    AddressModel,
    CartItemModel,
    CartModel,
    CouponModel,
    OrderItemModel,
    OrderModel,
    ProductVariantModel,
)

logger = structlog.get_logger()


class CheckoutService:
    """Application service that places orders from carts."""

    def __init__(
        self,
        session: AsyncSession,
        calculator: PricingCalculator,
        shipping: ShippingRateProvider,
        order_prefix: str = "VT",
        currency: str = "NGN",
    ) -> None:
        """Initialize service.

        Args:
            session: Database session.
            calculator: Order totals calculator.
            shipping: Shipping cost source.
            order_prefix: Prefix for generated order numbers.
            currency: Currency orders are placed in.
        """
        self.session = session
        self.calculator = calculator
        self.shipping = shipping
        self.order_prefix = order_prefix
        self.currency = currency

    async def checkout(
        self,
        user_id: str,
        address_id: str,
        notes: str | None = None,
    ) -> OrderModel:
        """Place an order from the caller's cart.

        Args:
            user_id: Cart and address owner.
            address_id: Shipping address; must belong to ``user_id``.
            notes: Free-text customer notes.

        Returns:
            The new order, in PENDING status.

        Raises:
            EmptyCartError: Cart is missing, empty or expired.
            NotFoundError: Address missing or not the caller's.
            InsufficientStockError: A line exceeds stock, either on the
                pre-check or at the conditional decrement.
            InvalidCouponError: Attached coupon no longer applies (or a
                subclass for the specific reason).
        """
        now = datetime.now(timezone.utc)

        async with transaction(self.session):
            cart = await self._load_cart(user_id)
            if cart is None or not cart.items or _is_expired(cart, now):
                raise EmptyCartError()

            address = (
                await self.session.execute(
                    select(AddressModel).where(
                        AddressModel.id == address_id,
                        AddressModel.user_id == user_id,
                    )
                )
            ).scalar_one_or_none()
            if address is None:
                raise NotFoundError("Shipping address", address_id)

            # Lines are priced from current variant data.
            order_items = []
            item_count = 0
            for item in cart.items:
                variant = item.variant
                if not variant.is_active or not variant.product.is_active:
                    raise NotFoundError("Product variant", variant.id)
                if variant.stock_quantity < item.quantity:
                    raise InsufficientStockError(
                        variant.id,
                        variant.stock_quantity,
                        item.quantity,
                        message=(
                            f"Insufficient stock for {variant.product.name} "
                            f"({variant.color}, {variant.size})."
                        ),
                    )
                price = unit_price(variant)
                order_items.append(
                    OrderItemModel(
                        variant_id=variant.id,
                        quantity=item.quantity,
                        unit_price=price,
                        total_price=self.calculator.line_total(price, item.quantity),
                        product_name=variant.product.name,
                        variant_sku=variant.sku,
                        variant_color=variant.color,
                        variant_size=variant.size,
                    )
                )
                item_count += item.quantity

            subtotal = round_money(sum((i.total_price for i in order_items), ZERO))

            effect = NO_EFFECT
            if cart.coupon is not None:
                effect = evaluate_coupon(CouponRules.from_record(cart.coupon), subtotal, now)

            if effect.waives_shipping:
                shipping_cost = ZERO
            else:
                shipping_cost = await self.shipping.quote(
                    ShipmentRequest(
                        destination=address.snapshot(),
                        item_count=item_count,
                        subtotal=subtotal,
                    )
                )

            totals = self.calculator.order_totals(subtotal, shipping_cost, effect.discount)

            order = OrderModel(
                order_number=generate_order_number(self.order_prefix),
                user_id=user_id,
                status=OrderStatus.PENDING.value,
                subtotal=totals.subtotal,
                discount=totals.discount,
                shipping_cost=totals.shipping_cost,
                vat=totals.vat,
                total=totals.total,
                currency=self.currency,
                coupon_id=cart.coupon.id if cart.coupon is not None else None,
                coupon_code=cart.coupon.code if cart.coupon is not None else None,
                shipping_address=address.snapshot(),
                notes=notes,
                items=order_items,
            )
            self.session.add(order)
            await self.session.flush()

            # Variants are locked in id order.
            for line in sorted(order_items, key=lambda i: i.variant_id):
                if not await decrement_stock(self.session, line.variant_id, line.quantity):
                    available = await available_stock(self.session, line.variant_id)
                    logger.warning(
                        "Stock decrement lost to concurrent checkout",
                        variant_id=line.variant_id,
                        requested=line.quantity,
                        available=available,
                    )
                    raise InsufficientStockError(line.variant_id, available, line.quantity)

            if cart.coupon is not None:
                await self._count_coupon_use(cart.coupon)

            await self.session.execute(
                delete(CartItemModel).where(CartItemModel.cart_id == cart.id)
            )
            cart.coupon_id = None

            order_id = order.id

        logger.info(
            "Order placed",
            order_id=order_id,
            order_number=order.order_number,
            user_id=user_id,
            total=str(totals.total),
            coupon_code=order.coupon_code,
            item_count=item_count,
        )
        return await load_order(self.session, order_id)

    async def _load_cart(self, user_id: str) -> CartModel | None:
        result = await self.session.execute(
            select(CartModel)
            .where(CartModel.user_id == user_id)
            .options(
                selectinload(CartModel.items)
                .selectinload(CartItemModel.variant)
                .selectinload(ProductVariantModel.product),
                selectinload(CartModel.coupon),
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _count_coupon_use(self, coupon: CouponModel) -> None:
        result = await self.session.execute(
            update(CouponModel)
            .where(
                CouponModel.id == coupon.id,
                or_(
                    CouponModel.max_uses.is_(None),
                    CouponModel.used_count < CouponModel.max_uses,
                ),
            )
            .values(used_count=CouponModel.used_count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise CouponUsageLimitError(coupon.code, coupon.max_uses)


def _is_expired(cart: CartModel, now: datetime) -> bool:
    expires_at = cart.expires_at
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return expires_at <= now


