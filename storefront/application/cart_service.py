"""Cart application service.

Orchestrates cart use cases:
- Reading the computed cart view
- Adding, updating and removing line items against live stock
- Attaching and detaching a coupon

Money fields of the cart are never stored. They are recomputed from
variant prices, quantities and the attached coupon on every read.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from storefront.domain.coupons import (
    NO_EFFECT,
    CouponEffect,
    CouponRules,
    evaluate_coupon,
    validate_coupon,
)
from storefront.domain.exceptions import (
    DomainError,
    EmptyCartError,
    InsufficientStockError,
    InvalidCouponError,
    NotFoundError,
    OutOfStockError,
    ValidationFailedError,
)
from storefront.domain.pricing import ZERO, round_money
from storefront.infrastructure.database import transaction
from storefront.infrastructure.models import (
    CartItemModel,
    CartModel,
    CouponModel,
    ProductVariantModel,
)

logger = structlog.get_logger()


# ============================================================================
# Cart View
# ============================================================================


@dataclass
class CartLineView:
    """One computed cart line."""

    id: str
    variant_id: str
    product_id: str
    product_name: str
    sku: str
    color: str
    size: str
    unit_price: Decimal
    quantity: int
    line_total: Decimal
    stock_quantity: int


@dataclass
class CartCouponView:
    """Coupon attached to a cart and whether it currently applies."""

    code: str
    type: str
    value: Decimal
    applicable: bool


@dataclass
class CartView:
    """Read-through view of a cart."""

    id: str | None
    items: list[CartLineView] = field(default_factory=list)
    item_count: int = 0
    subtotal: Decimal = ZERO
    discount: Decimal = ZERO
    shipping_waived: bool = False
    total: Decimal = ZERO
    coupon: CartCouponView | None = None
    expires_at: datetime | None = None


def unit_price(variant: ProductVariantModel) -> Decimal:
    """Price of one unit: product base price plus the variant modifier."""
    return round_money(Decimal(variant.product.base_price) + Decimal(variant.price_modifier or 0))


def build_cart_view(cart: CartModel | None, now: datetime | None = None) -> CartView:
    """Compute the cart view from a cart loaded with items and coupon.

    A coupon that no longer passes validation stays listed with
    ``applicable=False`` and contributes no discount.
    """
    if cart is None:
        return CartView(id=None)

    lines = []
    for item in cart.items:
        price = unit_price(item.variant)
        lines.append(
            CartLineView(
                id=item.id,
                variant_id=item.variant_id,
                product_id=item.variant.product_id,
                product_name=item.variant.product.name,
                sku=item.variant.sku,
                color=item.variant.color,
                size=item.variant.size,
                unit_price=price,
                quantity=item.quantity,
                line_total=round_money(price * item.quantity),
                stock_quantity=item.variant.stock_quantity,
            )
        )

    subtotal = round_money(sum((line.line_total for line in lines), ZERO))

    effect: CouponEffect = NO_EFFECT
    coupon_view = None
    if cart.coupon is not None:
        rules = CouponRules.from_record(cart.coupon)
        try:
            effect = evaluate_coupon(rules, subtotal, now)
            applicable = True
        except DomainError:
            applicable = False
        coupon_view = CartCouponView(
            code=cart.coupon.code,
            type=cart.coupon.type,
            value=Decimal(cart.coupon.value),
            applicable=applicable,
        )

    return CartView(
        id=cart.id,
        items=lines,
        item_count=sum(line.quantity for line in lines),
        subtotal=subtotal,
        discount=effect.discount,
        shipping_waived=effect.waives_shipping,
        total=round_money(max(subtotal - effect.discount, ZERO)),
        coupon=coupon_view,
        expires_at=cart.expires_at,
    )


# ============================================================================
# Cart Service
# ============================================================================


class CartService:
    """Application service for the caller's cart.

    Every quantity change is checked against the variant's current
    stock, since stock moves between cart reads.
    """

    def __init__(self, session: AsyncSession, cart_ttl: timedelta = timedelta(days=30)) -> None:
        """Initialize service.

        Args:
            session: Database session.
            cart_ttl: How long a cart lives after its last change.
        """
        self.session = session
        self.cart_ttl = cart_ttl

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_cart(self, user_id: str) -> CartView:
        """Get the caller's cart view; empty if they have no cart."""
        cart = await self._load_cart(user_id)
        if cart is not None and self._is_expired(cart):
            async with transaction(self.session):
                await self._reset(cart)
            cart = await self._load_cart(user_id)
        return build_cart_view(cart)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def add_item(self, user_id: str, variant_id: str, quantity: int) -> CartView:
        """Add a variant to the cart, merging with an existing line.

        Raises:
            NotFoundError: Variant is unknown or inactive.
            OutOfStockError: Variant has no stock.
            InsufficientStockError: Requested (or merged) quantity exceeds stock.
        """
        self._check_quantity(quantity)

        async with transaction(self.session):
            variant = await self._get_active_variant(variant_id)

            if variant.stock_quantity <= 0:
                raise OutOfStockError(variant.id)
            if variant.stock_quantity < quantity:
                raise InsufficientStockError(variant.id, variant.stock_quantity, quantity)

            cart = await self._get_or_create_cart(user_id)
            existing = next((i for i in cart.items if i.variant_id == variant.id), None)

            if existing is not None:
                new_quantity = existing.quantity + quantity
                if new_quantity > variant.stock_quantity:
                    raise InsufficientStockError(
                        variant.id, variant.stock_quantity, new_quantity
                    )
                existing.quantity = new_quantity
            else:
                self.session.add(
                    CartItemModel(cart_id=cart.id, variant_id=variant.id, quantity=quantity)
                )

            self._touch(cart)

        logger.info(
            "Item added to cart",
            user_id=user_id,
            variant_id=variant_id,
            quantity=quantity,
            merged=existing is not None,
        )
        return await self.get_cart(user_id)

    async def update_item(self, user_id: str, item_id: str, quantity: int) -> CartView:
        """Set a line's quantity.

        Raises:
            NotFoundError: The caller has no such cart line.
            InsufficientStockError: Quantity exceeds stock.
        """
        self._check_quantity(quantity)

        async with transaction(self.session):
            cart, item = await self._get_line(user_id, item_id)
            stock = item.variant.stock_quantity
            if quantity > stock:
                raise InsufficientStockError(item.variant_id, stock, quantity)
            item.quantity = quantity
            self._touch(cart)

        logger.info("Cart item updated", user_id=user_id, item_id=item_id, quantity=quantity)
        return await self.get_cart(user_id)

    async def remove_item(self, user_id: str, item_id: str) -> CartView:
        """Remove a line from the cart."""
        async with transaction(self.session):
            cart, item = await self._get_line(user_id, item_id)
            await self.session.delete(item)
            self._touch(cart)

        logger.info("Cart item removed", user_id=user_id, item_id=item_id)
        return await self.get_cart(user_id)

    async def clear_cart(self, user_id: str) -> CartView:
        """Remove every line and detach the coupon."""
        async with transaction(self.session):
            cart = await self._load_cart(user_id)
            if cart is not None:
                await self._reset(cart)

        logger.info("Cart cleared", user_id=user_id)
        return await self.get_cart(user_id)

    async def apply_coupon(self, user_id: str, code: str) -> CartView:
        """Attach a coupon, replacing any coupon already attached.

        Raises:
            EmptyCartError: Cart has no items.
            InvalidCouponError: Unknown or inactive code.
            CouponExpiredError: Outside the validity window.
            CouponUsageLimitError: Usage cap reached.
            CouponMinimumNotMetError: Subtotal below the coupon minimum.
        """
        code = code.strip().upper()

        async with transaction(self.session):
            cart = await self._load_cart(user_id)
            if cart is None or not cart.items or self._is_expired(cart):
                raise EmptyCartError()

            coupon = (
                await self.session.execute(select(CouponModel).where(CouponModel.code == code))
            ).scalar_one_or_none()
            if coupon is None:
                raise InvalidCouponError(coupon_code=code)

            subtotal = build_cart_view(cart).subtotal
            validate_coupon(CouponRules.from_record(coupon), subtotal)

            cart.coupon_id = coupon.id
            self._touch(cart)

        logger.info("Coupon applied to cart", user_id=user_id, coupon_code=code)
        return await self.get_cart(user_id)

    async def remove_coupon(self, user_id: str) -> CartView:
        """Detach the cart's coupon."""
        async with transaction(self.session):
            cart = await self._load_cart(user_id)
            if cart is None:
                raise EmptyCartError()
            cart.coupon_id = None
            self._touch(cart)

        logger.info("Coupon removed from cart", user_id=user_id)
        return await self.get_cart(user_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

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

    async def _get_or_create_cart(self, user_id: str) -> CartModel:
        cart = await self._load_cart(user_id)
        if cart is None:
            cart = CartModel(user_id=user_id, expires_at=self._expiry())
            self.session.add(cart)
            await self.session.flush()
            cart = await self._load_cart(user_id)
            logger.info("Cart created", user_id=user_id, cart_id=cart.id)
        elif self._is_expired(cart):
            await self._reset(cart)
            cart = await self._load_cart(user_id)
        return cart

    async def _get_active_variant(self, variant_id: str) -> ProductVariantModel:
        result = await self.session.execute(
            select(ProductVariantModel)
            .where(ProductVariantModel.id == variant_id)
            .options(selectinload(ProductVariantModel.product))
            .execution_options(populate_existing=True)
        )
        variant = result.scalar_one_or_none()
        if variant is None or not variant.is_active or not variant.product.is_active:
            raise NotFoundError("Product variant", variant_id)
        return variant

    async def _get_line(self, user_id: str, item_id: str) -> tuple[CartModel, CartItemModel]:
        cart = await self._load_cart(user_id)
        if cart is None:
            raise EmptyCartError()
        item = next((i for i in cart.items if i.id == item_id), None)
        if item is None:
            raise NotFoundError("Cart item", item_id)
        return cart, item

    async def _reset(self, cart: CartModel) -> None:
        await self.session.execute(delete(CartItemModel).where(CartItemModel.cart_id == cart.id))
        cart.coupon_id = None
        cart.expires_at = self._expiry()
        await self.session.flush()

    def _touch(self, cart: CartModel) -> None:
        cart.expires_at = self._expiry()

    def _expiry(self) -> datetime:
        return datetime.now(timezone.utc) + self.cart_ttl

    @staticmethod
    def _is_expired(cart: CartModel) -> bool:
        expires_at = cart.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at <= datetime.now(timezone.utc)

    @staticmethod
    def _check_quantity(quantity: int) -> None:
        if quantity < 1:
            raise ValidationFailedError(
                "Quantity must be at least 1",
                fields={"quantity": "Quantity must be at least 1"},
            )
