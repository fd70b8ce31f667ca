"""SQLAlchemy models for database tables.

Provides ORM models for the catalog records the core reads (products,
variants, addresses, coupons) and the records it owns (carts, orders,
payments).
"""

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from storefront.infrastructure.database import Base

Money = Numeric(12, 2)
JsonDocument = JSON().with_variant(JSONB(), "postgresql")


def _uuid() -> str:
    return str(uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Catalog Models
# ============================================================================


class ProductModel(Base):
    """Product record owned by the catalog.

    Supplies the base price every variant price is computed from.
    """

    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True)
    base_price = Column(Money, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    variants = relationship("ProductVariantModel", back_populates="product")


class ProductVariantModel(Base):
    """Purchasable colour and size combination of a product.

    Stock is only decremented by checkout and only restored by
    cancellation, both through conditional writes.
    """

    __tablename__ = "product_variants"
    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="ck_product_variants_stock_non_negative"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    product_id = Column(
        String(36),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sku = Column(String(100), nullable=False, unique=True)
    color = Column(String(50), nullable=False)
    size = Column(String(20), nullable=False)
    stock_quantity = Column(Integer, nullable=False, default=0)
    price_modifier = Column(Money, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    product = relationship("ProductModel", back_populates="variants")


class AddressModel(Base):
    """Owner-scoped shipping address."""

    __tablename__ = "addresses"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone = Column(String(30), nullable=False)
    street = Column(String(255), nullable=False)
    city = Column(String(100), nullable=False)
    state = Column(String(100), nullable=False)
    postal_code = Column(String(20), nullable=True)
    country = Column(String(100), nullable=False, default="Nigeria")
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    def snapshot(self) -> dict[str, Any]:
        """Copy of the fields frozen onto an order."""
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "phone": self.phone,
            "street": self.street,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
        }


class CouponModel(Base):
    """Discount code.

    ``used_count`` only ever grows, by one per checkout that applied it.
    """

    __tablename__ = "coupons"
    __table_args__ = (
        CheckConstraint("used_count >= 0", name="ck_coupons_used_count_non_negative"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    code = Column(String(50), nullable=False, unique=True)
    type = Column(String(20), nullable=False)
    value = Column(Money, nullable=False, default=0)
    min_order_amount = Column(Money, nullable=True)
    max_uses = Column(Integer, nullable=True)
    used_count = Column(Integer, nullable=False, default=0)
    starts_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)


# ============================================================================
# Cart Models
# ============================================================================


class CartModel(Base):
    """Shopping cart, one per owner."""

    __tablename__ = "carts"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False, unique=True)
    coupon_id = Column(
        String(36),
        ForeignKey("coupons.id", ondelete="SET NULL"),
        nullable=True,
    )
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    items = relationship(
        "CartItemModel",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItemModel.created_at",
    )
    coupon = relationship("CouponModel")


class CartItemModel(Base):
    """Line item in a cart."""

    __tablename__ = "cart_items"
    __table_args__ = (
        UniqueConstraint("cart_id", "variant_id", name="uq_cart_items_cart_variant"),
        CheckConstraint("quantity >= 1", name="ck_cart_items_quantity_positive"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    cart_id = Column(
        String(36),
        ForeignKey("carts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    variant_id = Column(
        String(36),
        ForeignKey("product_variants.id", ondelete="CASCADE"),
        nullable=False,
    )
    quantity = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    cart = relationship("CartModel", back_populates="items")
    variant = relationship("ProductVariantModel")


# ============================================================================
# Order Models
# ============================================================================


class OrderModel(Base):
    """Order created atomically at checkout.

    Monetary fields and the address snapshot are written once and never
    updated; only ``status`` changes afterwards.
    """

    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=_uuid)
    order_number = Column(String(40), nullable=False, unique=True)
    user_id = Column(String(36), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="PENDING", index=True)

    # Totals
    subtotal = Column(Money, nullable=False)
    discount = Column(Money, nullable=False, default=0)
    shipping_cost = Column(Money, nullable=False, default=0)
    vat = Column(Money, nullable=False, default=0)
    total = Column(Money, nullable=False)
    currency = Column(String(3), nullable=False, default="NGN")

    coupon_id = Column(
        String(36),
        ForeignKey("coupons.id", ondelete="SET NULL"),
        nullable=True,
    )
    coupon_code = Column(String(50), nullable=True)
    shipping_address = Column(JsonDocument, nullable=False)
    notes = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    items = relationship(
        "OrderItemModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItemModel.created_at",
    )
    payments = relationship(
        "PaymentModel",
        back_populates="order",
        order_by="PaymentModel.created_at",
    )


class OrderItemModel(Base):
    """Order line with prices and descriptors frozen at order time."""

    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=_uuid)
    order_id = Column(
        String(36),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    variant_id = Column(
        String(36),
        ForeignKey("product_variants.id"),
        nullable=False,
    )
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Money, nullable=False)
    total_price = Column(Money, nullable=False)
    product_name = Column(String(255), nullable=False)
    variant_sku = Column(String(100), nullable=False)
    variant_color = Column(String(50), nullable=False)
    variant_size = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    order = relationship("OrderModel", back_populates="items")


# ============================================================================
# Payment Models
# ============================================================================


class PaymentModel(Base):
    """Payment attempt against an order."""

    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=_uuid)
    order_id = Column(
        String(36),
        ForeignKey("orders.id"),
        nullable=False,
        index=True,
    )
    reference = Column(String(50), nullable=False, unique=True)
    provider = Column(String(20), nullable=False, default="OPAY")
    amount = Column(Money, nullable=False)
    currency = Column(String(3), nullable=False, default="NGN")
    status = Column(String(20), nullable=False, default="PENDING", index=True)
    provider_ref = Column(String(100), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)
    callback_payload = Column(JsonDocument, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    order = relationship("OrderModel", back_populates="payments")
