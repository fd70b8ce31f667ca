"""API schemas for the storefront API.

Pydantic models for request/response validation and serialization.
JSON field names are camelCase; Python attributes stay snake_case.
Money is serialized as a decimal string so no precision is lost.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from storefront.domain.state_machines import OrderStatus, PaymentStatus

T = TypeVar("T")


class ApiModel(BaseModel):
    """Base model with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Envelope Schemas
# ============================================================================


class PaginationMeta(ApiModel):
    """Pagination block of a list response."""

    page: int = Field(..., description="Current page number (1-based)")
    limit: int = Field(..., description="Items per page")
    total: int = Field(..., description="Total number of items")
    total_pages: int = Field(..., description="Total number of pages")

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "PaginationMeta":
        return cls(page=page, limit=limit, total=total, total_pages=-(-total // limit))


class ApiResponse(ApiModel, Generic[T]):
    """Success envelope.

    Every successful response is ``{success: true, data, message}``.
    """

    success: bool = True
    data: T
    message: str = ""


class PaginatedApiResponse(ApiModel, Generic[T]):
    """Success envelope for list endpoints."""

    success: bool = True
    data: list[T]
    message: str = ""
    meta: PaginationMeta


class ErrorBody(ApiModel):
    """Error block of a failure response."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: Any | None = Field(default=None, description="Additional error context")


class ErrorResponse(ApiModel):
    """Failure envelope.

    All API errors follow this format for consistency.
    """

    success: bool = False
    error: ErrorBody


# ============================================================================
# Cart Schemas
# ============================================================================


class AddCartItemRequest(ApiModel):
    """Request to add a variant to the cart."""

    variant_id: str = Field(..., min_length=1, description="Product variant ID")
    quantity: int = Field(..., ge=1, le=100, description="Units to add")


class UpdateCartItemRequest(ApiModel):
    """Request to set a cart line's quantity."""

    quantity: int = Field(..., ge=1, le=100, description="New quantity")


class ApplyCouponRequest(ApiModel):
    """Request to attach a coupon to the cart."""

    code: str = Field(..., min_length=1, max_length=50, description="Coupon code")


class CartLineSchema(ApiModel):
    """Cart line in a cart view."""

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


class CartCouponSchema(ApiModel):
    """Coupon attached to a cart."""

    code: str
    type: str
    value: Decimal
    applicable: bool


class CartResponse(ApiModel):
    """Computed cart view."""

    id: str | None
    items: list[CartLineSchema]
    item_count: int
    subtotal: Decimal
    discount: Decimal
    shipping_waived: bool
    total: Decimal
    coupon: CartCouponSchema | None = None
    expires_at: datetime | None = None


# ============================================================================
# Order Schemas
# ============================================================================


class CheckoutRequest(ApiModel):
    """Request to place an order from the cart."""

    address_id: str = Field(..., min_length=1, description="Shipping address ID")
    notes: str | None = Field(default=None, max_length=1000, description="Customer notes")


class UpdateOrderStatusRequest(ApiModel):
    """Admin request to change an order's status."""

    status: OrderStatus


class OrderItemSchema(ApiModel):
    """Order line with frozen prices."""

    id: str
    variant_id: str
    product_name: str
    variant_sku: str
    variant_color: str
    variant_size: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal


class ShippingAddressSchema(ApiModel):
    """Address snapshot stored on an order."""

    first_name: str
    last_name: str
    phone: str
    street: str
    city: str
    state: str
    postal_code: str | None = None
    country: str


class PaymentResponse(ApiModel):
    """Payment record."""

    id: str
    order_id: str
    reference: str
    provider: str
    amount: Decimal
    currency: str
    status: PaymentStatus
    provider_ref: str | None = None
    paid_at: datetime | None = None
    refunded_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class OrderResponse(ApiModel):
    """Order with items and its payment attempts, oldest first."""

    id: str
    order_number: str
    user_id: str
    status: OrderStatus
    subtotal: Decimal
    discount: Decimal
    shipping_cost: Decimal
    vat: Decimal
    total: Decimal
    currency: str
    coupon_code: str | None = None
    shipping_address: ShippingAddressSchema
    notes: str | None = None
    items: list[OrderItemSchema]
    payment_status: PaymentStatus | None = None
    payments: list[PaymentResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    cancelled_at: datetime | None = None


# ============================================================================
# Payment Schemas
# ============================================================================


class InitializePaymentRequest(ApiModel):
    """Request to start paying for an order."""

    order_id: str = Field(..., min_length=1, description="Order ID")


class InitializePaymentResponse(ApiModel):
    """Payment to complete plus where to complete it."""

    payment: PaymentResponse
    payment_url: str
    reference: str


class OPayWebhookPayload(ApiModel):
    """Payment provider callback body."""

    order_id: str = Field(..., min_length=1, description="Provider order number")
    reference: str = Field(..., min_length=1, description="Our payment reference")
    status: Literal["SUCCESS", "FAILED", "PENDING"] = Field(..., description="Provider outcome")
    amount: Decimal = Field(..., ge=0, description="Amount charged")
    currency: str = Field(..., min_length=3, max_length=3, description="ISO currency code")


class WebhookAckResponse(ApiModel):
    """Reconciliation outcome returned to the provider."""

    payment: PaymentResponse
    duplicate: bool
    order_confirmed: bool
