"""Order API endpoints.

Provides endpoints for the caller's orders:
- POST /orders - checkout the cart into a new order
- GET /orders - list orders (paginated)
- GET /orders/{id} - order details
- PUT /orders/{id}/cancel - cancel an order
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from storefront.api.deps import get_checkout_service, get_order_service
from storefront.api.payments import payment_to_response
from storefront.api.schemas import (
    ApiResponse,
    CheckoutRequest,
    ErrorResponse,
    OrderItemSchema,
    OrderResponse,
    PaginatedApiResponse,
    PaginationMeta,
    ShippingAddressSchema,
)
from storefront.api.security import CurrentUser, get_current_user
from storefront.application.checkout_service import CheckoutService
from storefront.application.order_service import OrderFilters, OrderService
from storefront.domain.state_machines import OrderStatus, PaymentStatus
from storefront.infrastructure.config import settings
from storefront.infrastructure.models import OrderModel

router = APIRouter(prefix="/orders", tags=["Orders"], responses={401: {"model": ErrorResponse}})

UserDep = Annotated[CurrentUser, Depends(get_current_user)]


# ============================================================================
# Converters
# ============================================================================


def order_to_response(order: OrderModel) -> OrderResponse:
    """Convert OrderModel to OrderResponse."""
    items = [
        OrderItemSchema(
            id=item.id,
            variant_id=item.variant_id,
            product_name=item.product_name,
            variant_sku=item.variant_sku,
            variant_color=item.variant_color,
            variant_size=item.variant_size,
            quantity=item.quantity,
            unit_price=item.unit_price,
            total_price=item.total_price,
        )
        for item in order.items
    ]

    payments = sorted(order.payments, key=lambda p: p.created_at)
    payment_status = PaymentStatus(payments[-1].status) if payments else None

    return OrderResponse(
        id=order.id,
        order_number=order.order_number,
        user_id=order.user_id,
        status=OrderStatus(order.status),
        subtotal=order.subtotal,
        discount=order.discount,
        shipping_cost=order.shipping_cost,
        vat=order.vat,
        total=order.total,
        currency=order.currency,
        coupon_code=order.coupon_code,
        shipping_address=ShippingAddressSchema.model_validate(order.shipping_address),
        notes=order.notes,
        items=items,
        payment_status=payment_status,
        payments=[payment_to_response(p) for p in payments],
        created_at=order.created_at,
        updated_at=order.updated_at,
        cancelled_at=order.cancelled_at,
    )


class OrderListQuery:
    """Shared query parameters of order listings."""

    def __init__(
        self,
        page: int = Query(default=1, ge=1, description="Page number"),
        limit: int = Query(
            default=settings.default_page_size,
            ge=1,
            le=settings.max_page_size,
            description="Items per page",
        ),
        status: OrderStatus | None = Query(default=None, description="Filter by status"),
        from_date: datetime | None = Query(
            default=None, alias="fromDate", description="Created at or after"
        ),
        to_date: datetime | None = Query(
            default=None, alias="toDate", description="Created at or before"
        ),
    ) -> None:
        self.page = page
        self.limit = limit
        self.filters = OrderFilters(status=status, from_date=from_date, to_date=to_date)


async def list_orders_page(
    service: OrderService, query: OrderListQuery, user_id: str | None
) -> PaginatedApiResponse[OrderResponse]:
    """Run a listing and wrap it in the paginated envelope."""
    result = await service.list_orders(
        user_id=user_id,
        page=query.page,
        page_size=query.limit,
        filters=query.filters,
    )
    return PaginatedApiResponse[OrderResponse](
        data=[order_to_response(o) for o in result.orders],
        message="Orders retrieved",
        meta=PaginationMeta.build(result.page, result.page_size, result.total),
    )


# ============================================================================
# Endpoints
# ============================================================================


@router.post(
    "",
    response_model=ApiResponse[OrderResponse],
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Checkout",
    description="Place an order from the caller's cart.",
)
async def checkout(
    body: CheckoutRequest,
    user: UserDep,
    service: Annotated[CheckoutService, Depends(get_checkout_service)],
) -> ApiResponse[OrderResponse]:
    """Place an order from the cart.

    Prices are recomputed from the catalog, the coupon is re-validated,
    and stock is decremented in the same transaction that creates the
    order. The order starts PENDING until payment is reconciled.
    """
    order = await service.checkout(user.id, body.address_id, body.notes)
    return ApiResponse[OrderResponse](data=order_to_response(order), message="Order placed")


@router.get(
    "",
    response_model=PaginatedApiResponse[OrderResponse],
    summary="List orders",
    description="Get a paginated list of the caller's orders, newest first.",
)
async def list_orders(
    user: UserDep,
    service: Annotated[OrderService, Depends(get_order_service)],
    query: Annotated[OrderListQuery, Depends()],
) -> PaginatedApiResponse[OrderResponse]:
    return await list_orders_page(service, query, user.id)


@router.get(
    "/{order_id}",
    response_model=ApiResponse[OrderResponse],
    responses={404: {"model": ErrorResponse}},
    summary="Get order",
)
async def get_order(
    order_id: str,
    user: UserDep,
    service: Annotated[OrderService, Depends(get_order_service)],
) -> ApiResponse[OrderResponse]:
    order = await service.get_order(order_id, user_id=user.id)
    return ApiResponse[OrderResponse](data=order_to_response(order), message="Order retrieved")


@router.put(
    "/{order_id}/cancel",
    response_model=ApiResponse[OrderResponse],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Cancel order",
)
async def cancel_order(
    order_id: str,
    user: UserDep,
    service: Annotated[OrderService, Depends(get_order_service)],
) -> ApiResponse[OrderResponse]:
    """Cancel a PENDING or CONFIRMED order and restore its stock."""
    order = await service.cancel_order(user.id, order_id)
    return ApiResponse[OrderResponse](data=order_to_response(order), message="Order cancelled")
