"""Admin order endpoints.

- GET /admin/orders - list every order (paginated)
- GET /admin/orders/{id} - any order
- PUT /admin/orders/{id}/status - change an order's status
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from storefront.api.deps import get_order_service
from storefront.api.orders import OrderListQuery, list_orders_page, order_to_response
from storefront.api.schemas import (
    ApiResponse,
    ErrorResponse,
    OrderResponse,
    PaginatedApiResponse,
    UpdateOrderStatusRequest,
)
from storefront.api.security import CurrentUser, require_admin
from storefront.application.order_service import OrderService

router = APIRouter(
    prefix="/admin/orders",
    tags=["Admin"],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)

AdminDep = Annotated[CurrentUser, Depends(require_admin)]
ServiceDep = Annotated[OrderService, Depends(get_order_service)]


@router.get("", response_model=PaginatedApiResponse[OrderResponse], summary="List all orders")
async def list_orders(
    admin: AdminDep,
    service: ServiceDep,
    query: Annotated[OrderListQuery, Depends()],
) -> PaginatedApiResponse[OrderResponse]:
    return await list_orders_page(service, query, user_id=None)


@router.get(
    "/{order_id}",
    response_model=ApiResponse[OrderResponse],
    responses={404: {"model": ErrorResponse}},
    summary="Get any order",
)
async def get_order(order_id: str, admin: AdminDep, service: ServiceDep) -> ApiResponse[OrderResponse]:
    order = await service.get_order(order_id)
    return ApiResponse[OrderResponse](data=order_to_response(order), message="Order retrieved")


@router.put(
    "/{order_id}/status",
    response_model=ApiResponse[OrderResponse],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Update order status",
)
async def update_status(
    order_id: str,
    body: UpdateOrderStatusRequest,
    admin: AdminDep,
    service: ServiceDep,
) -> ApiResponse[OrderResponse]:
    """Change an order's status.

    Under the strict policy only transitions in the order state machine
    are accepted. Moving to CANCELLED restores stock.
    """
    order = await service.update_status(order_id, body.status, actor=admin.id)
    return ApiResponse[OrderResponse](
        data=order_to_response(order), message="Order status updated"
    )
