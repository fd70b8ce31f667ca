"""Admin payment endpoints.

- GET /admin/payments - list payments (paginated)
- GET /admin/payments/{id} - one payment
- PUT /admin/payments/{id}/refund - refund a successful payment
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from storefront.api.deps import get_payment_service
from storefront.api.payments import payment_to_response
from storefront.api.schemas import (
    ApiResponse,
    ErrorResponse,
    PaginatedApiResponse,
    PaginationMeta,
    PaymentResponse,
)
from storefront.api.security import CurrentUser, require_admin
from storefront.application.payment_service import PaymentService
from storefront.domain.state_machines import PaymentStatus
from storefront.infrastructure.config import settings

router = APIRouter(
    prefix="/admin/payments",
    tags=["Admin"],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)

AdminDep = Annotated[CurrentUser, Depends(require_admin)]
ServiceDep = Annotated[PaymentService, Depends(get_payment_service)]


@router.get("", response_model=PaginatedApiResponse[PaymentResponse], summary="List payments")
async def list_payments(
    admin: AdminDep,
    service: ServiceDep,
    page: int = Query(default=1, ge=1, description="Page number"),
    limit: int = Query(
        default=settings.default_page_size,
        ge=1,
        le=settings.max_page_size,
        description="Items per page",
    ),
    status: PaymentStatus | None = Query(default=None, description="Filter by status"),
    order_id: str | None = Query(default=None, alias="orderId", description="Filter by order"),
) -> PaginatedApiResponse[PaymentResponse]:
    result = await service.list_payments(
        page=page, page_size=limit, status=status, order_id=order_id
    )
    return PaginatedApiResponse[PaymentResponse](
        data=[payment_to_response(p) for p in result.payments],
        message="Payments retrieved",
        meta=PaginationMeta.build(result.page, result.page_size, result.total),
    )


@router.get(
    "/{payment_id}",
    response_model=ApiResponse[PaymentResponse],
    responses={404: {"model": ErrorResponse}},
    summary="Get payment",
)
async def get_payment(
    payment_id: str, admin: AdminDep, service: ServiceDep
) -> ApiResponse[PaymentResponse]:
    payment = await service.get_payment(payment_id)
    return ApiResponse[PaymentResponse](
        data=payment_to_response(payment), message="Payment retrieved"
    )


@router.put(
    "/{payment_id}/refund",
    response_model=ApiResponse[PaymentResponse],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Refund payment",
)
async def refund_payment(
    payment_id: str, admin: AdminDep, service: ServiceDep
) -> ApiResponse[PaymentResponse]:
    """Refund a SUCCESS payment; the order moves to REFUNDED with it."""
    payment = await service.refund(payment_id, actor=admin.id)
    return ApiResponse[PaymentResponse](
        data=payment_to_response(payment), message="Payment refunded"
    )
