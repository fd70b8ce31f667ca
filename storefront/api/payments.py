"""Payment API endpoints.

Provides endpoints for paying orders:
- POST /payments/initialize - start paying for an order
- GET /payments/order/{order_id} - latest payment of an order
- GET /payments/verify/{reference} - payment status by reference
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from storefront.api.deps import get_payment_service
from storefront.api.schemas import (
    ApiResponse,
    ErrorResponse,
    InitializePaymentRequest,
    InitializePaymentResponse,
    PaymentResponse,
)
from storefront.api.security import CurrentUser, get_current_user
from storefront.application.payment_service import PaymentService
from storefront.domain.state_machines import PaymentStatus
from storefront.infrastructure.models import PaymentModel

router = APIRouter(prefix="/payments", tags=["Payments"])

UserDep = Annotated[CurrentUser, Depends(get_current_user)]
ServiceDep = Annotated[PaymentService, Depends(get_payment_service)]


def payment_to_response(payment: PaymentModel) -> PaymentResponse:
    """Convert PaymentModel to PaymentResponse."""
    return PaymentResponse(
        id=payment.id,
        order_id=payment.order_id,
        reference=payment.reference,
        provider=payment.provider,
        amount=payment.amount,
        currency=payment.currency,
        status=PaymentStatus(payment.status),
        provider_ref=payment.provider_ref,
        paid_at=payment.paid_at,
        refunded_at=payment.refunded_at,
        created_at=payment.created_at,
        updated_at=payment.updated_at,
    )


@router.post(
    "/initialize",
    response_model=ApiResponse[InitializePaymentResponse],
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Initialize payment",
)
async def initialize_payment(
    body: InitializePaymentRequest, user: UserDep, service: ServiceDep
) -> ApiResponse[InitializePaymentResponse]:
    """Start paying for one of the caller's orders.

    Returns the pending payment and the hosted payment page to send the
    customer to. Repeated calls hand back the same pending payment.
    """
    result = await service.initialize_payment(user.id, body.order_id)
    return ApiResponse[InitializePaymentResponse](
        data=InitializePaymentResponse(
            payment=payment_to_response(result.payment),
            payment_url=result.payment_url,
            reference=result.payment.reference,
        ),
        message="Payment initialized",
    )


@router.get(
    "/order/{order_id}",
    response_model=ApiResponse[PaymentResponse | None],
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Get order payment",
)
async def get_order_payment(
    order_id: str, user: UserDep, service: ServiceDep
) -> ApiResponse[PaymentResponse | None]:
    payment = await service.get_latest_for_order(user.id, order_id)
    if payment is None:
        return ApiResponse[PaymentResponse | None](data=None, message="No payment for this order")
    return ApiResponse[PaymentResponse | None](
        data=payment_to_response(payment), message="Payment retrieved"
    )


@router.get(
    "/verify/{reference}",
    response_model=ApiResponse[PaymentResponse],
    responses={404: {"model": ErrorResponse}},
    summary="Verify payment",
)
async def verify_payment(reference: str, service: ServiceDep) -> ApiResponse[PaymentResponse]:
    """Look up a payment's status by reference.

    Used by the payment return page, which has no session.
    """
    payment = await service.get_by_reference(reference)
    return ApiResponse[PaymentResponse](
        data=payment_to_response(payment), message="Payment retrieved"
    )
