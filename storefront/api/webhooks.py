"""Webhook receiver endpoints.

Provides:
- POST /webhooks/payments/opay - payment provider callbacks
- HMAC-SHA512 signature verification on the raw body
- Idempotent reconciliation; repeated deliveries are acknowledged
"""

from decimal import Decimal
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Header, Request

from storefront.api.deps import get_payment_service, get_webhook_verifier
from storefront.api.payments import payment_to_response
from storefront.api.schemas import (
    ApiResponse,
    ErrorResponse,
    OPayWebhookPayload,
    WebhookAckResponse,
)
from storefront.application.payment_service import (
    PaymentCallback,
    PaymentService,
    PaymentWebhookVerifier,
)
from storefront.domain.exceptions import InvalidSignatureError
from storefront.domain.state_machines import PaymentStatus

logger = structlog.get_logger()

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post(
    "/payments/opay",
    response_model=ApiResponse[WebhookAckResponse],
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Receive payment provider callback",
)
async def receive_opay_webhook(
    request: Request,
    payload: OPayWebhookPayload,
    service: Annotated[PaymentService, Depends(get_payment_service)],
    verifier: Annotated[PaymentWebhookVerifier, Depends(get_webhook_verifier)],
    x_opay_signature: Annotated[str | None, Header()] = None,
) -> ApiResponse[WebhookAckResponse]:
    """Reconcile a payment callback.

    The callback must carry an X-OPay-Signature header holding the
    HMAC-SHA512 hex digest of the raw body. A callback for a payment
    that is already settled is acknowledged without changing anything.

    Raises:
        InvalidSignatureError: Signature missing (when required) or wrong.
    """
    logger.info(
        "Received payment webhook",
        reference=payload.reference,
        provider_order_id=payload.order_id,
        status=payload.status,
    )

    body = await request.body()
    if not verifier.verify(body, x_opay_signature):
        raise InvalidSignatureError()

    raw = payload.model_dump(mode="json", by_alias=True)
    callback = PaymentCallback(
        provider_order_id=payload.order_id,
        reference=payload.reference,
        status=PaymentStatus(payload.status),
        amount=Decimal(payload.amount),
        currency=payload.currency,
        raw=raw,
    )
    result = await service.handle_callback(callback)

    return ApiResponse[WebhookAckResponse](
        data=WebhookAckResponse(
            payment=payment_to_response(result.payment),
            duplicate=result.duplicate,
            order_confirmed=result.order_confirmed,
        ),
        message="Duplicate callback ignored" if result.duplicate else "Payment reconciled",
    )
