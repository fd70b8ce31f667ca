"""Payment application service.

Handles the payment side of an order:
- Initializing provider payments for the caller's orders
- Reconciling provider callbacks (webhooks) against stored payments
- Admin refunds

Reconciliation is idempotent: a callback for a payment that is already
settled changes nothing and is answered as a success.
"""

import hashlib
import hmac
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.application.order_service import OrderService, load_order
from storefront.domain.exceptions import (
    PaymentAlreadyPaidError,
    PaymentMismatchError,
    PaymentNotFoundError,
    PaymentNotRefundableError,
    StateConflictError,
)
from storefront.domain.identifiers import generate_payment_reference
from storefront.domain.state_machines import (
    OrderStatus,
    PaymentStatus,
    validate_payment_transition,
)
from storefront.infrastructure.database import transaction
from storefront.infrastructure.models import OrderModel, PaymentModel

logger = structlog.get_logger()


# ============================================================================
# Webhook Types
# ============================================================================


@dataclass
class PaymentCallback:
    """Provider callback, already parsed and validated.

    Attributes:
        provider_order_id: The provider's own identifier for the payment.
        reference: Our payment reference the provider echoes back.
        status: Outcome the provider reports.
        amount: Amount the provider charged.
        currency: Currency the provider charged in.
        raw: Payload as received, kept on the payment for audit.
    """

    provider_order_id: str
    reference: str
    status: PaymentStatus
    amount: Decimal
    currency: str
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class ReconciliationResult:
    """Result of reconciling one callback."""

    payment: PaymentModel
    duplicate: bool = False
    order_confirmed: bool = False


@dataclass
class InitializePaymentResult:
    """Result of initializing a payment."""

    payment: PaymentModel
    payment_url: str
    created: bool = True


@dataclass
class ListPaymentsResult:
    """Result of listing payments."""

    payments: list[PaymentModel] = field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 20


class PaymentWebhookVerifier:
    """Verifies HMAC signatures on payment provider callbacks.

    The provider signs the raw request body with HMAC-SHA512 using the
    merchant secret key and sends the hex digest.
    """

    def __init__(self, secret: str, required: bool = True) -> None:
        """Initialize verifier.

        Args:
            secret: Provider secret key.
            required: Reject callbacks that carry no signature at all.
        """
        self.secret = secret
        self.required = required

    def sign(self, payload: bytes) -> str:
        """Hex digest the provider would send for ``payload``."""
        return hmac.new(self.secret.encode(), payload, hashlib.sha512).hexdigest()

    def verify(self, payload: bytes, signature: str | None) -> bool:
        """Verify the signature of a callback body.

        Args:
            payload: Raw request body.
            signature: Signature header value.

        Returns:
            True if the callback may be processed.
        """
        if not signature:
            if self.required:
                logger.warning("Missing payment webhook signature")
                return False
            logger.warning("Accepting unsigned payment webhook; signatures not required")
            return True

        # Constant-time comparison
        if not hmac.compare_digest(self.sign(payload), signature.strip().lower()):
            logger.warning("Payment webhook signature mismatch")
            return False

        logger.debug("Payment webhook signature verified")
        return True


# ============================================================================
# Payment Service
# ============================================================================


class PaymentService:
    """Application service for payments and their reconciliation."""

    def __init__(
        self,
        session: AsyncSession,
        orders: OrderService,
        payment_page_url: str,
        provider: str = "OPAY",
    ) -> None:
        """Initialize service.

        Args:
            session: Database session.
            orders: Order lifecycle service; owns every order status write.
            payment_page_url: Hosted payment page the customer is sent to.
            provider: Provider name recorded on new payments.
        """
        self.session = session
        self.orders = orders
        self.payment_page_url = payment_page_url
        self.provider = provider

    # ------------------------------------------------------------------
    # Customer operations
    # ------------------------------------------------------------------

    async def initialize_payment(self, user_id: str, order_id: str) -> InitializePaymentResult:
        """Start paying for the caller's order.

        An existing PENDING payment is handed back instead of creating a
        second one.

        Raises:
            OrderNotFoundError: Order missing or not the caller's.
            PaymentAlreadyPaidError: A payment already succeeded.
            StateConflictError: Order is no longer awaiting payment.
        """
        async with transaction(self.session):
            order = await load_order(self.session, order_id, user_id)

            if any(p.status == PaymentStatus.SUCCESS.value for p in order.payments):
                raise PaymentAlreadyPaidError(order.id)
            if order.status != OrderStatus.PENDING.value:
                raise StateConflictError(
                    f"Order in status '{order.status}' cannot be paid.",
                    details={"order_id": order.id, "current_status": order.status},
                )

            pending = next(
                (p for p in order.payments if p.status == PaymentStatus.PENDING.value),
                None,
            )
            if pending is not None:
                payment = pending
                created = False
            else:
                payment = PaymentModel(
                    order_id=order.id,
                    reference=generate_payment_reference(),
                    provider=self.provider,
                    amount=order.total,
                    currency=order.currency,
                    status=PaymentStatus.PENDING.value,
                )
                self.session.add(payment)
                created = True

        logger.info(
            "Payment initialized",
            order_id=order_id,
            reference=payment.reference,
            amount=str(payment.amount),
            created=created,
        )
        return InitializePaymentResult(
            payment=payment,
            payment_url=f"{self.payment_page_url}?reference={payment.reference}",
            created=created,
        )

    async def get_latest_for_order(self, user_id: str, order_id: str) -> PaymentModel | None:
        """Most recent payment for the caller's order, if any."""
        order = await load_order(self.session, order_id, user_id)
        if not order.payments:
            return None
        return max(order.payments, key=lambda p: p.created_at)

    async def get_by_reference(self, reference: str, user_id: str | None = None) -> PaymentModel:
        """Look a payment up by reference; scoped to the order owner when given."""
        stmt = select(PaymentModel).where(PaymentModel.reference == reference)
        if user_id is not None:
            stmt = stmt.join(OrderModel).where(OrderModel.user_id == user_id)
        payment = (
            await self.session.execute(stmt.execution_options(populate_existing=True))
        ).scalar_one_or_none()
        if payment is None:
            raise PaymentNotFoundError(reference)
        return payment

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def handle_callback(self, callback: PaymentCallback) -> ReconciliationResult:
        """Reconcile one provider callback.

        The payment row is locked for the duration, so concurrent
        deliveries of the same callback apply at most once.

        Raises:
            PaymentNotFoundError: Unknown reference.
            PaymentMismatchError: Amount or currency differs from the
                stored payment; nothing is changed.
            PaymentAlreadyPaidError: Another payment for the order
                already succeeded.
            InvalidStateTransitionError: Status change not allowed.
        """
        log = logger.bind(reference=callback.reference, callback_status=callback.status.value)

        async with transaction(self.session):
            payment = (
                await self.session.execute(
                    select(PaymentModel)
                    .where(PaymentModel.reference == callback.reference)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                )
            ).scalar_one_or_none()
            if payment is None:
                log.warning("Payment callback for unknown reference")
                raise PaymentNotFoundError(callback.reference)

            # Decimal equality ignores trailing zeros only; no rounding
            expected_amount = Decimal(payment.amount)
            received_amount = callback.amount
            if received_amount != expected_amount:
                log.error(
                    "Payment amount mismatch",
                    payment_id=payment.id,
                    expected=str(expected_amount),
                    received=str(received_amount),
                )
                raise PaymentMismatchError(
                    payment.reference, "amount", str(expected_amount), str(received_amount)
                )
            if callback.currency.upper() != payment.currency.upper():
                log.error(
                    "Payment currency mismatch",
                    payment_id=payment.id,
                    expected=payment.currency,
                    received=callback.currency,
                )
                raise PaymentMismatchError(
                    payment.reference, "currency", payment.currency, callback.currency
                )

            current = PaymentStatus(payment.status)
            if current.is_settled() or current is callback.status:
                log.info("Duplicate payment callback ignored", payment_status=current.value)
                return ReconciliationResult(payment=payment, duplicate=True)

            validate_payment_transition(payment.id, current, callback.status)

            order = await load_order(self.session, payment.order_id)
            if callback.status is PaymentStatus.SUCCESS and any(
                p.id != payment.id and p.status == PaymentStatus.SUCCESS.value
                for p in order.payments
            ):
                log.error("Second successful payment for order", order_id=order.id)
                raise PaymentAlreadyPaidError(order.id)

            now = datetime.now(timezone.utc)
            payment.status = callback.status.value
            payment.provider_ref = callback.provider_order_id
            payment.paid_at = now if callback.status is PaymentStatus.SUCCESS else None
            payment.callback_payload = callback.raw
            payment.updated_at = now

            order_confirmed = False
            if callback.status is PaymentStatus.SUCCESS:
                order_confirmed = await self.orders.confirm_paid_order(order)

        log.info(
            "Payment callback reconciled",
            payment_id=payment.id,
            from_status=current.value,
            to_status=payment.status,
            order_confirmed=order_confirmed,
        )
        return ReconciliationResult(payment=payment, order_confirmed=order_confirmed)

    # ------------------------------------------------------------------
    # Admin operations
    # ------------------------------------------------------------------

    async def list_payments(
        self,
        page: int = 1,
        page_size: int = 20,
        status: PaymentStatus | None = None,
        order_id: str | None = None,
    ) -> ListPaymentsResult:
        """List payments newest first."""
        conditions = []
        if status is not None:
            conditions.append(PaymentModel.status == status.value)
        if order_id is not None:
            conditions.append(PaymentModel.order_id == order_id)

        total = (
            await self.session.execute(
                select(func.count()).select_from(PaymentModel).where(*conditions)
            )
        ).scalar_one()
        result = await self.session.execute(
            select(PaymentModel)
            .where(*conditions)
            .order_by(PaymentModel.created_at.desc(), PaymentModel.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return ListPaymentsResult(
            payments=list(result.scalars().all()),
            total=total,
            page=page,
            page_size=page_size,
        )

    async def get_payment(self, payment_id: str) -> PaymentModel:
        """Get a payment by id."""
        payment = await self.session.get(PaymentModel, payment_id, populate_existing=True)
        if payment is None:
            raise PaymentNotFoundError(payment_id)
        return payment

    async def refund(self, payment_id: str, actor: str | None = None) -> PaymentModel:
        """Refund a successful payment and mark its order REFUNDED.

        Both changes commit together or not at all.

        Raises:
            PaymentNotFoundError: No such payment.
            PaymentNotRefundableError: Payment is not SUCCESS.
            InvalidStateTransitionError: Order cannot move to REFUNDED.
        """
        async with transaction(self.session):
            payment = (
                await self.session.execute(
                    select(PaymentModel)
                    .where(PaymentModel.id == payment_id)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                )
            ).scalar_one_or_none()
            if payment is None:
                raise PaymentNotFoundError(payment_id)
            if payment.status != PaymentStatus.SUCCESS.value:
                raise PaymentNotRefundableError(payment.id, payment.status)

            order = await load_order(self.session, payment.order_id)

            now = datetime.now(timezone.utc)
            payment.status = PaymentStatus.REFUNDED.value
            payment.refunded_at = now
            payment.updated_at = now
            await self.orders.mark_refunded(order)

        logger.info(
            "Payment refunded",
            payment_id=payment.id,
            order_id=payment.order_id,
            amount=str(payment.amount),
            actor=actor,
        )
        return payment
