"""Order application service.

Orchestrates order lifecycle management including:
- Listing and reading orders, owner-scoped or for admins
- Customer cancellation with stock restoration
- Admin status updates under the configured status policy
- Status changes driven by payment reconciliation and refunds
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone

import structlog
from sqlalchemy import Select, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from storefront.domain.exceptions import (
    OrderCancelNotAllowedError,
    OrderNotFoundError,
    StateConflictError,
)
from storefront.domain.state_machines import (
    CUSTOMER_CANCELLABLE,
    OrderStatus,
    StatusPolicy,
    validate_order_transition,
)
from storefront.infrastructure.database import transaction
from storefront.infrastructure.inventory import restore_stock
from storefront.infrastructure.models import OrderModel

logger = structlog.get_logger()


# ============================================================================
# Query Helpers
# ============================================================================


def order_query() -> Select:
    """Select orders with items and payments eagerly loaded."""
    return select(OrderModel).options(
        selectinload(OrderModel.items),
        selectinload(OrderModel.payments),
    )


async def load_order(
    session: AsyncSession, order_id: str, user_id: str | None = None
) -> OrderModel:
    """Load one order, optionally scoped to its owner.

    Raises:
        OrderNotFoundError: No such order, or it belongs to someone else.
    """
    stmt = order_query().where(OrderModel.id == order_id)
    if user_id is not None:
        stmt = stmt.where(OrderModel.user_id == user_id)
    result = await session.execute(stmt.execution_options(populate_existing=True))
    order = result.scalar_one_or_none()
    if order is None:
        raise OrderNotFoundError(order_id)
    return order


# ============================================================================
# Service Result Types
# ============================================================================


@dataclass
class OrderFilters:
    """Optional filters for order listings."""

    status: OrderStatus | None = None
    from_date: datetime | None = None
    to_date: datetime | None = None


@dataclass
class ListOrdersResult:
    """Result of listing orders."""

    orders: list[OrderModel] = field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 20


# ============================================================================
# Order Service
# ============================================================================


class OrderService:
    """Application service for order lifecycle management.

    Every status write is a compare-and-set on the status the caller
    read, so two concurrent changes to one order cannot both succeed.
    """

    def __init__(
        self,
        session: AsyncSession,
        policy: StatusPolicy = StatusPolicy.STRICT,
    ) -> None:
        """Initialize service.

        Args:
            session: Database session.
            policy: How admin status updates are checked.
        """
        self.session = session
        self.policy = policy

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_orders(
        self,
        user_id: str | None = None,
        page: int = 1,
        page_size: int = 20,
        filters: OrderFilters | None = None,
    ) -> ListOrdersResult:
        """List orders newest first.

        Args:
            user_id: Restrict to one owner; None lists every order.
            page: 1-based page number.
            page_size: Orders per page.
            filters: Optional status and creation-date filters.
        """
        filters = filters or OrderFilters()
        conditions = []
        if user_id is not None:
            conditions.append(OrderModel.user_id == user_id)
        if filters.status is not None:
            conditions.append(OrderModel.status == filters.status.value)
        if filters.from_date is not None:
            conditions.append(OrderModel.created_at >= filters.from_date)
        if filters.to_date is not None:
            conditions.append(OrderModel.created_at <= filters.to_date)

        total = (
            await self.session.execute(
                select(func.count()).select_from(OrderModel).where(*conditions)
            )
        ).scalar_one()

        result = await self.session.execute(
            order_query()
            .where(*conditions)
            .order_by(OrderModel.created_at.desc(), OrderModel.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return ListOrdersResult(
            orders=list(result.scalars().all()),
            total=total,
            page=page,
            page_size=page_size,
        )

    async def get_order(self, order_id: str, user_id: str | None = None) -> OrderModel:
        """Get one order; scoped to ``user_id`` when given."""
        return await load_order(self.session, order_id, user_id)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def cancel_order(self, user_id: str, order_id: str) -> OrderModel:
        """Cancel the caller's order and put its stock back.

        Only PENDING and CONFIRMED orders can be cancelled by customers.
        A second cancel of the same order fails without restoring stock
        again.

        Raises:
            OrderNotFoundError: Order does not exist or is not the caller's.
            OrderCancelNotAllowedError: Order is past CONFIRMED.
        """
        async with transaction(self.session):
            order = await load_order(self.session, order_id, user_id)
            current = OrderStatus(order.status)
            if not current.is_cancellable_by_customer():
                raise OrderCancelNotAllowedError(order.id, current.value)
            await self._cancel(order, CUSTOMER_CANCELLABLE)

        logger.info(
            "Order cancelled by customer",
            order_id=order_id,
            order_number=order.order_number,
            previous_status=current.value,
        )
        return await load_order(self.session, order_id)

    async def update_status(
        self,
        order_id: str,
        target: OrderStatus,
        actor: str | None = None,
    ) -> OrderModel:
        """Admin status change.

        Moving to CANCELLED takes the cancellation path, so stock is
        restored exactly as for a customer cancel.

        Raises:
            OrderNotFoundError: No such order.
            InvalidStateTransitionError: Policy rejects the change.
            StateConflictError: Status changed underneath the request.
        """
        async with transaction(self.session):
            order = await load_order(self.session, order_id)
            current = OrderStatus(order.status)
            validate_order_transition(order.id, current, target, self.policy)

            if target is OrderStatus.CANCELLED:
                await self._cancel(order, {current})
            else:
                await self._set_status(order, current, target)

        logger.info(
            "Order status updated",
            order_id=order_id,
            from_status=current.value,
            to_status=target.value,
            policy=self.policy.value,
            actor=actor,
        )
        return await load_order(self.session, order_id)

    # ------------------------------------------------------------------
    # Payment-driven transitions
    #
    # These run inside the caller's transaction and never commit.
    # ------------------------------------------------------------------

    async def confirm_paid_order(self, order: OrderModel) -> bool:
        """Move a PENDING order to CONFIRMED after a successful payment.

        Returns:
            False if the order had already left PENDING (for example a
            customer cancelled it while payment was in flight); the
            order is then left untouched.
        """
        current = OrderStatus(order.status)
        if current is not OrderStatus.PENDING:
            logger.warning(
                "Payment succeeded for order not awaiting payment",
                order_id=order.id,
                order_status=current.value,
            )
            return False
        await self._set_status(order, current, OrderStatus.CONFIRMED)
        return True

    async def mark_refunded(self, order: OrderModel) -> None:
        """Move an order to REFUNDED following a payment refund.

        Raises:
            InvalidStateTransitionError: The order cannot be refunded
                from its current status.
        """
        current = OrderStatus(order.status)
        validate_order_transition(order.id, current, OrderStatus.REFUNDED)
        await self._set_status(order, current, OrderStatus.REFUNDED)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _set_status(
        self, order: OrderModel, current: OrderStatus, target: OrderStatus
    ) -> None:
        result = await self.session.execute(
            update(OrderModel)
            .where(OrderModel.id == order.id, OrderModel.status == current.value)
            .values(status=target.value, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise StateConflictError(
                "Order status changed while the request was processed.",
                details={"order_id": order.id, "expected_status": current.value},
            )
        order.status = target.value

    async def _cancel(self, order: OrderModel, allowed_from) -> None:
        now = datetime.now(timezone.utc)
        result = await self.session.execute(
            update(OrderModel)
            .where(
                OrderModel.id == order.id,
                OrderModel.status.in_([status.value for status in allowed_from]),
            )
            .values(status=OrderStatus.CANCELLED.value, cancelled_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            current = (
                await self.session.execute(
                    select(OrderModel.status).where(OrderModel.id == order.id)
                )
            ).scalar_one()
            raise OrderCancelNotAllowedError(order.id, current)

        for item in order.items:
            await restore_stock(self.session, item.variant_id, item.quantity)

        order.status = OrderStatus.CANCELLED.value
        order.cancelled_at = now
