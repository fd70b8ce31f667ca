"""State machines for orders and payments.

Deterministic state machines that define valid state transitions.
Status changes anywhere in the service go through these tables.
"""

from enum import Enum

from storefront.domain.exceptions import InvalidStateTransitionError


# ============================================================================
# Order State Machine
# ============================================================================


class OrderStatus(str, Enum):
    """Order lifecycle states.

    State diagram:
        PENDING ──────────────────────────────────────► CANCELLED
          │                                              ▲    │
          │ payment reconciled                           │    │
          ▼                                              │    │
        CONFIRMED ───────────────────────────────────────┤    │
          │                                              │    │
          │ start fulfilment                             │    │
          ▼                                              │    │
        PROCESSING ──────────────────────────────────────┘    │
          │                                                   │
          │ ship                                              ▼
          ▼                                                REFUNDED
        SHIPPED ─────────────────────────────────────────►   ▲
          │                                                   │
          │ deliver                                           │
          ▼                                                   │
        DELIVERED ────────────────────────────────────────────┘

    CONFIRMED and PROCESSING may also go straight to REFUNDED.
    """

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"

    def can_transition_to(self, target: "OrderStatus") -> bool:
        """Check if transition to target state is valid.

        Args:
            target: Target state to transition to.

        Returns:
            True if transition is valid.
        """
        return target in _ORDER_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["OrderStatus"]:
        """Get list of valid target states, in lifecycle order.

        Returns:
            List of states that can be transitioned to.
        """
        allowed = _ORDER_TRANSITIONS.get(self, set())
        return [status for status in OrderStatus if status in allowed]

    def is_cancellable_by_customer(self) -> bool:
        """Customers may only cancel before fulfilment starts."""
        return self in CUSTOMER_CANCELLABLE

    def is_terminal(self) -> bool:
        """Check if this is a terminal (final) state.

        Returns:
            True if no further transitions are possible.
        """
        return len(_ORDER_TRANSITIONS.get(self, set())) == 0


CUSTOMER_CANCELLABLE = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED})
STOCK_RELEASED = frozenset({OrderStatus.CANCELLED, OrderStatus.REFUNDED})

# Order state transitions (defined outside enum to avoid Enum restrictions)
_ORDER_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED, OrderStatus.REFUNDED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED, OrderStatus.REFUNDED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.REFUNDED},
    OrderStatus.DELIVERED: {OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: {OrderStatus.REFUNDED},  # paid orders cancelled before shipping
    OrderStatus.REFUNDED: set(),  # Terminal state
}


class StatusPolicy(str, Enum):
    """How admin status updates are checked.

    STRICT applies the order transition table. PERMISSIVE accepts any
    change to a different status, the behaviour admins had before the
    table existed, except out of CANCELLED and REFUNDED: those orders
    have already returned their stock and still follow the table.
    """

    STRICT = "strict"
    PERMISSIVE = "permissive"


# ============================================================================
# Payment State Machine
# ============================================================================


class PaymentStatus(str, Enum):
    """Payment lifecycle states.

    State diagram:
        PENDING ──────► FAILED
          │               │
          │ success       │ retried and succeeded
          ▼               │
        SUCCESS ◄─────────┘
          │
          │ refund (admin)
          ▼
        REFUNDED
    """

    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"

    def can_transition_to(self, target: "PaymentStatus") -> bool:
        """Check if transition to target state is valid."""
        return target in _PAYMENT_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["PaymentStatus"]:
        """Get list of valid target states."""
        allowed = _PAYMENT_TRANSITIONS.get(self, set())
        return [status for status in PaymentStatus if status in allowed]

    def is_settled(self) -> bool:
        """Money has moved; provider callbacks can no longer change it."""
        return self in {PaymentStatus.SUCCESS, PaymentStatus.REFUNDED}


_PAYMENT_TRANSITIONS: dict[PaymentStatus, set[PaymentStatus]] = {
    PaymentStatus.PENDING: {PaymentStatus.SUCCESS, PaymentStatus.FAILED},
    PaymentStatus.FAILED: {PaymentStatus.SUCCESS},
    PaymentStatus.SUCCESS: {PaymentStatus.REFUNDED},
    PaymentStatus.REFUNDED: set(),  # Terminal state
}


# ============================================================================
# State Machine Helpers
# ============================================================================


def validate_order_transition(
    order_id: str,
    current_status: OrderStatus,
    target_status: OrderStatus,
    policy: StatusPolicy = StatusPolicy.STRICT,
) -> None:
    """Validate and raise if order state transition is invalid.

    Args:
        order_id: Order identifier for error message.
        current_status: Current order status.
        target_status: Target order status.
        policy: Whether the transition table is enforced.

    Raises:
        InvalidStateTransitionError: If transition is not valid.
    """
    if policy is StatusPolicy.PERMISSIVE and current_status not in STOCK_RELEASED:
        allowed = current_status != target_status
        allowed_states = [s.value for s in OrderStatus if s != current_status]
    else:
        allowed = current_status.can_transition_to(target_status)
        allowed_states = [s.value for s in current_status.allowed_transitions()]

    if not allowed:
        raise InvalidStateTransitionError(
            entity_type="Order",
            entity_id=order_id,
            current_state=current_status.value,
            target_state=target_status.value,
            allowed_transitions=allowed_states,
        )


def validate_payment_transition(
    payment_id: str,
    current_status: PaymentStatus,
    target_status: PaymentStatus,
) -> None:
    """Validate and raise if payment state transition is invalid.

    Args:
        payment_id: Payment identifier for error message.
        current_status: Current payment status.
        target_status: Target payment status.

    Raises:
        InvalidStateTransitionError: If transition is not valid.
    """
    if not current_status.can_transition_to(target_status):
        raise InvalidStateTransitionError(
            entity_type="Payment",
            entity_id=payment_id,
            current_state=current_status.value,
            target_state=target_status.value,
            allowed_transitions=[s.value for s in current_status.allowed_transitions()],
        )
