"""Domain exceptions.

All domain-level errors that represent business rule violations. Each
error carries a stable machine-readable ``code`` and the HTTP status
the API layer answers with; the API layer maps them to the error
envelope without further interpretation.
"""

from decimal import Decimal
from typing import Any


class DomainError(Exception):
    """Base class for all domain exceptions.

    All domain errors should inherit from this class to allow
    catching domain-specific errors at the application layer.
    """

    code: str = "DOMAIN_ERROR"
    status_code: int = 400

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# Not Found Errors
# ============================================================================


class NotFoundError(DomainError):
    """Referenced record does not exist or does not belong to the caller."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(
        self,
        resource: str = "Resource",
        resource_id: str | None = None,
        message: str | None = None,
    ) -> None:
        details = {"resource": resource}
        if resource_id is not None:
            details["id"] = resource_id
        super().__init__(message or f"{resource} not found.", details=details)


class OrderNotFoundError(NotFoundError):
    code = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str | None = None) -> None:
        super().__init__("Order", order_id, "Order not found. Please check your order number.")


class PaymentNotFoundError(NotFoundError):
    code = "PAYMENT_NOT_FOUND"

    def __init__(self, reference: str | None = None) -> None:
        super().__init__("Payment", reference, "Payment record not found.")


# ============================================================================
# State Errors
# ============================================================================


class StateConflictError(DomainError):
    """Operation is not allowed in the record's current state."""

    code = "STATE_CONFLICT"
    status_code = 409


class InvalidStateTransitionError(StateConflictError):
    """Raised when an invalid state transition is attempted.

    This error indicates that the requested operation cannot be performed
    in the current state of the entity.
    """

    code = "INVALID_STATUS_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_state: str,
        target_state: str,
        allowed_transitions: list[str] | None = None,
    ) -> None:
        """Initialize invalid state transition error.

        Args:
            entity_type: Type of entity (e.g., "Order", "Payment").
            entity_id: ID of the entity.
            current_state: Current state of the entity.
            target_state: Attempted target state.
            allowed_transitions: List of allowed target states from current state.
        """
        allowed = allowed_transitions or []
        message = (
            f"Cannot transition {entity_type}({entity_id}) "
            f"from '{current_state}' to '{target_state}'. "
            f"Allowed transitions: {allowed}"
        )
        super().__init__(
            message,
            details={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "current_state": current_state,
                "target_state": target_state,
                "allowed_transitions": allowed,
            },
        )


class OrderCancelNotAllowedError(StateConflictError):
    """Raised when a customer tries to cancel an order past CONFIRMED."""

    code = "CANCEL_NOT_ALLOWED"

    def __init__(self, order_id: str, current_status: str) -> None:
        super().__init__(
            f"This order cannot be cancelled in status '{current_status}'.",
            details={"order_id": order_id, "current_status": current_status},
        )


class PaymentAlreadyPaidError(StateConflictError):
    code = "ALREADY_PAID"

    def __init__(self, order_id: str) -> None:
        super().__init__(
            "This order has already been paid.",
            details={"order_id": order_id},
        )


class PaymentNotRefundableError(StateConflictError):
    code = "PAYMENT_NOT_REFUNDABLE"

    def __init__(self, payment_id: str, current_status: str) -> None:
        super().__init__(
            f"Only successful payments can be refunded; payment is '{current_status}'.",
            details={"payment_id": payment_id, "current_status": current_status},
        )


class CouponUsageLimitError(StateConflictError):
    code = "COUPON_MAX_USES_REACHED"

    def __init__(self, code: str, max_uses: int) -> None:
        super().__init__(
            "This coupon has reached its maximum usage limit.",
            details={"coupon_code": code, "max_uses": max_uses},
        )


# ============================================================================
# Inventory Errors
# ============================================================================


class InsufficientStockError(DomainError):
    """Requested quantity exceeds what the variant has on hand."""

    code = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        variant_id: str,
        available: int,
        requested: int | None = None,
        message: str | None = None,
    ) -> None:
        details: dict[str, Any] = {"variant_id": variant_id, "available": available}
        if requested is not None:
            details["requested"] = requested
        super().__init__(
            message or f"Only {available} item(s) available. Please reduce your quantity.",
            details=details,
        )
        self.variant_id = variant_id
        self.available = available


class OutOfStockError(InsufficientStockError):
    code = "OUT_OF_STOCK"

    def __init__(self, variant_id: str) -> None:
        super().__init__(variant_id, 0, message="Sorry, this item is currently out of stock.")


# ============================================================================
# Cart Errors
# ============================================================================


class ValidationFailedError(DomainError):
    """Input is malformed or out of range."""

    code = "VALIDATION_FAILED"
    status_code = 422

    def __init__(self, message: str, fields: dict[str, str] | None = None) -> None:
        super().__init__(message, details=fields or {})


class EmptyCartError(DomainError):
    code = "EMPTY_CART"

    def __init__(self) -> None:
        super().__init__("Your cart is empty. Please add items before checkout.")


class InvalidCouponError(DomainError):
    code = "INVALID_COUPON"

    def __init__(
        self,
        message: str = "This coupon code is invalid or has expired.",
        coupon_code: str | None = None,
    ) -> None:
        super().__init__(message, details={"coupon_code": coupon_code} if coupon_code else None)


class CouponExpiredError(InvalidCouponError):
    code = "COUPON_EXPIRED"

    def __init__(self, coupon_code: str) -> None:
        super().__init__("This coupon is not valid at this time.", coupon_code)


class CouponMinimumNotMetError(InvalidCouponError):
    code = "COUPON_MIN_NOT_MET"

    def __init__(self, coupon_code: str, minimum: Decimal, subtotal: Decimal) -> None:
        super().__init__(
            f"This coupon requires a minimum order of {minimum:,.2f}.",
            coupon_code,
        )
        self.details.update({"min_order_amount": str(minimum), "subtotal": str(subtotal)})
        self.minimum = minimum


# ============================================================================
# Payment Errors
# ============================================================================


class PaymentMismatchError(DomainError):
    """Callback disagrees with the stored payment; never retried."""

    code = "PAYMENT_MISMATCH"

    def __init__(self, reference: str, field: str, expected: str, received: str) -> None:
        super().__init__(
            "Payment callback does not match the recorded payment.",
            details={
                "reference": reference,
                "field": field,
                "expected": expected,
                "received": received,
            },
        )


class InvalidSignatureError(DomainError):
    code = "INVALID_SIGNATURE"
    status_code = 401

    def __init__(self) -> None:
        super().__init__("Webhook signature verification failed.")


# ============================================================================
# Auth Errors
# ============================================================================


class AuthenticationError(DomainError):
    code = "UNAUTHORIZED"
    status_code = 401

    def __init__(self, message: str = "Please log in to continue.") -> None:
        super().__init__(message)


class PermissionDeniedError(DomainError):
    code = "FORBIDDEN"
    status_code = 403

    def __init__(self, message: str = "You do not have permission to perform this action.") -> None:
        super().__init__(message)
