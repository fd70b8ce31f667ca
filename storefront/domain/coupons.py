"""Coupon rules and discount resolution.

A coupon's kind and value are carried as one tagged value
(``PercentageOff``, ``FixedAmountOff``, ``FreeShipping``) and turned into
money by ``resolve_effect``. A new coupon kind is a new dataclass plus a
new case there.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from storefront.domain.exceptions import (
    CouponExpiredError,
    CouponMinimumNotMetError,
    CouponUsageLimitError,
    InvalidCouponError,
)
from storefront.domain.pricing import ZERO, round_money


class CouponType(str, Enum):
    """Coupon kinds as stored."""

    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"
    FREE_SHIPPING = "FREE_SHIPPING"


@dataclass(frozen=True)
class PercentageOff:
    percent: Decimal


@dataclass(frozen=True)
class FixedAmountOff:
    amount: Decimal


@dataclass(frozen=True)
class FreeShipping:
    pass


CouponKind = PercentageOff | FixedAmountOff | FreeShipping


def coupon_kind(coupon_type: str | CouponType, value: Decimal) -> CouponKind:
    """Build the tagged kind from a stored type string and value."""
    match CouponType(coupon_type):
        case CouponType.PERCENTAGE:
            return PercentageOff(percent=Decimal(value))
        case CouponType.FIXED_AMOUNT:
            return FixedAmountOff(amount=Decimal(value))
        case CouponType.FREE_SHIPPING:
            return FreeShipping()


@dataclass(frozen=True)
class CouponEffect:
    """What a coupon does to an order.

    Attributes:
        discount: Amount taken off the subtotal, never above it.
        waives_shipping: Shipping cost is zeroed.
    """

    discount: Decimal = ZERO
    waives_shipping: bool = False


NO_EFFECT = CouponEffect()


def resolve_effect(kind: CouponKind, subtotal: Decimal) -> CouponEffect:
    """Turn a coupon kind into a discount against ``subtotal``."""
    match kind:
        case PercentageOff(percent=percent):
            discount = round_money(subtotal * percent / 100)
            return CouponEffect(discount=min(discount, round_money(subtotal)))
        case FixedAmountOff(amount=amount):
            return CouponEffect(discount=min(round_money(amount), round_money(subtotal)))
        case FreeShipping():
            return CouponEffect(waives_shipping=True)
    raise TypeError(f"Unsupported coupon kind: {kind!r}")


@dataclass(frozen=True)
class CouponRules:
    """The applicability fields of a coupon record."""

    code: str
    kind: CouponKind
    is_active: bool
    starts_at: datetime
    expires_at: datetime
    used_count: int = 0
    max_uses: int | None = None
    min_order_amount: Decimal | None = None

    @classmethod
    def from_record(cls, record) -> "CouponRules":
        """Build rules from a coupon row (any object with the coupon columns)."""
        return cls(
            code=record.code,
            kind=coupon_kind(record.type, record.value),
            is_active=bool(record.is_active),
            starts_at=_aware(record.starts_at),
            expires_at=_aware(record.expires_at),
            used_count=record.used_count or 0,
            max_uses=record.max_uses,
            min_order_amount=(
                Decimal(record.min_order_amount) if record.min_order_amount is not None else None
            ),
        )


def validate_coupon(rules: CouponRules, subtotal: Decimal, now: datetime | None = None) -> None:
    """Raise if the coupon cannot be applied to an order of ``subtotal``.

    Checks run in order: active flag, validity window
    ``[starts_at, expires_at)``, usage cap, minimum order amount.

    Raises:
        InvalidCouponError: Coupon is switched off.
        CouponExpiredError: ``now`` is outside the validity window.
        CouponUsageLimitError: ``used_count`` has reached ``max_uses``.
        CouponMinimumNotMetError: ``subtotal`` is below the minimum.
    """
    now = _aware(now or datetime.now(timezone.utc))

    if not rules.is_active:
        raise InvalidCouponError("This coupon is not active.", rules.code)
    if not (rules.starts_at <= now < rules.expires_at):
        raise CouponExpiredError(rules.code)
    if rules.max_uses is not None and rules.used_count >= rules.max_uses:
        raise CouponUsageLimitError(rules.code, rules.max_uses)
    if rules.min_order_amount is not None and subtotal < rules.min_order_amount:
        raise CouponMinimumNotMetError(rules.code, rules.min_order_amount, subtotal)


def evaluate_coupon(
    rules: CouponRules, subtotal: Decimal, now: datetime | None = None
) -> CouponEffect:
    """Validate then resolve; the single entry point checkout uses."""
    validate_coupon(rules, subtotal, now)
    return resolve_effect(rules.kind, subtotal)


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything here is stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
