"""Tests for coupon validation and discount resolution."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from storefront.domain.coupons import (
    CouponRules,
    CouponType,
    FixedAmountOff,
    FreeShipping,
    PercentageOff,
    coupon_kind,
    evaluate_coupon,
    resolve_effect,
    validate_coupon,
)
from storefront.domain.exceptions import (
    CouponExpiredError,
    CouponMinimumNotMetError,
    CouponUsageLimitError,
    InvalidCouponError,
)

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_rules(**overrides) -> CouponRules:
    """Build an applicable coupon, overriding selected fields."""
    values = {
        "code": "SAVE10",
        "kind": PercentageOff(Decimal("10")),
        "is_active": True,
        "starts_at": NOW - timedelta(days=1),
        "expires_at": NOW + timedelta(days=1),
        "used_count": 0,
        "max_uses": None,
        "min_order_amount": None,
    }
    values.update(overrides)
    return CouponRules(**values)


class TestCouponKind:
    """Tests for mapping stored coupon types to kinds."""

    def test_percentage(self) -> None:
        assert coupon_kind("PERCENTAGE", Decimal("15")) == PercentageOff(Decimal("15"))

    def test_fixed_amount(self) -> None:
        assert coupon_kind(CouponType.FIXED_AMOUNT, Decimal("1000")) == FixedAmountOff(
            Decimal("1000")
        )

    def test_free_shipping_ignores_value(self) -> None:
        assert coupon_kind("FREE_SHIPPING", Decimal("0")) == FreeShipping()

    def test_unknown_type_rejected(self) -> None:
        with pytest.raises(ValueError):
            coupon_kind("BOGO", Decimal("0"))


class TestResolveEffect:
    """Tests for discount computation."""

    def test_percentage_of_subtotal(self) -> None:
        """10% of 10000 is 1000."""
        effect = resolve_effect(PercentageOff(Decimal("10")), Decimal("10000"))

        assert effect.discount == Decimal("1000.00")
        assert not effect.waives_shipping

    def test_percentage_is_rounded(self) -> None:
        """12.5% of 99.99 rounds half up to the cent."""
        effect = resolve_effect(PercentageOff(Decimal("12.5")), Decimal("99.99"))

        assert effect.discount == Decimal("12.50")

    def test_fixed_amount(self) -> None:
        effect = resolve_effect(FixedAmountOff(Decimal("1500")), Decimal("10000"))

        assert effect.discount == Decimal("1500.00")

    def test_fixed_amount_capped_at_subtotal(self) -> None:
        """A fixed discount never exceeds the subtotal."""
        effect = resolve_effect(FixedAmountOff(Decimal("5000")), Decimal("3000"))

        assert effect.discount == Decimal("3000.00")

    def test_free_shipping(self) -> None:
        """Free shipping gives no discount but waives shipping."""
        effect = resolve_effect(FreeShipping(), Decimal("10000"))

        assert effect.discount == Decimal("0.00")
        assert effect.waives_shipping


class TestValidateCoupon:
    """Tests for coupon applicability rules."""

    def test_valid_coupon_passes(self) -> None:
        validate_coupon(make_rules(), Decimal("1000"), NOW)

    def test_inactive_rejected(self) -> None:
        with pytest.raises(InvalidCouponError) as exc_info:
            validate_coupon(make_rules(is_active=False), Decimal("1000"), NOW)
        assert exc_info.value.code == "INVALID_COUPON"

    def test_not_yet_started_rejected(self) -> None:
        rules = make_rules(starts_at=NOW + timedelta(hours=1))

        with pytest.raises(CouponExpiredError):
            validate_coupon(rules, Decimal("1000"), NOW)

    def test_expired_rejected(self) -> None:
        rules = make_rules(expires_at=NOW - timedelta(seconds=1))

        with pytest.raises(CouponExpiredError):
            validate_coupon(rules, Decimal("1000"), NOW)

    def test_expiry_instant_is_exclusive(self) -> None:
        """A coupon is no longer valid at exactly its expiry time."""
        with pytest.raises(CouponExpiredError):
            validate_coupon(make_rules(expires_at=NOW), Decimal("1000"), NOW)

    def test_start_instant_is_inclusive(self) -> None:
        validate_coupon(make_rules(starts_at=NOW), Decimal("1000"), NOW)

    def test_usage_cap_reached(self) -> None:
        rules = make_rules(max_uses=5, used_count=5)

        with pytest.raises(CouponUsageLimitError) as exc_info:
            validate_coupon(rules, Decimal("1000"), NOW)
        assert exc_info.value.code == "COUPON_MAX_USES_REACHED"

    def test_below_usage_cap_passes(self) -> None:
        validate_coupon(make_rules(max_uses=5, used_count=4), Decimal("1000"), NOW)

    def test_minimum_not_met_reports_minimum(self) -> None:
        """Minimum 5000 against a 4000 subtotal is rejected with the minimum."""
        rules = make_rules(min_order_amount=Decimal("5000"))

        with pytest.raises(CouponMinimumNotMetError) as exc_info:
            validate_coupon(rules, Decimal("4000"), NOW)

        assert exc_info.value.minimum == Decimal("5000")
        assert exc_info.value.details["min_order_amount"] == "5000"
        assert "5,000.00" in exc_info.value.message

    def test_minimum_met_exactly_passes(self) -> None:
        validate_coupon(make_rules(min_order_amount=Decimal("5000")), Decimal("5000"), NOW)

    def test_naive_datetimes_treated_as_utc(self) -> None:
        """Window bounds read back without tzinfo are compared as UTC."""
        rules = make_rules(
            starts_at=(NOW - timedelta(days=1)).replace(tzinfo=None),
            expires_at=(NOW + timedelta(days=1)).replace(tzinfo=None),
        )

        validate_coupon(rules, Decimal("1000"), NOW)

    def test_active_check_runs_before_window(self) -> None:
        """An inactive, expired coupon reports that it is inactive."""
        rules = make_rules(is_active=False, expires_at=NOW - timedelta(days=1))

        with pytest.raises(InvalidCouponError) as exc_info:
            validate_coupon(rules, Decimal("1000"), NOW)
        assert type(exc_info.value) is InvalidCouponError


class TestEvaluateCoupon:
    """Tests for validate-then-resolve."""

    def test_returns_effect_when_valid(self) -> None:
        effect = evaluate_coupon(make_rules(), Decimal("10000"), NOW)

        assert effect.discount == Decimal("1000.00")

    def test_raises_when_invalid(self) -> None:
        with pytest.raises(CouponExpiredError):
            evaluate_coupon(make_rules(expires_at=NOW), Decimal("10000"), NOW)
