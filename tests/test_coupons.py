"""Unit tests for CouponLedger.

Run with: pytest tests/test_coupons.py -v
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from decimal import Decimal

import pytest

from registration.domain import Coupon, CouponRejection, DiscountType, Money
from registration.domain.errors import CouponInvalidError, CouponNotFoundError
from registration.services.coupon_service import CouponLedger
from registration.stores.memory_store import InMemoryCouponStore


@pytest.fixture
def store() -> InMemoryCouponStore:
    store = InMemoryCouponStore()
    store.save_coupon(Coupon("SAVE20", DiscountType.PERCENTAGE, Decimal("20")))
    store.save_coupon(
        Coupon("MAXEDOUT", DiscountType.FIXED, Decimal("100"), usage_limit=3, current_usage=3)
    )
    store.save_coupon(Coupon("ONCE", DiscountType.FIXED, Decimal("250"), usage_limit=1))
    store.save_coupon(
        Coupon(
            "BIGSPENDER",
            DiscountType.FIXED,
            Decimal("500"),
            minimum_amount=Money(Decimal("5000")),
        )
    )
    return store


@pytest.fixture
def ledger(store, clock) -> CouponLedger:
    return CouponLedger(store, clock=clock)


class TestValidateCoupon:
    """Tests for read-only validation."""

    def test_valid_coupon_reports_terms(self, ledger):
        validation = ledger.validate_coupon("save20")

        assert validation.is_valid
        assert validation.code == "SAVE20"
        assert validation.discount_type is DiscountType.PERCENTAGE
        assert validation.discount_value == Decimal("20")

    def test_unknown_coupon(self, ledger):
        validation = ledger.validate_coupon("NOPE")

        assert not validation.is_valid
        assert validation.reason is CouponRejection.COUPON_NOT_FOUND

    def test_maxed_out_coupon(self, ledger, store):
        validation = ledger.validate_coupon("MAXEDOUT")

        assert not validation.is_valid
        assert validation.reason is CouponRejection.USAGE_LIMIT_EXCEEDED
        assert store.get_coupon("MAXEDOUT").current_usage == 3

    def test_expired_coupon(self, ledger, store, clock):
        store.save_coupon(
            Coupon("LASTYEAR", DiscountType.FIXED, Decimal("10"), expires_at=clock.now - timedelta(seconds=1))
        )

        assert ledger.validate_coupon("LASTYEAR").reason is CouponRejection.COUPON_EXPIRED

    def test_inactive_coupon(self, ledger, store):
        store.save_coupon(Coupon("PAUSED", DiscountType.FIXED, Decimal("10"), is_active=False))

        assert ledger.validate_coupon("PAUSED").reason is CouponRejection.COUPON_INACTIVE

    def test_below_minimum_amount(self, ledger):
        validation = ledger.validate_coupon("BIGSPENDER", Money(Decimal("3000")))

        assert validation.reason is CouponRejection.BELOW_MINIMUM_AMOUNT


class TestApplyCoupon:
    """Tests for atomic usage accounting."""

    def test_save20_on_six_thousand(self, ledger, store):
        discount = ledger.apply_coupon("SAVE20", Money(Decimal("6000")))

        assert discount == Money(Decimal("1200"))
        assert store.get_coupon("SAVE20").current_usage == 1

    def test_fixed_discount_capped_at_amount(self, ledger):
        assert ledger.apply_coupon("ONCE", Money(Decimal("200"))) == Money(Decimal("200"))

    def test_maxed_out_apply_leaves_usage_unchanged(self, ledger, store):
        with pytest.raises(CouponInvalidError) as excinfo:
            ledger.apply_coupon("MAXEDOUT", Money(Decimal("1000")))

        assert excinfo.value.reason == "USAGE_LIMIT_EXCEEDED"
        assert store.get_coupon("MAXEDOUT").current_usage == 3

    def test_unknown_coupon_is_invalid(self, ledger):
        with pytest.raises(CouponInvalidError) as excinfo:
            ledger.apply_coupon("NOPE", Money(Decimal("1000")))
        assert excinfo.value.reason == "COUPON_NOT_FOUND"

    def test_concurrent_apply_on_single_use_coupon(self, ledger, store):
        def apply(_):
            try:
                ledger.apply_coupon("ONCE", Money(Decimal("1000")))
                return True
            except CouponInvalidError:
                return False

        with ThreadPoolExecutor(max_workers=16) as pool:
            results = list(pool.map(apply, range(32)))

        assert results.count(True) == 1
        assert store.get_coupon("ONCE").current_usage == 1

    def test_reapply_with_same_redemption_counts_once(self, ledger, store):
        ledger.apply_coupon("SAVE20", Money(Decimal("100")), redemption_id="purchase-1")
        ledger.apply_coupon("SAVE20", Money(Decimal("100")), redemption_id="purchase-1")

        assert store.get_coupon("SAVE20").current_usage == 1


class TestReleaseCoupon:
    """Tests for the compensating decrement."""

    def test_release_returns_the_use(self, ledger, store):
        ledger.apply_coupon("ONCE", Money(Decimal("1000")), redemption_id="p-1")

        assert ledger.release_coupon("ONCE", redemption_id="p-1") is True
        assert store.get_coupon("ONCE").current_usage == 0
        assert ledger.validate_coupon("ONCE").is_valid

    def test_release_twice_with_redemption_is_noop(self, ledger, store):
        ledger.apply_coupon("SAVE20", Money(Decimal("100")), redemption_id="p-1")
        ledger.apply_coupon("SAVE20", Money(Decimal("100")), redemption_id="p-2")

        ledger.release_coupon("SAVE20", redemption_id="p-1")
        assert ledger.release_coupon("SAVE20", redemption_id="p-1") is False
        assert store.get_coupon("SAVE20").current_usage == 1

    def test_release_floors_at_zero(self, ledger, store):
        assert ledger.release_coupon("SAVE20") is False
        assert store.get_coupon("SAVE20").current_usage == 0


class TestCouponUsage:
    def test_usage_report(self, ledger):
        usage = ledger.get_coupon_usage("maxedout")

        assert (usage.total_usage, usage.usage_limit, usage.remaining_uses) == (3, 3, 0)

    def test_unknown_code(self, ledger):
        with pytest.raises(CouponNotFoundError):
            ledger.get_coupon_usage("NOPE")
