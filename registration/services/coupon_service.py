"""Discount code validation and usage accounting."""

import logging
from datetime import datetime, timezone
from typing import Callable

from registration.domain import Coupon, CouponRejection, CouponUsage, CouponValidation, Money
from registration.domain.errors import CouponInvalidError, CouponNotFoundError
from registration.stores.interfaces import CouponStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_code(code: str) -> str:
    return code.strip().upper()


class CouponLedger:
    """Validates coupons and keeps ``current_usage`` within ``usage_limit``.

    The limit check and the increment happen in one store call
    (``consume_usage``), serialized per code.
    """

    def __init__(self, store: CouponStore, clock: Callable[[], datetime] = _utcnow) -> None:
        self._store = store
        self._clock = clock

    def validate_coupon(self, code: str, amount: Money | None = None) -> CouponValidation:
        """Check a code without touching its usage counter."""
        code = normalize_code(code)
        coupon = self._store.get_coupon(code) if code else None
        if coupon is None:
            return CouponValidation(
                is_valid=False, code=code, reason=CouponRejection.COUPON_NOT_FOUND
            )
        reason = coupon.rejection(self._clock(), amount)
        return CouponValidation(
            is_valid=reason is None,
            code=code,
            reason=reason,
            discount_type=coupon.discount_type,
            discount_value=coupon.discount_value,
            minimum_amount=coupon.minimum_amount,
            usage=coupon.usage,
        )

    def apply_coupon(self, code: str, amount: Money, redemption_id: str | None = None) -> Money:
        """Take one use of the coupon and return the discount on ``amount``.

        Raises:
            CouponInvalidError: If the coupon fails validation, including when
                another caller took the last use first.
        """
        code = normalize_code(code)
        now = self._clock()
        coupon = self._usable(code, now, amount)
        discount = coupon.discount_for(amount)

        if not self._store.consume_usage(code, now, redemption_id=redemption_id):
            current = self._store.get_coupon(code)
            reason = (current.rejection(now) if current else None) or (
                CouponRejection.USAGE_LIMIT_EXCEEDED
            )
            logger.info("coupon_apply_lost_race", extra={"code": code, "reason": reason.value})
            raise CouponInvalidError(code, reason.value)

        logger.info(
            "coupon_applied",
            extra={"code": code, "discount": str(discount), "redemption_id": redemption_id},
        )
        return discount

    def release_coupon(self, code: str, redemption_id: str | None = None) -> bool:
        """Give one use back. With ``redemption_id`` a repeated release changes nothing."""
        code = normalize_code(code)
        released = self._store.restore_usage(code, redemption_id=redemption_id)
        logger.info(
            "coupon_released",
            extra={"code": code, "redemption_id": redemption_id, "released": released},
        )
        return released

    def get_coupon_usage(self, code: str) -> CouponUsage:
        code = normalize_code(code)
        coupon = self._store.get_coupon(code)
        if coupon is None:
            raise CouponNotFoundError(code)
        return coupon.usage

    def _usable(self, code: str, now: datetime, amount: Money) -> Coupon:
        coupon = self._store.get_coupon(code)
        if coupon is None:
            raise CouponInvalidError(code, CouponRejection.COUPON_NOT_FOUND.value)
        reason = coupon.rejection(now, amount)
        if reason is not None:
            raise CouponInvalidError(code, reason.value)
        return coupon
