"""Purchase orchestration.

A purchase moves through

    PENDING -> BOOKING_CREATED -> DISCOUNT_APPLIED -> PAYMENT_CAPTURED -> COMPLETED

and is persisted after every transition. A failure after the booking exists
moves it to COMPENSATING, which undoes the steps already taken and settles in
FAILED. A completed purchase is cancelled the same way and settles in
CANCELLED. When an undo step fails the purchase rests in COMPENSATING until
``retry_compensations`` finishes the job; the recorded refund amount and
coupon flags keep every undo step from running twice.

A capture that timed out leaves the purchase in COMPENSATING with its payment
UNKNOWN. Each retry asks the gateway again under the purchase's idempotency
key and refunds the charge if it went through before settling in FAILED.
"""

import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable

from registration.domain import (
    Money,
    PaymentRequest,
    PaymentStatus,
    Purchase,
    PurchaseRequest,
    PurchaseResult,
    PurchaseState,
)
from registration.domain.errors import (
    DomainError,
    ProductNotFoundError,
    PurchaseNotCancellableError,
    PurchaseNotFoundError,
)
from registration.services.booking_service import BookingRegistry
from registration.services.coupon_service import CouponLedger, normalize_code
from registration.services.notification_service import NotificationScheduler
from registration.services.payment_service import PaymentCoordinator
from registration.stores.interfaces import CatalogStore, PurchaseStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PurchaseSaga:
    """Coordinates booking, discount and payment for one purchase at a time."""

    def __init__(
        self,
        catalog_store: CatalogStore,
        purchase_store: PurchaseStore,
        bookings: BookingRegistry,
        coupons: CouponLedger,
        payments: PaymentCoordinator,
        notifications: NotificationScheduler,
        currency: str = "USD",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._catalog = catalog_store
        self._store = purchase_store
        self._bookings = bookings
        self._coupons = coupons
        self._payments = payments
        self._notifications = notifications
        self._currency = currency
        self._clock = clock

    def process_purchase(self, request: PurchaseRequest) -> PurchaseResult:
        """Run the purchase to a terminal state.

        Payment declines come back as a FAILED result with ``error_message``
        set. A gateway timeout comes back as a COMPENSATING result that
        ``retry_compensations`` settles once the payment outcome is known.
        Every other failure is compensated and then re-raised.

        Raises:
            RequestValidationError: Unknown product, unavailable date or an
                invalid coupon.
            CapacityError: The workshop cannot take the attendees.
        """
        now = self._clock()
        purchase = self._save(
            Purchase(
                id=str(uuid.uuid4()),
                status=PurchaseState.PENDING,
                product_id=request.product_id,
                contact=request.point_of_contact,
                attendee_count=request.attendee_count,
                start_date=request.start_date,
                start_hour=request.start_hour,
                coupon_code=normalize_code(request.coupon_code) if request.coupon_code else None,
                created_at=now,
                updated_at=now,
            )
        )
        logger.info(
            "purchase_started",
            extra={"purchase_id": purchase.id, "product_id": request.product_id},
        )

        try:
            booking = self._bookings.create(request)
        except DomainError as exc:
            self._advance(purchase, PurchaseState.FAILED, error_message=exc.message)
            logger.info(
                "purchase_rejected",
                extra={"purchase_id": purchase.id, "error_code": exc.code.value},
            )
            raise
        purchase = self._advance(
            purchase,
            PurchaseState.BOOKING_CREATED,
            booking_id=booking.id,
            confirmation_number=booking.confirmation_number,
        )

        product = self._catalog.get_product(request.product_id)
        if product is None:
            self._fail(purchase, "Product not found")
            raise ProductNotFoundError(request.product_id)
        subtotal = product.price.times(request.attendee_count)
        discount = Money.zero()
        if purchase.coupon_code:
            try:
                discount = self._coupons.apply_coupon(
                    purchase.coupon_code, subtotal, redemption_id=purchase.id
                )
            except DomainError as exc:
                self._fail(purchase, exc.message)
                raise
        total = subtotal - discount
        purchase = self._advance(
            purchase,
            PurchaseState.DISCOUNT_APPLIED,
            total_amount=total,
            discount_amount=discount,
            coupon_applied=purchase.coupon_code is not None,
        )

        if not total.is_zero:
            try:
                payment = self._payments.process_payment(
                    PaymentRequest(
                        amount=total,
                        currency=self._currency,
                        booking_id=booking.id,
                        idempotency_key=purchase.idempotency_key,
                        source_id=request.payment_method.source_id,
                    )
                )
            except DomainError as exc:
                self._fail(purchase, exc.message)
                raise
            if payment.status is PaymentStatus.UNKNOWN:
                purchase = self._advance(
                    purchase,
                    PurchaseState.COMPENSATING,
                    compensation_target=PurchaseState.FAILED,
                    payment_id=payment.payment_id,
                    error_message=payment.error_message or "Payment outcome unknown",
                )
                return self._result(self._compensate(purchase, settle_payment=False))
            if not payment.succeeded:
                purchase = self._fail(
                    replace(purchase, payment_id=payment.payment_id),
                    payment.error_message or "Payment failed",
                )
                return self._result(purchase)
            purchase = self._advance(
                purchase,
                PurchaseState.PAYMENT_CAPTURED,
                payment_id=payment.payment_id,
                paid_amount=total,
                receipt_url=payment.receipt_url,
            )

        try:
            booking = self._bookings.confirm(booking.id)
        except DomainError as exc:
            self._fail(purchase, exc.message)
            raise
        purchase = self._advance(purchase, PurchaseState.COMPLETED)
        logger.info(
            "purchase_completed",
            extra={"purchase_id": purchase.id, "total": str(purchase.total_amount)},
        )

        try:
            self._notifications.schedule_follow_up_emails(purchase, booking, product)
        except Exception:
            logger.exception("follow_up_scheduling_failed", extra={"purchase_id": purchase.id})
        return self._result(purchase)

    def get_purchase_status(self, purchase_id: str) -> Purchase:
        purchase = self._store.get_purchase(purchase_id)
        if purchase is None:
            raise PurchaseNotFoundError(purchase_id)
        return purchase

    def cancel_purchase(self, purchase_id: str) -> PurchaseResult:
        """Cancel a completed purchase: refund, cancel the booking, stop follow-ups.

        Cancelling a CANCELLED or FAILED purchase changes nothing. A purchase
        already COMPENSATING has its remaining undo steps retried.

        Raises:
            PurchaseNotFoundError: If the purchase does not exist.
            PurchaseNotCancellableError: If the purchase is still in flight.
        """
        purchase = self.get_purchase_status(purchase_id)
        if purchase.status in (PurchaseState.CANCELLED, PurchaseState.FAILED):
            return self._result(purchase)
        if purchase.status is PurchaseState.COMPENSATING:
            return self._result(self._compensate(purchase))
        if purchase.status is not PurchaseState.COMPLETED:
            raise PurchaseNotCancellableError(purchase_id, purchase.status.value)

        purchase = self._advance(
            purchase,
            PurchaseState.COMPENSATING,
            compensation_target=PurchaseState.CANCELLED,
        )
        logger.info("purchase_cancelling", extra={"purchase_id": purchase_id})
        return self._result(self._compensate(purchase))

    def retry_compensations(self) -> int:
        """Re-drive every COMPENSATING purchase; return how many settled."""
        settled = 0
        for purchase in self._store.list_purchases([PurchaseState.COMPENSATING]):
            if self._compensate(purchase).status is not PurchaseState.COMPENSATING:
                settled += 1
        logger.info("compensation_retry_finished", extra={"settled": settled})
        return settled

    def _fail(self, purchase: Purchase, message: str) -> Purchase:
        purchase = self._advance(
            purchase,
            PurchaseState.COMPENSATING,
            compensation_target=PurchaseState.FAILED,
            error_message=message,
        )
        return self._compensate(purchase)

    def _compensate(self, purchase: Purchase, settle_payment: bool = True) -> Purchase:
        target = purchase.compensation_target or PurchaseState.FAILED
        complete = True

        if purchase.payment_id and purchase.paid_amount.is_zero:
            try:
                if settle_payment:
                    status = self._payments.resolve_payment(purchase.payment_id).status
                else:
                    status = self._payments.get_payment_status(purchase.payment_id).status
            except DomainError as exc:
                status = PaymentStatus.UNKNOWN
                logger.error(
                    "compensation_payment_error",
                    extra={"purchase_id": purchase.id, "error_code": exc.code.value},
                )
            if status in (PaymentStatus.COMPLETED, PaymentStatus.REFUNDED):
                purchase = self._save(replace(purchase, paid_amount=purchase.total_amount))
            elif status is PaymentStatus.UNKNOWN:
                complete = False

        if purchase.payment_id and not purchase.paid_amount.is_zero and purchase.refund_amount.is_zero:
            try:
                refund = self._payments.process_refund(purchase.payment_id, purchase.paid_amount)
            except DomainError as exc:
                refund = None
                logger.error(
                    "compensation_refund_error",
                    extra={"purchase_id": purchase.id, "error_code": exc.code.value},
                )
            if refund is not None and refund.succeeded:
                purchase = self._save(replace(purchase, refund_amount=refund.amount))
            else:
                complete = False

        if purchase.booking_id:
            try:
                self._bookings.cancel(purchase.booking_id)
            except DomainError as exc:
                complete = False
                logger.error(
                    "compensation_cancel_error",
                    extra={"purchase_id": purchase.id, "error_code": exc.code.value},
                )

        if purchase.coupon_applied and not purchase.coupon_released and purchase.coupon_code:
            self._coupons.release_coupon(purchase.coupon_code, redemption_id=purchase.id)
            purchase = self._save(replace(purchase, coupon_released=True))

        if target is PurchaseState.CANCELLED:
            self._notifications.cancel_schedule(purchase.id)

        if not complete:
            logger.warning(
                "compensation_incomplete",
                extra={"purchase_id": purchase.id, "target": target.value},
            )
            return self._save(replace(purchase, updated_at=self._clock()))

        purchase = self._advance(purchase, target)
        logger.info(
            "purchase_compensated",
            extra={"purchase_id": purchase.id, "status": target.value},
        )
        return purchase

    def _advance(self, purchase: Purchase, status: PurchaseState, **changes) -> Purchase:
        return self._save(replace(purchase, status=status, updated_at=self._clock(), **changes))

    def _save(self, purchase: Purchase) -> Purchase:
        return self._store.save_purchase(purchase)

    @staticmethod
    def _result(purchase: Purchase) -> PurchaseResult:
        return PurchaseResult(
            purchase_id=purchase.id,
            status=purchase.status,
            total_amount=purchase.total_amount,
            booking_id=purchase.booking_id,
            payment_id=purchase.payment_id,
            confirmation_number=purchase.confirmation_number,
            receipt_url=purchase.receipt_url,
            error_message=purchase.error_message,
        )
