"""Administrative operations, kept apart from the customer-facing saga."""

import logging
from collections import Counter
from dataclasses import replace
from datetime import date
from decimal import Decimal

from registration.domain import (
    CalendarBlockout,
    CapacityStatus,
    Coupon,
    CouponUsage,
    DateRange,
    DiscountType,
    Money,
    PaymentStatus,
    Product,
    Purchase,
    PurchaseState,
    SalesMetrics,
)
from registration.domain.errors import (
    CouponNotFoundError,
    InvalidRequestError,
    WorkshopNotFoundError,
)
from registration.services.availability_service import AvailabilityEngine
from registration.services.coupon_service import CouponLedger, normalize_code
from registration.stores.interfaces import (
    BookingStore,
    CatalogStore,
    CouponStore,
    PaymentStore,
    PurchaseStore,
)

logger = logging.getLogger(__name__)


class AdminConsole:
    """Typed admin capability over the calendar, coupons, catalog and sales."""

    def __init__(
        self,
        availability: AvailabilityEngine,
        coupons: CouponLedger,
        catalog_store: CatalogStore,
        booking_store: BookingStore,
        coupon_store: CouponStore,
        payment_store: PaymentStore,
        purchase_store: PurchaseStore,
    ) -> None:
        self._availability = availability
        self._coupons = coupons
        self._catalog = catalog_store
        self._bookings = booking_store
        self._coupon_store = coupon_store
        self._payments = payment_store
        self._purchases = purchase_store

    def block_date(self, day: date, reason: str, created_by: str = "admin") -> CalendarBlockout:
        return self._availability.block_date(day, reason, created_by=created_by)

    def block_range(
        self, start: date, end: date, reason: str, created_by: str = "admin"
    ) -> CalendarBlockout:
        return self._availability.block_range(start, end, reason, created_by=created_by)

    def unblock_date(self, day: date) -> int:
        return self._availability.unblock_date(day)

    def list_blockouts(self, date_range: DateRange | None = None) -> list[CalendarBlockout]:
        return self._availability.list_blockouts(date_range)

    def upsert_coupon(self, coupon: Coupon) -> Coupon:
        """Create or redefine a coupon. The usage counter is never reset here.

        Raises:
            InvalidRequestError: If the discount value is out of range.
        """
        if coupon.discount_value <= 0:
            raise InvalidRequestError("Discount value must be positive")
        if coupon.discount_type is DiscountType.PERCENTAGE and coupon.discount_value > Decimal(100):
            raise InvalidRequestError("Percentage discount cannot exceed 100")
        saved = self._coupon_store.save_coupon(replace(coupon, code=normalize_code(coupon.code)))
        logger.info("coupon_upserted", extra={"code": saved.code})
        return saved

    def deactivate_coupon(self, code: str) -> Coupon:
        code = normalize_code(code)
        coupon = self._coupon_store.get_coupon(code)
        if coupon is None:
            raise CouponNotFoundError(code)
        saved = self._coupon_store.save_coupon(replace(coupon, is_active=False))
        logger.info("coupon_deactivated", extra={"code": code})
        return saved

    def get_coupon_usage(self, code: str) -> CouponUsage:
        return self._coupons.get_coupon_usage(code)

    def upsert_product(self, product: Product) -> Product:
        saved = self._catalog.save_product(product)
        logger.info("product_upserted", extra={"product_id": product.id})
        return saved

    def list_products(self) -> list[Product]:
        return self._catalog.list_products()

    def get_capacity_status(self, workshop_id: str) -> CapacityStatus:
        workshop = self._bookings.get_workshop(workshop_id)
        if workshop is None:
            raise WorkshopNotFoundError(workshop_id)
        return CapacityStatus(
            workshop_id=workshop.id,
            capacity=workshop.capacity.value,
            current_attendees=workshop.current_attendees,
            available_spots=workshop.available_spots,
        )

    def set_workshop_capacity(self, workshop_id: str, capacity: int) -> CapacityStatus:
        """Raises CapacityExceededError when ``capacity`` is below current attendees."""
        if capacity < 0:
            raise InvalidRequestError("Capacity cannot be negative")
        self._bookings.set_workshop_capacity(workshop_id, capacity)
        logger.info(
            "workshop_capacity_changed",
            extra={"workshop_id": workshop_id, "capacity": capacity},
        )
        return self.get_capacity_status(workshop_id)

    def list_purchases(self, status: PurchaseState | None = None) -> list[Purchase]:
        return self._purchases.list_purchases(None if status is None else [status])

    def get_sales_metrics(self) -> SalesMetrics:
        by_status = Counter(p.status.value for p in self._purchases.list_purchases())
        collected = Money.zero()
        refunded = Money.zero()
        for transaction in self._payments.list_transactions():
            if transaction.status in (PaymentStatus.COMPLETED, PaymentStatus.REFUNDED):
                collected = collected + transaction.amount
            if transaction.status is PaymentStatus.REFUNDED:
                refunded = refunded + transaction.refunded_amount
        return SalesMetrics(
            purchases_by_status={state.value: by_status.get(state.value, 0) for state in PurchaseState},
            collected=collected,
            refunded=refunded,
        )
