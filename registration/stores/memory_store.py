"""In-process store implementations.

State lives in dictionaries. Every read-check-write on a shared counter runs
under a lock keyed by workshop ID, coupon code or purchase ID, so two callers
racing for the last seat or the last coupon use are serialized.
"""

import threading
import uuid
from contextlib import contextmanager
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Iterable, Iterator

from registration.domain import (
    Booking,
    BookingStatus,
    CalendarBlockout,
    Capacity,
    Coupon,
    DateRange,
    NotificationSchedule,
    PaymentTransaction,
    Product,
    Purchase,
    PurchaseState,
    Workshop,
)
from registration.domain.errors import (
    BookingNotFoundError,
    CapacityExceededError,
    InvalidBookingStateError,
    WorkshopNotFoundError,
)
from registration.stores.interfaces import (
    BookingStore,
    CalendarStore,
    CatalogStore,
    CouponStore,
    NotificationStore,
    PaymentStore,
    PurchaseStore,
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class KeyedLocks:
    """Hands out one re-entrant lock per key."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.RLock())
        with lock:
            yield


class InMemoryCatalogStore(CatalogStore):
    def __init__(self) -> None:
        self._products: dict[str, Product] = {}

    def get_product(self, product_id: str) -> Product | None:
        return self._products.get(product_id)

    def save_product(self, product: Product) -> Product:
        self._products[product.id] = product
        return product

    def list_products(self) -> list[Product]:
        return sorted(self._products.values(), key=lambda product: product.id)


class InMemoryCalendarStore(CalendarStore):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._blockouts: list[CalendarBlockout] = []

    def add_blockout(self, date_range: DateRange, reason: str, created_by: str) -> CalendarBlockout:
        blockout = CalendarBlockout(
            id=str(uuid.uuid4()),
            date_range=date_range,
            reason=reason,
            created_by=created_by,
            created_at=_now(),
        )
        with self._lock:
            self._blockouts.append(blockout)
        return blockout

    def remove_blockouts_covering(self, day: date) -> int:
        with self._lock:
            kept = [b for b in self._blockouts if not b.date_range.contains(day)]
            removed = len(self._blockouts) - len(kept)
            self._blockouts = kept
        return removed

    def list_blockouts(self, overlapping: DateRange | None = None) -> list[CalendarBlockout]:
        blockouts = list(self._blockouts)
        if overlapping is not None:
            blockouts = [b for b in blockouts if b.date_range.overlaps(overlapping)]
        return sorted(blockouts, key=lambda b: b.date_range.start)


class InMemoryBookingStore(BookingStore):
    """Bookings share their workshop's lock, so status and counter move together."""

    def __init__(self) -> None:
        self._locks = KeyedLocks()
        self._workshops: dict[str, Workshop] = {}
        self._sessions: dict[tuple[str, date, int | None], str] = {}
        self._bookings: dict[str, Booking] = {}

    def get_or_create_workshop(
        self, product: Product, start_date: date, start_hour: int | None
    ) -> Workshop:
        key = (product.id, start_date, start_hour)
        with self._locks.hold("sessions"):
            workshop_id = self._sessions.get(key)
            if workshop_id is not None:
                return self._workshops[workshop_id]
            covered = product.covered_dates(start_date)
            workshop = Workshop(
                id=str(uuid.uuid4()),
                product_id=product.id,
                start_date=covered.start,
                end_date=covered.end,
                capacity=product.max_capacity,
                current_attendees=0,
                start_hour=start_hour,
            )
            self._workshops[workshop.id] = workshop
            self._sessions[key] = workshop.id
            return workshop

    def get_workshop(self, workshop_id: str) -> Workshop | None:
        return self._workshops.get(workshop_id)

    def create_booking(
        self,
        workshop: Workshop,
        attendee_count: int,
        confirmation_number: str,
        start_hour: int | None = None,
        end_hour: int | None = None,
    ) -> Booking:
        now = _now()
        booking = Booking(
            id=str(uuid.uuid4()),
            workshop_id=workshop.id,
            product_id=workshop.product_id,
            start_date=workshop.start_date,
            attendee_count=attendee_count,
            status=BookingStatus.PENDING,
            confirmation_number=confirmation_number,
            created_at=now,
            updated_at=now,
            start_hour=start_hour,
            end_hour=end_hour,
        )
        with self._locks.hold(workshop.id):
            self._bookings[booking.id] = booking
        return booking

    def get_booking(self, booking_id: str) -> Booking | None:
        return self._bookings.get(booking_id)

    def confirm_booking(self, booking_id: str) -> Booking:
        booking = self._require(booking_id)
        with self._locks.hold(booking.workshop_id):
            booking = self._bookings[booking_id]
            if booking.status is BookingStatus.CONFIRMED:
                return booking
            if booking.status is BookingStatus.CANCELLED:
                raise InvalidBookingStateError(booking_id, booking.status.value)
            workshop = self._workshops[booking.workshop_id]
            if workshop.available_spots < booking.attendee_count:
                raise CapacityExceededError(booking.attendee_count, workshop.available_spots)
            self._workshops[workshop.id] = replace(
                workshop, current_attendees=workshop.current_attendees + booking.attendee_count
            )
            confirmed = replace(booking, status=BookingStatus.CONFIRMED, updated_at=_now())
            self._bookings[booking_id] = confirmed
            return confirmed

    def cancel_booking(self, booking_id: str) -> Booking:
        booking = self._require(booking_id)
        with self._locks.hold(booking.workshop_id):
            booking = self._bookings[booking_id]
            if booking.status is BookingStatus.CANCELLED:
                return booking
            if booking.status is BookingStatus.CONFIRMED:
                workshop = self._workshops[booking.workshop_id]
                self._workshops[workshop.id] = replace(
                    workshop,
                    current_attendees=max(workshop.current_attendees - booking.attendee_count, 0),
                )
            cancelled = replace(booking, status=BookingStatus.CANCELLED, updated_at=_now())
            self._bookings[booking_id] = cancelled
            return cancelled

    def list_confirmed_bookings_on(self, day: date) -> list[Booking]:
        found = []
        for booking in list(self._bookings.values()):
            if booking.status is not BookingStatus.CONFIRMED:
                continue
            workshop = self._workshops[booking.workshop_id]
            if workshop.start_date <= day <= workshop.end_date:
                found.append(booking)
        return found

    def set_workshop_capacity(self, workshop_id: str, capacity: int) -> Workshop:
        if workshop_id not in self._workshops:
            raise WorkshopNotFoundError(workshop_id)
        with self._locks.hold(workshop_id):
            workshop = self._workshops[workshop_id]
            if capacity < workshop.current_attendees:
                raise CapacityExceededError(workshop.current_attendees, capacity)
            updated = replace(workshop, capacity=Capacity(capacity))
            self._workshops[workshop_id] = updated
            return updated

    def _require(self, booking_id: str) -> Booking:
        booking = self._bookings.get(booking_id)
        if booking is None:
            raise BookingNotFoundError(booking_id)
        return booking


class InMemoryCouponStore(CouponStore):
    def __init__(self) -> None:
        self._locks = KeyedLocks()
        self._coupons: dict[str, Coupon] = {}
        # redemption id -> (code, still open)
        self._redemptions: dict[str, tuple[str, bool]] = {}

    def get_coupon(self, code: str) -> Coupon | None:
        return self._coupons.get(code)

    def save_coupon(self, coupon: Coupon) -> Coupon:
        with self._locks.hold(coupon.code):
            existing = self._coupons.get(coupon.code)
            if existing is not None:
                coupon = replace(coupon, current_usage=existing.current_usage)
            self._coupons[coupon.code] = coupon
            return coupon

    def consume_usage(self, code: str, now: datetime, redemption_id: str | None = None) -> bool:
        with self._locks.hold(code):
            coupon = self._coupons.get(code)
            if coupon is None:
                return False
            if redemption_id is not None and self._redemptions.get(redemption_id) == (code, True):
                return True
            if coupon.rejection(now) is not None:
                return False
            self._coupons[code] = replace(coupon, current_usage=coupon.current_usage + 1)
            if redemption_id is not None:
                self._redemptions[redemption_id] = (code, True)
            return True

    def restore_usage(self, code: str, redemption_id: str | None = None) -> bool:
        with self._locks.hold(code):
            coupon = self._coupons.get(code)
            if coupon is None:
                return False
            if redemption_id is not None:
                if self._redemptions.get(redemption_id) != (code, True):
                    return False
                self._redemptions[redemption_id] = (code, False)
            if coupon.current_usage == 0:
                return False
            self._coupons[code] = replace(coupon, current_usage=coupon.current_usage - 1)
            return True


class InMemoryPaymentStore(PaymentStore):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._transactions: dict[str, PaymentTransaction] = {}

    def save_transaction(self, transaction: PaymentTransaction) -> PaymentTransaction:
        with self._lock:
            for other in self._transactions.values():
                if other.idempotency_key == transaction.idempotency_key and other.id != transaction.id:
                    raise ValueError(f"Duplicate idempotency key: {transaction.idempotency_key}")
            self._transactions[transaction.id] = transaction
        return transaction

    def get_transaction(self, payment_id: str) -> PaymentTransaction | None:
        return self._transactions.get(payment_id)

    def find_by_idempotency_key(self, idempotency_key: str) -> PaymentTransaction | None:
        for transaction in list(self._transactions.values()):
            if transaction.idempotency_key == idempotency_key:
                return transaction
        return None

    def list_transactions(self) -> list[PaymentTransaction]:
        return list(self._transactions.values())


class InMemoryPurchaseStore(PurchaseStore):
    def __init__(self) -> None:
        self._purchases: dict[str, Purchase] = {}

    def save_purchase(self, purchase: Purchase) -> Purchase:
        self._purchases[purchase.id] = purchase
        return purchase

    def get_purchase(self, purchase_id: str) -> Purchase | None:
        return self._purchases.get(purchase_id)

    def list_purchases(self, statuses: Iterable[PurchaseState] | None = None) -> list[Purchase]:
        purchases = sorted(self._purchases.values(), key=lambda p: p.created_at)
        if statuses is None:
            return purchases
        wanted = set(statuses)
        return [p for p in purchases if p.status in wanted]


class InMemoryNotificationStore(NotificationStore):
    def __init__(self) -> None:
        self._locks = KeyedLocks()
        self._schedules: dict[str, NotificationSchedule] = {}

    def save_schedule(self, schedule: NotificationSchedule) -> NotificationSchedule:
        with self._locks.hold(schedule.purchase_id):
            self._schedules[schedule.purchase_id] = schedule
        return schedule

    def get_schedule(self, purchase_id: str) -> NotificationSchedule | None:
        return self._schedules.get(purchase_id)

    def list_due(self, now: datetime) -> list[NotificationSchedule]:
        return [
            s
            for s in list(self._schedules.values())
            if not s.cancelled and s.next_email_due is not None and s.next_email_due <= now
        ]

    def claim_tag(self, purchase_id: str, tag: str, next_email_due: datetime | None) -> bool:
        with self._locks.hold(purchase_id):
            schedule = self._schedules.get(purchase_id)
            if schedule is None or schedule.cancelled or tag in schedule.sent_tags:
                return False
            self._schedules[purchase_id] = replace(
                schedule, sent_tags=(*schedule.sent_tags, tag), next_email_due=next_email_due
            )
            return True

    def release_tag(self, purchase_id: str, tag: str, next_email_due: datetime | None) -> None:
        with self._locks.hold(purchase_id):
            schedule = self._schedules.get(purchase_id)
            if schedule is None or tag not in schedule.sent_tags:
                return
            self._schedules[purchase_id] = replace(
                schedule,
                sent_tags=tuple(t for t in schedule.sent_tags if t != tag),
                next_email_due=next_email_due,
            )
