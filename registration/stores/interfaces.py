"""Store interfaces (repository pattern).

Stores must be swappable and return domain models. Methods documented as
atomic are the only places shared counters change; implementations serialize
them per key (row lock / conditional update / in-process mutex).
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Iterable

from registration.domain import (
    Booking,
    CalendarBlockout,
    Coupon,
    DateRange,
    NotificationSchedule,
    PaymentTransaction,
    Product,
    Purchase,
    PurchaseState,
    Workshop,
)


class CatalogStore(ABC):
    """Interface for product catalog persistence."""

    @abstractmethod
    def get_product(self, product_id: str) -> Product | None:
        """Return a product by ID, or None if not found."""
        ...

    @abstractmethod
    def save_product(self, product: Product) -> Product:
        """Insert or replace a product."""
        ...

    @abstractmethod
    def list_products(self) -> list[Product]:
        """Return all products ordered by ID."""
        ...


class CalendarStore(ABC):
    """Interface for admin blockout persistence."""

    @abstractmethod
    def add_blockout(self, date_range: DateRange, reason: str, created_by: str) -> CalendarBlockout:
        """Append a blockout row; overlapping rows are allowed."""
        ...

    @abstractmethod
    def remove_blockouts_covering(self, day: date) -> int:
        """Delete every blockout whose range contains ``day``; return the count."""
        ...

    @abstractmethod
    def list_blockouts(self, overlapping: DateRange | None = None) -> list[CalendarBlockout]:
        """Return blockouts ordered by start date, optionally only those overlapping a range."""
        ...


class BookingStore(ABC):
    """Interface for workshop and booking persistence."""

    @abstractmethod
    def get_or_create_workshop(
        self, product: Product, start_date: date, start_hour: int | None
    ) -> Workshop:
        """Return the workshop for (product, date, hour), creating it on first use."""
        ...

    @abstractmethod
    def get_workshop(self, workshop_id: str) -> Workshop | None:
        ...

    @abstractmethod
    def create_booking(
        self,
        workshop: Workshop,
        attendee_count: int,
        confirmation_number: str,
        start_hour: int | None = None,
        end_hour: int | None = None,
    ) -> Booking:
        """Insert a PENDING booking. Does not touch the attendee counter."""
        ...

    @abstractmethod
    def get_booking(self, booking_id: str) -> Booking | None:
        ...

    @abstractmethod
    def confirm_booking(self, booking_id: str) -> Booking:
        """Atomically move PENDING -> CONFIRMED and add its attendees to the workshop.

        Raises:
            BookingNotFoundError: If the booking does not exist.
            InvalidBookingStateError: If the booking was cancelled.
            CapacityExceededError: If the seats were taken meanwhile.
        """
        ...

    @abstractmethod
    def cancel_booking(self, booking_id: str) -> Booking:
        """Atomically move to CANCELLED, releasing seats if they were taken.

        Cancelling a cancelled booking returns it unchanged.

        Raises:
            BookingNotFoundError: If the booking does not exist.
        """
        ...

    @abstractmethod
    def list_confirmed_bookings_on(self, day: date) -> list[Booking]:
        """Return confirmed bookings whose workshop spans ``day``."""
        ...

    @abstractmethod
    def set_workshop_capacity(self, workshop_id: str, capacity: int) -> Workshop:
        """Atomically change capacity; never below the current attendee count.

        Raises:
            WorkshopNotFoundError: If the workshop does not exist.
            CapacityExceededError: If ``capacity`` is below current attendees.
        """
        ...


class CouponStore(ABC):
    """Interface for coupon persistence and usage counting."""

    @abstractmethod
    def get_coupon(self, code: str) -> Coupon | None:
        ...

    @abstractmethod
    def save_coupon(self, coupon: Coupon) -> Coupon:
        """Insert or update a coupon definition, keeping its usage counter."""
        ...

    @abstractmethod
    def consume_usage(self, code: str, now: datetime, redemption_id: str | None = None) -> bool:
        """Atomically take one use if the coupon is active, unexpired and under its limit.

        Returns False when the check fails (including a lost race).
        """
        ...

    @abstractmethod
    def restore_usage(self, code: str, redemption_id: str | None = None) -> bool:
        """Atomically give one use back, floored at zero.

        With a redemption ID, only a still-open redemption is released, so a
        repeated call returns False and changes nothing.
        """
        ...


class PaymentStore(ABC):
    """Interface for payment transaction persistence."""

    @abstractmethod
    def save_transaction(self, transaction: PaymentTransaction) -> PaymentTransaction:
        ...

    @abstractmethod
    def get_transaction(self, payment_id: str) -> PaymentTransaction | None:
        ...

    @abstractmethod
    def find_by_idempotency_key(self, idempotency_key: str) -> PaymentTransaction | None:
        ...

    @abstractmethod
    def list_transactions(self) -> list[PaymentTransaction]:
        ...


class PurchaseStore(ABC):
    """Interface for saga record persistence."""

    @abstractmethod
    def save_purchase(self, purchase: Purchase) -> Purchase:
        ...

    @abstractmethod
    def get_purchase(self, purchase_id: str) -> Purchase | None:
        ...

    @abstractmethod
    def list_purchases(self, statuses: Iterable[PurchaseState] | None = None) -> list[Purchase]:
        """Return purchases ordered by creation, optionally filtered by status."""
        ...


class NotificationStore(ABC):
    """Interface for follow-up schedule persistence."""

    @abstractmethod
    def save_schedule(self, schedule: NotificationSchedule) -> NotificationSchedule:
        ...

    @abstractmethod
    def get_schedule(self, purchase_id: str) -> NotificationSchedule | None:
        ...

    @abstractmethod
    def list_due(self, now: datetime) -> list[NotificationSchedule]:
        """Return active schedules whose next email is due at or before ``now``."""
        ...

    @abstractmethod
    def claim_tag(self, purchase_id: str, tag: str, next_email_due: datetime | None) -> bool:
        """Atomically record ``tag`` as sent and advance the due time.

        Returns False when the tag was already recorded.
        """
        ...

    @abstractmethod
    def release_tag(self, purchase_id: str, tag: str, next_email_due: datetime | None) -> None:
        """Undo a claim whose send failed, restoring the previous due time."""
        ...
