"""Booking lifecycle against workshop capacity.

Services:
- Depend only on interfaces (stores)
- Validate domain invariants
- Return domain models or raise domain errors
"""

import logging
import uuid

from registration.domain import Booking, PurchaseRequest
from registration.domain.errors import (
    BookingNotFoundError,
    CapacityExceededError,
    DateUnavailableError,
    InvalidRequestError,
    ProductNotFoundError,
)
from registration.services.availability_service import AvailabilityEngine
from registration.stores.interfaces import BookingStore, CatalogStore

logger = logging.getLogger(__name__)


def new_confirmation_number() -> str:
    return f"WS-{uuid.uuid4().hex[:8].upper()}"


class BookingRegistry:
    """Creates, confirms and cancels reservations."""

    def __init__(
        self,
        catalog_store: CatalogStore,
        booking_store: BookingStore,
        availability: AvailabilityEngine,
    ) -> None:
        self._catalog = catalog_store
        self._store = booking_store
        self._availability = availability

    def create(self, request: PurchaseRequest) -> Booking:
        """Create a PENDING booking. Seats are only taken on confirm.

        Raises:
            InvalidRequestError: If there are no attendees or a consulting
                request has no start hour.
            ProductNotFoundError: If the product is unknown or inactive.
            DateUnavailableError: If any covered date or hour is unavailable.
            CapacityExceededError: If the workshop has too few open seats.
        """
        if request.attendee_count < 1:
            raise InvalidRequestError("At least one attendee is required")

        product = self._catalog.get_product(request.product_id)
        if product is None or not product.is_active:
            raise ProductNotFoundError(request.product_id)

        if not self._availability.is_range_available(product.covered_dates(request.start_date)):
            raise DateUnavailableError()

        start_hour = end_hour = None
        if product.product_type.is_hourly:
            if request.start_hour is None:
                raise InvalidRequestError("Consulting bookings need a start hour")
            start_hour = request.start_hour
            end_hour = start_hour + product.duration
            free = {
                slot.start.hour
                for slot in self._availability.get_hourly_slots(request.start_date)
                if slot.available
            }
            if any(hour not in free for hour in range(start_hour, end_hour)):
                raise DateUnavailableError("Requested hours are not available")

        if request.attendee_count > product.max_capacity.value:
            raise CapacityExceededError(request.attendee_count, product.max_capacity.value)

        workshop = self._store.get_or_create_workshop(product, request.start_date, start_hour)
        if request.attendee_count > workshop.available_spots:
            raise CapacityExceededError(request.attendee_count, workshop.available_spots)

        booking = self._store.create_booking(
            workshop,
            attendee_count=request.attendee_count,
            confirmation_number=new_confirmation_number(),
            start_hour=start_hour,
            end_hour=end_hour,
        )
        logger.info(
            "booking_created",
            extra={
                "booking_id": booking.id,
                "workshop_id": workshop.id,
                "attendee_count": booking.attendee_count,
            },
        )
        return booking

    def confirm(self, booking_id: str) -> Booking:
        """PENDING -> CONFIRMED, re-checking capacity atomically.

        Raises:
            BookingNotFoundError: If the booking does not exist.
            CapacityExceededError: If the seats were taken meanwhile.
            InvalidBookingStateError: If the booking was cancelled.
        """
        booking = self._store.confirm_booking(booking_id)
        logger.info("booking_confirmed", extra={"booking_id": booking_id})
        return booking

    def cancel(self, booking_id: str) -> Booking:
        """Cancel a booking, giving seats back if it was confirmed. Idempotent."""
        booking = self._store.cancel_booking(booking_id)
        logger.info("booking_cancelled", extra={"booking_id": booking_id})
        return booking

    def get(self, booking_id: str) -> Booking:
        booking = self._store.get_booking(booking_id)
        if booking is None:
            raise BookingNotFoundError(booking_id)
        return booking
