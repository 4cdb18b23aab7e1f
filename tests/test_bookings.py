"""Unit tests for BookingRegistry.

These test capacity accounting and domain error mapping.
Run with: pytest tests/test_bookings.py -v
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta

import pytest

from registration.domain import BookingStatus
from registration.domain.errors import (
    BookingNotFoundError,
    CapacityExceededError,
    DateUnavailableError,
    InvalidBookingStateError,
    InvalidRequestError,
    ProductNotFoundError,
)

WORKSHOP_DATE = date(2030, 3, 4)  # Monday


def workshop_of(services, booking):
    return services.admin.get_capacity_status(booking.workshop_id)


class TestCreate:
    """Tests for BookingRegistry.create."""

    def test_create_returns_pending_booking(self, services, make_request):
        booking = services.bookings.create(make_request(attendees=2))

        assert booking.status is BookingStatus.PENDING
        assert booking.attendee_count == 2
        assert booking.confirmation_number.startswith("WS-")
        assert workshop_of(services, booking).current_attendees == 0

    def test_unknown_product(self, services, make_request):
        with pytest.raises(ProductNotFoundError):
            services.bookings.create(make_request(product_id="prod-missing"))

    def test_blocked_start_date(self, services, make_request):
        services.availability.block_date(WORKSHOP_DATE, "Holiday")

        with pytest.raises(DateUnavailableError):
            services.bookings.create(make_request())

    def test_blocked_later_day_of_multi_day_workshop(self, services, make_request):
        services.availability.block_date(WORKSHOP_DATE + timedelta(days=2), "Holiday")

        with pytest.raises(DateUnavailableError):
            services.bookings.create(make_request(product_id="prod-3day"))

    def test_more_attendees_than_capacity(self, services, make_request):
        with pytest.raises(CapacityExceededError):
            services.bookings.create(make_request(product_id="prod-5day", attendees=9))

    def test_attendees_beyond_remaining_seats(self, services, make_request):
        first = services.bookings.create(make_request(product_id="prod-5day", attendees=6))
        services.bookings.confirm(first.id)

        with pytest.raises(CapacityExceededError) as excinfo:
            services.bookings.create(make_request(product_id="prod-5day", attendees=3))
        assert excinfo.value.available == 2

    def test_no_attendees(self, services, make_request):
        with pytest.raises(InvalidRequestError):
            services.bookings.create(make_request(attendees=0))

    def test_consulting_requires_start_hour(self, services, make_request):
        with pytest.raises(InvalidRequestError):
            services.bookings.create(make_request(product_id="prod-consulting", attendees=1))

    def test_consulting_outside_business_hours(self, services, make_request):
        with pytest.raises(DateUnavailableError):
            services.bookings.create(
                make_request(product_id="prod-consulting", attendees=1, start_hour=16)
            )

    def test_consulting_on_weekend(self, services, make_request):
        with pytest.raises(DateUnavailableError):
            services.bookings.create(
                make_request(
                    product_id="prod-consulting",
                    attendees=1,
                    start_hour=10,
                    start_date=date(2030, 3, 9),
                )
            )

    def test_consulting_overlapping_confirmed_session(self, services, make_request):
        booked = services.bookings.create(
            make_request(product_id="prod-consulting", attendees=1, start_hour=10)
        )
        services.bookings.confirm(booked.id)

        with pytest.raises(DateUnavailableError):
            services.bookings.create(
                make_request(product_id="prod-consulting", attendees=1, start_hour=11)
            )


class TestConfirmAndCancel:
    """Tests for the confirm / cancel transitions."""

    def test_confirm_takes_seats(self, services, make_request):
        booking = services.bookings.create(make_request(attendees=2))

        confirmed = services.bookings.confirm(booking.id)

        assert confirmed.status is BookingStatus.CONFIRMED
        assert workshop_of(services, booking).current_attendees == 2

    def test_confirm_twice_counts_once(self, services, make_request):
        booking = services.bookings.create(make_request(attendees=2))
        services.bookings.confirm(booking.id)
        services.bookings.confirm(booking.id)

        assert workshop_of(services, booking).current_attendees == 2

    def test_confirm_unknown_booking(self, services):
        with pytest.raises(BookingNotFoundError):
            services.bookings.confirm("no-such-booking")

    def test_confirm_cancelled_booking(self, services, make_request):
        booking = services.bookings.create(make_request())
        services.bookings.cancel(booking.id)

        with pytest.raises(InvalidBookingStateError):
            services.bookings.confirm(booking.id)

    def test_confirm_race_lost(self, services, make_request):
        first = services.bookings.create(make_request(product_id="prod-5day", attendees=5))
        second = services.bookings.create(make_request(product_id="prod-5day", attendees=5))
        services.bookings.confirm(first.id)

        with pytest.raises(CapacityExceededError):
            services.bookings.confirm(second.id)
        assert workshop_of(services, first).current_attendees == 5

    def test_cancel_confirmed_releases_seats(self, services, make_request):
        booking = services.bookings.create(make_request(attendees=3))
        services.bookings.confirm(booking.id)

        cancelled = services.bookings.cancel(booking.id)

        assert cancelled.status is BookingStatus.CANCELLED
        assert workshop_of(services, booking).current_attendees == 0

    def test_cancel_pending_leaves_counter(self, services, make_request):
        confirmed = services.bookings.create(make_request(attendees=2))
        services.bookings.confirm(confirmed.id)
        pending = services.bookings.create(make_request(attendees=3))

        services.bookings.cancel(pending.id)

        assert workshop_of(services, confirmed).current_attendees == 2

    def test_cancel_is_idempotent(self, services, make_request):
        booking = services.bookings.create(make_request(attendees=2))
        services.bookings.confirm(booking.id)
        services.bookings.cancel(booking.id)
        services.bookings.cancel(booking.id)

        assert workshop_of(services, booking).current_attendees == 0
        assert services.bookings.get(booking.id).status is BookingStatus.CANCELLED

    def test_concurrent_confirms_never_oversell(self, services, make_request):
        bookings = [
            services.bookings.create(make_request(product_id="prod-5day", attendees=1))
            for _ in range(8)
        ]
        extra = [
            services.bookings.create(make_request(product_id="prod-5day", attendees=1))
            for _ in range(4)
        ]

        def confirm(booking_id):
            try:
                services.bookings.confirm(booking_id)
                return True
            except CapacityExceededError:
                return False

        with ThreadPoolExecutor(max_workers=12) as pool:
            results = list(pool.map(confirm, [b.id for b in bookings + extra]))

        assert sum(results) == 8
        assert workshop_of(services, bookings[0]).current_attendees == 8
