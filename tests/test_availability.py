"""Unit tests for AvailabilityEngine over the in-memory stores.

Run with: pytest tests/test_availability.py -v
"""

from datetime import date

import pytest

from registration.domain import DateRange
from registration.domain.errors import InvalidRequestError

WORKSHOP_DATE = date(2030, 3, 4)  # Monday


class TestBlockouts:
    """Tests for blocking and unblocking dates."""

    def test_block_then_unblock_new_years_eve(self, services):
        engine = services.availability
        engine.block_date(date(2025, 12, 31), "Holiday")
        assert engine.is_date_available(date(2025, 12, 31)) is False

        engine.unblock_date(date(2025, 12, 31))
        assert engine.is_date_available(date(2025, 12, 31)) is True

    def test_range_boundaries_are_inclusive(self, services):
        engine = services.availability
        engine.block_range(date(2025, 7, 1), date(2025, 7, 4), "Vacation")

        for day in DateRange(date(2025, 7, 1), date(2025, 7, 4)).days():
            assert engine.is_date_available(day) is False
        assert engine.is_date_available(date(2025, 6, 30)) is True
        assert engine.is_date_available(date(2025, 7, 5)) is True

    def test_block_range_rejects_inverted_range(self, services):
        with pytest.raises(InvalidRequestError):
            services.availability.block_range(date(2025, 7, 4), date(2025, 7, 1), "Oops")

    def test_overlapping_blockouts_are_both_kept(self, services):
        engine = services.availability
        engine.block_range(date(2025, 8, 1), date(2025, 8, 5), "Conference")
        engine.block_range(date(2025, 8, 4), date(2025, 8, 8), "Travel")

        assert len(engine.list_blockouts()) == 2
        assert engine.is_date_available(date(2025, 8, 8)) is False

    def test_unblock_removes_every_covering_row(self, services):
        engine = services.availability
        engine.block_range(date(2025, 8, 1), date(2025, 8, 5), "Conference")
        engine.block_range(date(2025, 8, 4), date(2025, 8, 8), "Travel")

        assert engine.unblock_date(date(2025, 8, 4)) == 2
        assert engine.is_date_available(date(2025, 8, 4)) is True

    def test_blocked_dates_are_sorted_unique_and_clipped(self, services):
        engine = services.availability
        engine.block_range(date(2025, 8, 1), date(2025, 8, 3), "A")
        engine.block_range(date(2025, 8, 2), date(2025, 8, 6), "B")

        blocked = engine.get_blocked_dates(DateRange(date(2025, 8, 2), date(2025, 8, 4)))

        assert blocked == [date(2025, 8, 2), date(2025, 8, 3), date(2025, 8, 4)]


class TestHourlySlots:
    """Tests for consulting slot resolution."""

    def test_weekday_slots_cover_business_hours(self, services):
        slots = services.availability.get_hourly_slots(WORKSHOP_DATE)

        assert [slot.start.hour for slot in slots] == list(range(9, 17))
        assert all(slot.available for slot in slots)

    def test_weekend_has_no_available_slots(self, services):
        saturday = date(2030, 3, 9)
        slots = services.availability.get_hourly_slots(saturday)

        assert slots
        assert not any(slot.available for slot in slots)

    def test_blocked_date_has_no_available_slots(self, services):
        services.availability.block_date(WORKSHOP_DATE, "Closed")

        assert not any(slot.available for slot in services.availability.get_hourly_slots(WORKSHOP_DATE))

    def test_confirmed_consulting_booking_takes_its_hours(self, services, make_request):
        booking = services.bookings.create(make_request("prod-consulting", attendees=1, start_hour=10))
        services.bookings.confirm(booking.id)

        slots = {slot.start.hour: slot.available for slot in services.availability.get_hourly_slots(WORKSHOP_DATE)}

        assert slots[10] is False and slots[11] is False
        assert slots[9] is True and slots[12] is True

    def test_pending_booking_does_not_take_hours(self, services, make_request):
        services.bookings.create(make_request("prod-consulting", attendees=1, start_hour=10))

        slots = {slot.start.hour: slot.available for slot in services.availability.get_hourly_slots(WORKSHOP_DATE)}

        assert slots[10] is True

    def test_custom_hours_are_validated(self, services):
        with pytest.raises(InvalidRequestError):
            services.availability.get_hourly_slots(WORKSHOP_DATE, open_hour=17, close_hour=9)
