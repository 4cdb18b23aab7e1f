"""Calendar availability: admin blockouts, confirmed bookings and business hours."""

import logging
from datetime import date, datetime, time, timedelta, timezone

from registration.domain import CalendarBlockout, DateRange, ProductType, Slot
from registration.domain.errors import InvalidRequestError
from registration.stores.interfaces import BookingStore, CalendarStore

logger = logging.getLogger(__name__)

SATURDAY = 5


class AvailabilityEngine:
    """Resolves whether a date or hour slot can be booked.

    Blockout reads take no locks. A blockout written while a booking for the
    same date is being created may not be seen by that booking.
    """

    def __init__(
        self,
        calendar_store: CalendarStore,
        booking_store: BookingStore,
        open_hour: int = 9,
        close_hour: int = 17,
    ) -> None:
        self._calendar = calendar_store
        self._bookings = booking_store
        self._open_hour = open_hour
        self._close_hour = close_hour

    def is_date_available(self, day: date, product_type: ProductType | None = None) -> bool:
        """Return False if any blockout range covers ``day`` (inclusive)."""
        return not self._calendar.list_blockouts(overlapping=DateRange.single(day))

    def is_range_available(self, date_range: DateRange) -> bool:
        return not self._calendar.list_blockouts(overlapping=date_range)

    def block_date(self, day: date, reason: str, created_by: str = "admin") -> CalendarBlockout:
        return self.block_range(day, day, reason, created_by=created_by)

    def block_range(
        self, start: date, end: date, reason: str, created_by: str = "admin"
    ) -> CalendarBlockout:
        """Add a blockout. Overlapping blockouts are kept side by side.

        Raises:
            InvalidRequestError: If ``start`` is after ``end``.
        """
        if start > end:
            raise InvalidRequestError("Start date must not be after end date")
        blockout = self._calendar.add_blockout(DateRange(start, end), reason, created_by)
        logger.info(
            "calendar_blocked",
            extra={"start": start.isoformat(), "end": end.isoformat(), "created_by": created_by},
        )
        return blockout

    def unblock_date(self, day: date) -> int:
        """Remove every blockout covering ``day``; return how many were removed."""
        removed = self._calendar.remove_blockouts_covering(day)
        logger.info("calendar_unblocked", extra={"date": day.isoformat(), "removed": removed})
        return removed

    def list_blockouts(self, date_range: DateRange | None = None) -> list[CalendarBlockout]:
        return self._calendar.list_blockouts(overlapping=date_range)

    def get_blocked_dates(self, date_range: DateRange) -> list[date]:
        blocked: set[date] = set()
        for blockout in self._calendar.list_blockouts(overlapping=date_range):
            blocked.update(d for d in blockout.date_range.days() if date_range.contains(d))
        return sorted(blocked)

    def get_hourly_slots(
        self, day: date, open_hour: int | None = None, close_hour: int | None = None
    ) -> list[Slot]:
        """Return one-hour slots between ``open_hour`` and ``close_hour``.

        Every slot is unavailable on blocked dates and weekends. Otherwise a
        slot is unavailable when a confirmed hourly booking covers it.
        """
        open_hour = self._open_hour if open_hour is None else open_hour
        close_hour = self._close_hour if close_hour is None else close_hour
        if not 0 <= open_hour < close_hour <= 24:
            raise InvalidRequestError("Business hours must satisfy 0 <= open < close <= 24")

        day_closed = day.weekday() >= SATURDAY or not self.is_date_available(day)
        taken: set[int] = set()
        if not day_closed:
            for booking in self._bookings.list_confirmed_bookings_on(day):
                taken.update(h for h in range(open_hour, close_hour) if booking.occupies_hour(h))

        midnight = datetime.combine(day, time(0), tzinfo=timezone.utc)
        return [
            Slot(
                start=midnight + timedelta(hours=hour),
                end=midnight + timedelta(hours=hour + 1),
                available=not day_closed and hour not in taken,
            )
            for hour in range(open_hour, close_hour)
        ]
