"""Unit tests for NotificationScheduler.

Run with: pytest tests/test_notifications.py -v
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from registration.domain import (
    Booking,
    BookingStatus,
    Capacity,
    ContactInfo,
    Money,
    NotificationTrack,
    Product,
    ProductType,
    Purchase,
    PurchaseState,
)
from registration.services.notification_service import NotificationScheduler
from registration.stores.memory_store import InMemoryNotificationStore

WORKSHOP = Product(
    id="prod-3day",
    name="3-Day Workshop",
    product_type=ProductType.THREE_DAY,
    price=Money(Decimal("3000")),
    duration=3,
    max_capacity=Capacity(12),
)
CONSULTING = Product(
    id="prod-consulting",
    name="Consulting",
    product_type=ProductType.HOURLY_CONSULTING,
    price=Money(Decimal("400")),
    duration=2,
    max_capacity=Capacity(1),
)


def purchase_for(product: Product, start: date, start_hour: int | None = None):
    now = datetime(2030, 1, 7, 12, 0, tzinfo=timezone.utc)
    purchase = Purchase(
        id=f"purchase-{product.id}",
        status=PurchaseState.COMPLETED,
        product_id=product.id,
        contact=ContactInfo(first_name="Grace", last_name="Hopper", email="grace@example.com"),
        attendee_count=1,
        start_date=start,
        start_hour=start_hour,
        created_at=now,
        updated_at=now,
    )
    booking = Booking(
        id=f"booking-{product.id}",
        workshop_id="workshop-1",
        product_id=product.id,
        start_date=start,
        attendee_count=1,
        status=BookingStatus.CONFIRMED,
        confirmation_number="WS-ABCDEF12",
        created_at=now,
        updated_at=now,
        start_hour=start_hour,
        end_hour=start_hour + product.duration if start_hour is not None else None,
    )
    return purchase, booking


@pytest.fixture
def store() -> InMemoryNotificationStore:
    return InMemoryNotificationStore()


@pytest.fixture
def scheduler(store, notifier, clock) -> NotificationScheduler:
    return NotificationScheduler(store, notifier, clock=clock)


class TestWorkshopTrack:
    """Tests for the four-step workshop timeline."""

    def test_welcome_sent_immediately(self, scheduler, notifier):
        purchase, booking = purchase_for(WORKSHOP, date(2030, 3, 4))

        schedule = scheduler.schedule_follow_up_emails(purchase, booking, WORKSHOP)

        assert schedule.track is NotificationTrack.WORKSHOP
        assert notifier.tags == ["welcome"]
        assert notifier.sent[0].to == "grace@example.com"
        assert schedule.next_email_due == datetime(2030, 1, 8, 12, 0, tzinfo=timezone.utc)

    def test_full_timeline_in_order(self, scheduler, notifier, clock):
        purchase, booking = purchase_for(WORKSHOP, date(2030, 3, 4))
        scheduler.schedule_follow_up_emails(purchase, booking, WORKSHOP)

        clock.now = datetime(2030, 1, 8, 12, 0, tzinfo=timezone.utc)
        assert scheduler.process_due_emails() == 1
        clock.now = datetime(2030, 3, 2, 9, 0, tzinfo=timezone.utc)
        assert scheduler.process_due_emails() == 1
        clock.now = datetime(2030, 3, 7, 9, 0, tzinfo=timezone.utc)
        assert scheduler.process_due_emails() == 1

        assert notifier.tags == ["welcome", "preparation", "final_reminder", "post_event"]
        assert scheduler.get_schedule(purchase.id).next_email_due is None

    def test_not_due_yet(self, scheduler, notifier, clock):
        purchase, booking = purchase_for(WORKSHOP, date(2030, 3, 4))
        scheduler.schedule_follow_up_emails(purchase, booking, WORKSHOP)

        clock.now += timedelta(hours=23)

        assert scheduler.process_due_emails() == 0
        assert notifier.tags == ["welcome"]

    def test_one_tag_per_sweep_when_behind(self, scheduler, notifier, clock):
        purchase, booking = purchase_for(WORKSHOP, date(2030, 3, 4))
        scheduler.schedule_follow_up_emails(purchase, booking, WORKSHOP)

        clock.now = datetime(2030, 4, 1, tzinfo=timezone.utc)
        scheduler.process_due_emails()

        assert notifier.tags == ["welcome", "preparation"]

    def test_due_times_never_move_backwards(self, scheduler, clock):
        # Purchased one day before the event: the final reminder is already overdue.
        purchase, booking = purchase_for(WORKSHOP, date(2030, 1, 8))
        scheduler.schedule_follow_up_emails(purchase, booking, WORKSHOP)
        preparation_due = scheduler.get_schedule(purchase.id).next_email_due

        clock.now = preparation_due
        scheduler.process_due_emails()

        assert scheduler.get_schedule(purchase.id).next_email_due >= preparation_due

    def test_scheduling_twice_keeps_first_schedule(self, scheduler, notifier):
        purchase, booking = purchase_for(WORKSHOP, date(2030, 3, 4))
        scheduler.schedule_follow_up_emails(purchase, booking, WORKSHOP)
        scheduler.schedule_follow_up_emails(purchase, booking, WORKSHOP)

        assert notifier.tags == ["welcome"]


class TestConsultingTrack:
    def test_reminders_before_session(self, scheduler, notifier, clock):
        purchase, booking = purchase_for(CONSULTING, date(2030, 3, 4), start_hour=14)
        schedule = scheduler.schedule_follow_up_emails(purchase, booking, CONSULTING)
        assert schedule.track is NotificationTrack.CONSULTING

        clock.now = datetime(2030, 3, 3, 14, 0, tzinfo=timezone.utc)
        scheduler.process_due_emails()
        clock.now = datetime(2030, 3, 4, 13, 0, tzinfo=timezone.utc)
        scheduler.process_due_emails()

        assert notifier.tags == ["confirmation", "24h_before", "1h_before"]


class TestDelivery:
    """Tests for failure handling and cancellation."""

    def test_failed_send_is_retried_next_sweep(self, scheduler, notifier, clock):
        purchase, booking = purchase_for(WORKSHOP, date(2030, 3, 4))
        scheduler.schedule_follow_up_emails(purchase, booking, WORKSHOP)
        clock.now += timedelta(days=1)

        notifier.fail = True
        assert scheduler.process_due_emails() == 0
        assert "preparation" not in scheduler.get_schedule(purchase.id).sent_tags

        notifier.fail = False
        assert scheduler.process_due_emails() == 1
        assert notifier.tags == ["welcome", "preparation"]

    def test_cancelled_schedule_sends_nothing(self, scheduler, notifier, clock):
        purchase, booking = purchase_for(WORKSHOP, date(2030, 3, 4))
        scheduler.schedule_follow_up_emails(purchase, booking, WORKSHOP)

        assert scheduler.cancel_schedule(purchase.id) is True
        clock.now += timedelta(days=30)

        assert scheduler.process_due_emails() == 0
        assert notifier.tags == ["welcome"]

    def test_tag_claimed_once_across_sweeps(self, store, scheduler, notifier, clock):
        purchase, booking = purchase_for(WORKSHOP, date(2030, 3, 4))
        scheduler.schedule_follow_up_emails(purchase, booking, WORKSHOP)
        clock.now += timedelta(days=1)
        other = NotificationScheduler(store, notifier, clock=clock)

        scheduler.process_due_emails()
        other.process_due_emails()

        assert notifier.tags.count("preparation") == 1

    def test_overlapping_sweep_is_skipped(self, scheduler):
        scheduler._sweep_lock.acquire()
        try:
            assert scheduler.process_due_emails() == 0
        finally:
            scheduler._sweep_lock.release()
