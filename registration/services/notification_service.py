"""Follow-up email timelines per purchase."""

import logging
import threading
from dataclasses import replace
from datetime import datetime, time, timedelta, timezone
from typing import Callable

from registration.domain import (
    Booking,
    NotificationMessage,
    NotificationSchedule,
    NotificationTrack,
    Product,
    Purchase,
)
from registration.gateways.notifier import Notifier
from registration.stores.interfaces import NotificationStore

logger = logging.getLogger(__name__)

WORKSHOP_TAGS = ("welcome", "preparation", "final_reminder", "post_event")
CONSULTING_TAGS = ("confirmation", "24h_before", "1h_before")

TRACK_TAGS = {
    NotificationTrack.WORKSHOP: WORKSHOP_TAGS,
    NotificationTrack.CONSULTING: CONSULTING_TAGS,
}

SUBJECTS = {
    "welcome": "Welcome! Your workshop seat is confirmed",
    "preparation": "Getting ready for your workshop",
    "final_reminder": "Your workshop starts in two days",
    "post_event": "Thank you for attending",
    "confirmation": "Your consulting session is confirmed",
    "24h_before": "Your consulting session is tomorrow",
    "1h_before": "Your consulting session starts in one hour",
}

DEFAULT_START_HOUR = 9
WORKSHOP_END_HOUR = 17
POST_EVENT_HOUR = 9


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def due_at(schedule: NotificationSchedule, tag: str) -> datetime:
    """Nominal send time of ``tag``, before the monotonic adjustment."""
    offsets = {
        "welcome": schedule.purchased_at,
        "preparation": schedule.purchased_at + timedelta(hours=24),
        "final_reminder": schedule.event_start - timedelta(hours=48),
        "post_event": datetime.combine(
            schedule.event_end.date() + timedelta(days=1), time(POST_EVENT_HOUR), tzinfo=timezone.utc
        ),
        "confirmation": schedule.purchased_at,
        "24h_before": schedule.event_start - timedelta(hours=24),
        "1h_before": schedule.event_start - timedelta(hours=1),
    }
    return offsets[tag]


def event_window(booking: Booking, product: Product) -> tuple[datetime, datetime]:
    start = datetime.combine(
        booking.start_date,
        time(booking.start_hour if booking.start_hour is not None else DEFAULT_START_HOUR),
        tzinfo=timezone.utc,
    )
    if product.product_type.is_hourly:
        return start, start + timedelta(hours=product.duration)
    last_day = product.covered_dates(booking.start_date).end
    return start, datetime.combine(last_day, time(WORKSHOP_END_HOUR), tzinfo=timezone.utc)


class NotificationScheduler:
    """Sends each purchase's follow-up emails in order, each tag at most once.

    A tag is claimed in the store before it is sent and released if the send
    fails, so concurrent sweeps can never send the same tag twice.
    """

    def __init__(
        self,
        store: NotificationStore,
        notifier: Notifier,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._clock = clock
        self._sweep_lock = threading.Lock()

    def schedule_follow_up_emails(
        self, purchase: Purchase, booking: Booking, product: Product
    ) -> NotificationSchedule:
        """Create the timeline for a completed purchase and send its first message now."""
        existing = self._store.get_schedule(purchase.id)
        if existing is not None:
            return existing

        event_start, event_end = event_window(booking, product)
        track = (
            NotificationTrack.CONSULTING
            if product.product_type.is_hourly
            else NotificationTrack.WORKSHOP
        )
        now = self._clock()
        schedule = self._store.save_schedule(
            NotificationSchedule(
                purchase_id=purchase.id,
                track=track,
                recipient_email=purchase.contact.email,
                recipient_name=purchase.contact.full_name,
                booking_id=booking.id,
                purchased_at=now,
                event_start=event_start,
                event_end=event_end,
                next_email_due=now,
            )
        )
        logger.info(
            "notification_schedule_created",
            extra={"purchase_id": purchase.id, "track": track.value},
        )
        self._send_next(schedule, now)
        return self._store.get_schedule(purchase.id) or schedule

    def process_due_emails(self, now: datetime | None = None) -> int:
        """Send at most one due message per schedule; return how many were sent.

        Returns 0 without doing anything while another sweep is running.
        """
        if not self._sweep_lock.acquire(blocking=False):
            logger.info("notification_sweep_skipped")
            return 0
        try:
            now = now or self._clock()
            sent = 0
            for schedule in self._store.list_due(now):
                if self._send_next(schedule, now):
                    sent += 1
            logger.info("notification_sweep_finished", extra={"sent": sent})
            return sent
        finally:
            self._sweep_lock.release()

    def cancel_schedule(self, purchase_id: str) -> bool:
        schedule = self._store.get_schedule(purchase_id)
        if schedule is None or schedule.cancelled:
            return False
        self._store.save_schedule(replace(schedule, cancelled=True, next_email_due=None))
        logger.info("notification_schedule_cancelled", extra={"purchase_id": purchase_id})
        return True

    def get_schedule(self, purchase_id: str) -> NotificationSchedule | None:
        return self._store.get_schedule(purchase_id)

    def _send_next(self, schedule: NotificationSchedule, now: datetime) -> bool:
        pending = [tag for tag in TRACK_TAGS[schedule.track] if tag not in schedule.sent_tags]
        if schedule.cancelled or not pending:
            return False
        tag = pending[0]
        if due_at(schedule, tag) > now:
            return False

        previous_due = schedule.next_email_due
        next_due = None
        if len(pending) > 1:
            next_due = due_at(schedule, pending[1])
            if previous_due is not None:
                next_due = max(next_due, previous_due)

        if not self._store.claim_tag(schedule.purchase_id, tag, next_due):
            return False
        try:
            self._notifier.send(self._message(schedule, tag))
        except Exception:
            logger.exception(
                "notification_send_failed",
                extra={"purchase_id": schedule.purchase_id, "tag": tag},
            )
            self._store.release_tag(schedule.purchase_id, tag, previous_due)
            return False
        return True

    def _message(self, schedule: NotificationSchedule, tag: str) -> NotificationMessage:
        starts = schedule.event_start.strftime("%A, %B %d %Y at %H:%M UTC")
        body = (
            f"Hi {schedule.recipient_name},\n\n"
            f"{SUBJECTS[tag]}.\n"
            f"Session start: {starts}\n"
            f"Booking reference: {schedule.booking_id}\n"
        )
        return NotificationMessage(
            to=schedule.recipient_email,
            subject=SUBJECTS[tag],
            body=body,
            tag=tag,
            purchase_id=schedule.purchase_id,
        )
