"""Pytest configuration and shared fixtures."""

import time
from datetime import date, datetime, timezone

import pytest
from rest_framework.test import APIClient

from registration.domain import (
    AttendeeInfo,
    ContactInfo,
    NotificationMessage,
    PaymentMethod,
    PurchaseRequest,
)
from registration.domain.errors import PaymentDeclinedError
from registration.gateways.notifier import Notifier
from registration.gateways.payment import GatewayCharge, GatewayRefund, PaymentGateway
from registration.management.commands.seed_catalog import CATALOG
from registration.services.dependencies import build_services

# Monday; the following Saturday is 2030-03-09.
WORKSHOP_DATE = date(2030, 3, 4)


class RecordingGateway(PaymentGateway):
    """Gateway double that records calls and can be told to misbehave."""

    def __init__(self) -> None:
        self.captures: list[tuple] = []
        self.refunds: list[tuple] = []
        self.decline = False
        self.fail_refunds = False
        self.delay = 0.0
        self.on_capture = None
        self._charges: dict[str, GatewayCharge] = {}

    def capture(self, amount, currency, idempotency_key, source_id):
        if self.on_capture is not None:
            self.on_capture(idempotency_key)
        if self.delay:
            time.sleep(self.delay)
        if self.decline:
            raise PaymentDeclinedError("Card declined")
        self.captures.append((amount, idempotency_key))
        if idempotency_key not in self._charges:
            charge_id = f"ch-{len(self._charges) + 1}"
            self._charges[idempotency_key] = GatewayCharge(
                id=charge_id, status="COMPLETED", receipt_url=f"https://receipts.test/{charge_id}"
            )
        return self._charges[idempotency_key]

    def refund(self, payment_id, amount, idempotency_key, currency="USD"):
        if self.fail_refunds:
            raise PaymentDeclinedError("Refund gateway unavailable")
        self.refunds.append((payment_id, amount, idempotency_key))
        return GatewayRefund(id=f"rf-{len(self.refunds)}", status="COMPLETED")


class RecordingNotifier(Notifier):
    def __init__(self) -> None:
        self.sent: list[NotificationMessage] = []
        self.fail = False

    def send(self, message: NotificationMessage) -> None:
        if self.fail:
            raise ConnectionError("SMTP unavailable")
        self.sent.append(message)

    @property
    def tags(self) -> list[str]:
        return [message.tag for message in self.sent]


class FixedClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()


@pytest.fixture(autouse=True)
def clear_cache():
    from django.core.cache import cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def gateway() -> RecordingGateway:
    return RecordingGateway()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2030, 1, 7, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def services(gateway, notifier):
    """Services over the in-memory stores with the standard catalog loaded."""
    built = build_services(in_memory=True, gateway=gateway, notifier=notifier)
    for product in CATALOG:
        built.admin.upsert_product(product)
    yield built
    built.payments.shutdown()


@pytest.fixture
def make_request():
    def factory(
        product_id: str = "prod-3day",
        attendees: int = 2,
        coupon_code: str | None = None,
        start_date: date = WORKSHOP_DATE,
        start_hour: int | None = None,
        source_id: str = "cnon:card-nonce-ok",
    ) -> PurchaseRequest:
        return PurchaseRequest(
            product_id=product_id,
            start_date=start_date,
            start_hour=start_hour,
            attendees=tuple(
                AttendeeInfo(first_name="Ada", last_name=f"Attendee{i}", email=f"ada{i}@example.com")
                for i in range(attendees)
            ),
            point_of_contact=ContactInfo(
                first_name="Grace", last_name="Hopper", email="grace@example.com"
            ),
            payment_method=PaymentMethod(type="card", source_id=source_id),
            coupon_code=coupon_code,
        )

    return factory
