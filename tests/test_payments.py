"""Unit tests for PaymentCoordinator and the payment gateway adapters.

Run with: pytest tests/test_payments.py -v
"""

import json
import time
from decimal import Decimal

import httpx
import pytest

from registration.conf import RegistrationSettings
from registration.domain import Money, PaymentRequest, PaymentStatus, RefundStatus
from registration.domain.errors import (
    GatewayTimeoutError,
    InvalidRequestError,
    PaymentDeclinedError,
    PaymentNotFoundError,
)
from registration.gateways.payment import HttpPaymentGateway, SimulatedPaymentGateway
from registration.services.dependencies import build_payment_gateway
from registration.services.payment_service import PaymentCoordinator
from registration.stores.memory_store import InMemoryPaymentStore


def payment_request(key: str = "purchase-1", amount: str = "4800") -> PaymentRequest:
    return PaymentRequest(
        amount=Money(Decimal(amount)),
        currency="USD",
        booking_id="booking-1",
        idempotency_key=key,
        source_id="cnon:card-nonce-ok",
    )


@pytest.fixture
def coordinator(gateway):
    coordinator = PaymentCoordinator(InMemoryPaymentStore(), gateway, timeout_seconds=0.2)
    yield coordinator
    coordinator.shutdown()


class TestProcessPayment:
    """Tests for capture."""

    def test_capture_records_completed_transaction(self, coordinator, gateway):
        result = coordinator.process_payment(payment_request())

        assert result.succeeded
        assert result.receipt_url
        transaction = coordinator.get_payment_status(result.payment_id)
        assert transaction.status is PaymentStatus.COMPLETED
        assert transaction.amount == Money(Decimal("4800"))
        assert gateway.captures == [(Money(Decimal("4800")), "purchase-1")]

    def test_zero_amount_rejected_before_gateway(self, coordinator, gateway):
        with pytest.raises(InvalidRequestError):
            coordinator.process_payment(payment_request(amount="0"))
        assert gateway.captures == []

    def test_unsupported_currency_rejected(self, coordinator, gateway):
        request = payment_request()
        request = PaymentRequest(
            amount=request.amount,
            currency="EUR",
            booking_id=request.booking_id,
            idempotency_key=request.idempotency_key,
        )

        with pytest.raises(InvalidRequestError):
            coordinator.process_payment(request)
        assert gateway.captures == []

    def test_same_key_does_not_call_gateway_twice(self, coordinator, gateway):
        first = coordinator.process_payment(payment_request())
        second = coordinator.process_payment(payment_request())

        assert first.payment_id == second.payment_id
        assert len(gateway.captures) == 1

    def test_decline_is_failed_result(self, coordinator, gateway):
        gateway.decline = True

        result = coordinator.process_payment(payment_request())

        assert not result.succeeded
        assert result.status is PaymentStatus.FAILED
        assert result.error_message == "Card declined"

    def test_timeout_leaves_outcome_unknown(self, coordinator, gateway):
        gateway.delay = 1.0

        result = coordinator.process_payment(payment_request())

        assert result.status is PaymentStatus.UNKNOWN
        assert result.error_message == "Payment gateway timed out"
        assert coordinator.get_payment_status(result.payment_id).status is PaymentStatus.UNKNOWN

    def test_unexpected_gateway_exception_is_failed_result(self, coordinator, gateway):
        def explode(idempotency_key):
            raise RuntimeError("malformed gateway payload")

        gateway.on_capture = explode

        result = coordinator.process_payment(payment_request())

        assert result.status is PaymentStatus.FAILED
        assert result.error_message == "Payment gateway error"
        assert coordinator.get_payment_status(result.payment_id).status is PaymentStatus.FAILED

    def test_retry_after_failure_reuses_transaction(self, coordinator, gateway):
        gateway.decline = True
        failed = coordinator.process_payment(payment_request())
        gateway.decline = False

        retried = coordinator.process_payment(payment_request())

        assert retried.succeeded
        assert retried.payment_id == failed.payment_id


class TestResolvePayment:
    """Tests for settling payments whose capture timed out."""

    def test_late_charge_is_replayed_under_same_key(self, coordinator, gateway):
        gateway.delay = 0.4
        unknown = coordinator.process_payment(payment_request())
        time.sleep(0.5)
        gateway.delay = 0

        resolved = coordinator.resolve_payment(unknown.payment_id)

        assert resolved.succeeded
        assert resolved.payment_id == unknown.payment_id
        assert resolved.transaction_id == "ch-1"
        assert {key for _, key in gateway.captures} == {"purchase-1"}
        transaction = coordinator.get_payment_status(unknown.payment_id)
        assert transaction.status is PaymentStatus.COMPLETED
        assert transaction.error_message is None

    def test_still_unreachable_stays_unknown(self, coordinator, gateway):
        gateway.delay = 1.0
        unknown = coordinator.process_payment(payment_request())

        assert coordinator.resolve_payment(unknown.payment_id).status is PaymentStatus.UNKNOWN

    def test_settled_payment_is_returned_as_recorded(self, coordinator, gateway):
        gateway.decline = True
        failed = coordinator.process_payment(payment_request())
        gateway.decline = False

        assert coordinator.resolve_payment(failed.payment_id).status is PaymentStatus.FAILED
        assert gateway.captures == []

    def test_unknown_payment(self, coordinator):
        with pytest.raises(PaymentNotFoundError):
            coordinator.resolve_payment("pay_missing")


class TestProcessRefund:
    """Tests for refunds."""

    def test_full_refund_by_default(self, coordinator, gateway):
        payment = coordinator.process_payment(payment_request())

        refund = coordinator.process_refund(payment.payment_id)

        assert refund.status is RefundStatus.COMPLETED
        assert refund.amount == Money(Decimal("4800"))
        transaction = coordinator.get_payment_status(payment.payment_id)
        assert transaction.status is PaymentStatus.REFUNDED
        assert transaction.refunded_amount == Money(Decimal("4800"))

    def test_second_refund_does_not_call_gateway(self, coordinator, gateway):
        payment = coordinator.process_payment(payment_request())
        coordinator.process_refund(payment.payment_id)
        again = coordinator.process_refund(payment.payment_id)

        assert again.succeeded
        assert len(gateway.refunds) == 1

    def test_refund_failure_is_reported(self, coordinator, gateway):
        payment = coordinator.process_payment(payment_request())
        gateway.fail_refunds = True

        refund = coordinator.process_refund(payment.payment_id)

        assert refund.status is RefundStatus.FAILED
        assert coordinator.get_payment_status(payment.payment_id).status is PaymentStatus.COMPLETED

    def test_refund_more_than_captured(self, coordinator):
        payment = coordinator.process_payment(payment_request(amount="100"))

        with pytest.raises(InvalidRequestError):
            coordinator.process_refund(payment.payment_id, Money(Decimal("100.01")))

    def test_unknown_payment(self, coordinator):
        with pytest.raises(PaymentNotFoundError):
            coordinator.process_refund("pay_missing")


class TestHttpPaymentGateway:
    """Tests for the httpx adapter against a mock transport."""

    def test_capture_posts_cents_and_idempotency_key(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={"payment": {"id": "sq-1", "status": "COMPLETED", "receipt_url": "https://r/1"}},
            )

        gateway = HttpPaymentGateway(
            "https://gateway.test/v2", "secret", transport=httpx.MockTransport(handler)
        )
        charge = gateway.capture(Money(Decimal("4800")), "USD", "purchase-1", "cnon:ok")

        assert charge.id == "sq-1"
        assert charge.receipt_url == "https://r/1"
        assert seen["path"] == "/v2/payments"
        assert seen["auth"] == "Bearer secret"
        assert seen["body"]["amount_money"] == {"amount": 480000, "currency": "USD"}
        assert seen["body"]["idempotency_key"] == "purchase-1"

    def test_rejection_maps_to_declined(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(402, json={"errors": [{"detail": "Insufficient funds"}]})

        gateway = HttpPaymentGateway("https://gateway.test", "k", transport=httpx.MockTransport(handler))

        with pytest.raises(PaymentDeclinedError) as excinfo:
            gateway.capture(Money(Decimal("10")), "USD", "k-1", "cnon:ok")
        assert excinfo.value.message == "Insufficient funds"

    def test_timeout_maps_to_gateway_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        gateway = HttpPaymentGateway("https://gateway.test", "k", transport=httpx.MockTransport(handler))

        with pytest.raises(GatewayTimeoutError):
            gateway.capture(Money(Decimal("10")), "USD", "k-1", "cnon:ok")

    def test_connection_error_fails_closed(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        gateway = HttpPaymentGateway("https://gateway.test", "k", transport=httpx.MockTransport(handler))

        with pytest.raises(PaymentDeclinedError):
            gateway.refund("sq-1", Money(Decimal("10")), "refund-1")

    def test_unreadable_success_response_fails_closed(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>upstream proxy error</html>")

        gateway = HttpPaymentGateway("https://gateway.test", "k", transport=httpx.MockTransport(handler))

        with pytest.raises(PaymentDeclinedError) as excinfo:
            gateway.capture(Money(Decimal("10")), "USD", "k-1", "cnon:ok")
        assert excinfo.value.message == "Unreadable payment gateway response"

    def test_client_timeout_follows_settings(self):
        gateway = build_payment_gateway(
            RegistrationSettings(
                payment_gateway_url="https://gateway.test", payment_timeout_seconds=3.0
            )
        )

        assert isinstance(gateway, HttpPaymentGateway)
        assert gateway._client.timeout == httpx.Timeout(3.0)
        gateway.close()


class TestSimulatedPaymentGateway:
    def test_declines_test_source(self):
        with pytest.raises(PaymentDeclinedError):
            SimulatedPaymentGateway().capture(Money(Decimal("10")), "USD", "k", "card-declined")

    def test_same_key_returns_same_charge(self):
        gateway = SimulatedPaymentGateway()
        first = gateway.capture(Money(Decimal("10")), "USD", "k", "cnon:ok")
        second = gateway.capture(Money(Decimal("10")), "USD", "k", "cnon:ok")

        assert first == second
