"""Payment gateway collaborator contract and adapters.

Adapters translate transport failures into domain errors:
GatewayTimeoutError when the gateway does not answer in time,
PaymentDeclinedError for refusals, unreadable responses and any other
failure (fail closed).
"""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx

from registration.domain import Money
from registration.domain.errors import GatewayTimeoutError, PaymentDeclinedError

logger = logging.getLogger(__name__)

SQUARE_VERSION = "2024-12-18"


@dataclass(frozen=True)
class GatewayCharge:
    id: str
    status: str
    receipt_url: str | None = None


@dataclass(frozen=True)
class GatewayRefund:
    id: str
    status: str


class PaymentGateway(ABC):
    """Interface the PaymentCoordinator captures and refunds through."""

    @abstractmethod
    def capture(
        self, amount: Money, currency: str, idempotency_key: str, source_id: str
    ) -> GatewayCharge:
        """Charge ``amount``; repeated calls with one key charge at most once."""
        ...

    @abstractmethod
    def refund(
        self, payment_id: str, amount: Money, idempotency_key: str, currency: str = "USD"
    ) -> GatewayRefund:
        """Return ``amount`` of a captured payment."""
        ...


def _to_cents(amount: Money) -> int:
    return int(amount.amount * 100)


class HttpPaymentGateway(PaymentGateway):
    """Talks to a Square-style Payments v2 REST API."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout_seconds: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout_seconds,
            transport=transport,
            headers={
                "Square-Version": SQUARE_VERSION,
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
        )

    def capture(
        self, amount: Money, currency: str, idempotency_key: str, source_id: str
    ) -> GatewayCharge:
        data = self._post(
            "/payments",
            {
                "idempotency_key": idempotency_key,
                "source_id": source_id,
                "autocomplete": True,
                "amount_money": {"amount": _to_cents(amount), "currency": currency},
            },
        )
        payment = data.get("payment") or {}
        return GatewayCharge(
            id=payment.get("id", ""),
            status=payment.get("status", "FAILED"),
            receipt_url=payment.get("receipt_url"),
        )

    def refund(
        self, payment_id: str, amount: Money, idempotency_key: str, currency: str = "USD"
    ) -> GatewayRefund:
        data = self._post(
            "/refunds",
            {
                "idempotency_key": idempotency_key,
                "payment_id": payment_id,
                "amount_money": {"amount": _to_cents(amount), "currency": currency},
            },
        )
        refund = data.get("refund") or {}
        return GatewayRefund(id=refund.get("id", ""), status=refund.get("status", "FAILED"))

    def close(self) -> None:
        self._client.close()

    def _post(self, path: str, payload: dict) -> dict:
        try:
            response = self._client.post(path, json=payload)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            logger.warning("payment_gateway_timeout", extra={"path": path, "error": str(exc)})
            raise GatewayTimeoutError() from exc
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "payment_gateway_rejected",
                extra={"path": path, "status_code": exc.response.status_code},
            )
            raise PaymentDeclinedError(_error_detail(exc.response)) from exc
        except httpx.HTTPError as exc:
            logger.error("payment_gateway_unreachable", extra={"path": path, "error": str(exc)})
            raise PaymentDeclinedError("Payment gateway unavailable") from exc
        try:
            data = response.json()
        except ValueError as exc:
            logger.error(
                "payment_gateway_unreadable",
                extra={"path": path, "status_code": response.status_code},
            )
            raise PaymentDeclinedError("Unreadable payment gateway response") from exc
        if not isinstance(data, dict):
            raise PaymentDeclinedError("Unreadable payment gateway response")
        return data


def _error_detail(response: httpx.Response) -> str:
    try:
        errors = response.json().get("errors") or []
    except ValueError:
        errors = []
    if errors and errors[0].get("detail"):
        return errors[0]["detail"]
    return "Payment was declined"


class SimulatedPaymentGateway(PaymentGateway):
    """Sandbox gateway for local runs: approves everything except the test decline sources.

    Honors idempotency keys the way the real gateway does.
    """

    DECLINE_SOURCES = frozenset({"cnon:card-nonce-declined", "card-declined"})

    def __init__(self, receipt_base_url: str = "https://receipts.example.test") -> None:
        self._receipt_base_url = receipt_base_url.rstrip("/")
        self._charges: dict[str, GatewayCharge] = {}
        self._refunds: dict[str, GatewayRefund] = {}

    def capture(
        self, amount: Money, currency: str, idempotency_key: str, source_id: str
    ) -> GatewayCharge:
        if idempotency_key in self._charges:
            return self._charges[idempotency_key]
        if source_id in self.DECLINE_SOURCES:
            raise PaymentDeclinedError("Card declined")
        charge_id = f"sq_{uuid.uuid4().hex[:16]}"
        charge = GatewayCharge(
            id=charge_id,
            status="COMPLETED",
            receipt_url=f"{self._receipt_base_url}/{charge_id}",
        )
        self._charges[idempotency_key] = charge
        return charge

    def refund(
        self, payment_id: str, amount: Money, idempotency_key: str, currency: str = "USD"
    ) -> GatewayRefund:
        if idempotency_key not in self._refunds:
            self._refunds[idempotency_key] = GatewayRefund(
                id=f"rf_{uuid.uuid4().hex[:16]}", status="COMPLETED"
            )
        return self._refunds[idempotency_key]
