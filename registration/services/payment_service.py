"""Payment capture and refunds through the PaymentGateway collaborator.

Gateway calls run on a small dedicated executor so a slow gateway is cut off
after ``timeout_seconds``. A timed-out capture may still have charged, so it is
recorded as UNKNOWN until ``resolve_payment`` asks the gateway again under the
same idempotency key; the gateway never charges twice for one key.
"""

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, TypeVar

from registration.domain import (
    Money,
    PaymentRequest,
    PaymentResult,
    PaymentStatus,
    PaymentTransaction,
    RefundResult,
    RefundStatus,
)
from registration.domain.errors import (
    GatewayTimeoutError,
    InvalidRequestError,
    PaymentError,
    PaymentNotFoundError,
)
from registration.gateways.payment import PaymentGateway
from registration.stores.interfaces import PaymentStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

CAPTURED_STATUSES = frozenset({"COMPLETED", "APPROVED"})
REFUNDED_STATUSES = frozenset({"COMPLETED", "PENDING"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def refund_key(payment_id: str) -> str:
    return f"refund-{payment_id}"


class PaymentCoordinator:
    """Records every capture attempt and guards the gateway with idempotency."""

    def __init__(
        self,
        store: PaymentStore,
        gateway: PaymentGateway,
        supported_currencies: tuple[str, ...] = ("USD",),
        timeout_seconds: float = 10.0,
        max_workers: int = 4,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._supported_currencies = frozenset(c.upper() for c in supported_currencies)
        self._timeout_seconds = timeout_seconds
        # A timed-out call keeps its worker until the gateway itself gives up,
        # so gateways must bound their own I/O at or below timeout_seconds.
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="payment-gateway"
        )

    def process_payment(self, request: PaymentRequest) -> PaymentResult:
        """Capture ``request.amount``.

        Declines and gateway errors come back as FAILED results, timeouts as
        UNKNOWN results.

        Raises:
            InvalidRequestError: If the amount is zero or the currency is unsupported.
        """
        if request.amount.is_zero:
            raise InvalidRequestError("Payment amount must be greater than zero")
        currency = request.currency.upper()
        if currency not in self._supported_currencies:
            raise InvalidRequestError(f"Unsupported currency: {request.currency}")

        existing = self._store.find_by_idempotency_key(request.idempotency_key)
        if existing is not None and existing.status in (
            PaymentStatus.COMPLETED,
            PaymentStatus.REFUNDED,
        ):
            logger.info(
                "payment_replayed",
                extra={"payment_id": existing.id, "idempotency_key": request.idempotency_key},
            )
            return _result(existing)

        transaction = PaymentTransaction(
            id=existing.id if existing else f"pay_{uuid.uuid4().hex}",
            idempotency_key=request.idempotency_key,
            booking_id=request.booking_id,
            status=PaymentStatus.PENDING,
            amount=request.amount,
            currency=currency,
            transaction_date=_utcnow(),
            source_id=request.source_id,
        )
        self._store.save_transaction(transaction)
        return self._capture(transaction)

    def resolve_payment(self, payment_id: str) -> PaymentResult:
        """Settle an UNKNOWN payment by capturing again under its idempotency key.

        The gateway replays the original charge if the timed-out call went
        through. Payments in any other state are returned as recorded.

        Raises:
            PaymentNotFoundError: If the payment is unknown.
        """
        transaction = self.get_payment_status(payment_id)
        if transaction.status is not PaymentStatus.UNKNOWN:
            return _result(transaction)
        logger.info(
            "payment_resolving",
            extra={"payment_id": payment_id, "idempotency_key": transaction.idempotency_key},
        )
        return self._capture(transaction)

    def _capture(self, transaction: PaymentTransaction) -> PaymentResult:
        try:
            charge = self._call(
                self._gateway.capture,
                transaction.amount,
                transaction.currency,
                transaction.idempotency_key,
                transaction.source_id,
            )
        except GatewayTimeoutError as exc:
            unknown = replace(transaction, status=PaymentStatus.UNKNOWN, error_message=exc.message)
            self._store.save_transaction(unknown)
            logger.warning(
                "payment_outcome_unknown",
                extra={"payment_id": transaction.id, "booking_id": transaction.booking_id},
            )
            return _result(unknown)
        except PaymentError as exc:
            failed = replace(transaction, status=PaymentStatus.FAILED, error_message=exc.message)
            self._store.save_transaction(failed)
            logger.warning(
                "payment_failed",
                extra={
                    "payment_id": transaction.id,
                    "booking_id": transaction.booking_id,
                    "error_code": exc.code.value,
                },
            )
            return _result(failed)
        except Exception:
            logger.exception(
                "payment_gateway_error",
                extra={"payment_id": transaction.id, "booking_id": transaction.booking_id},
            )
            failed = replace(
                transaction, status=PaymentStatus.FAILED, error_message="Payment gateway error"
            )
            self._store.save_transaction(failed)
            return _result(failed)

        if charge.status.upper() not in CAPTURED_STATUSES:
            failed = replace(
                transaction,
                status=PaymentStatus.FAILED,
                transaction_id=charge.id or None,
                error_message=f"Payment status {charge.status}",
            )
            self._store.save_transaction(failed)
            logger.warning(
                "payment_not_captured",
                extra={"payment_id": transaction.id, "gateway_status": charge.status},
            )
            return _result(failed)

        captured = replace(
            transaction,
            status=PaymentStatus.COMPLETED,
            transaction_id=charge.id,
            receipt_url=charge.receipt_url,
            error_message=None,
        )
        self._store.save_transaction(captured)
        logger.info(
            "payment_captured",
            extra={
                "payment_id": captured.id,
                "booking_id": captured.booking_id,
                "amount": str(captured.amount),
            },
        )
        return _result(captured)

    def process_refund(self, payment_id: str, amount: Money | None = None) -> RefundResult:
        """Refund a captured payment, in full when ``amount`` is omitted.

        A payment that is already refunded returns the recorded refund.

        Raises:
            PaymentNotFoundError: If the payment is unknown.
            InvalidRequestError: If ``amount`` exceeds the captured amount.
        """
        transaction = self.get_payment_status(payment_id)
        if transaction.status is PaymentStatus.REFUNDED:
            return RefundResult(
                refund_id=transaction.refund_id,
                status=RefundStatus.COMPLETED,
                amount=transaction.refunded_amount,
            )
        refund_amount = transaction.amount if amount is None else amount
        if transaction.status is not PaymentStatus.COMPLETED:
            return RefundResult(
                refund_id=None,
                status=RefundStatus.FAILED,
                amount=refund_amount,
                error_message="Payment was not captured",
            )
        if refund_amount > transaction.amount:
            raise InvalidRequestError("Refund amount exceeds the captured amount")

        try:
            refund = self._call(
                self._gateway.refund,
                transaction.transaction_id or transaction.id,
                refund_amount,
                refund_key(transaction.id),
                transaction.currency,
            )
        except PaymentError as exc:
            logger.error(
                "refund_failed",
                extra={"payment_id": payment_id, "error_code": exc.code.value},
            )
            return RefundResult(
                refund_id=None,
                status=RefundStatus.FAILED,
                amount=refund_amount,
                error_message=exc.message,
            )

        if refund.status.upper() not in REFUNDED_STATUSES:
            logger.error(
                "refund_rejected",
                extra={"payment_id": payment_id, "gateway_status": refund.status},
            )
            return RefundResult(
                refund_id=refund.id or None,
                status=RefundStatus.FAILED,
                amount=refund_amount,
                error_message=f"Refund status {refund.status}",
            )

        self._store.save_transaction(
            replace(
                transaction,
                status=PaymentStatus.REFUNDED,
                refund_id=refund.id,
                refunded_amount=refund_amount,
            )
        )
        logger.info(
            "payment_refunded",
            extra={"payment_id": payment_id, "amount": str(refund_amount)},
        )
        return RefundResult(refund_id=refund.id, status=RefundStatus.COMPLETED, amount=refund_amount)

    def get_payment_status(self, payment_id: str) -> PaymentTransaction:
        transaction = self._store.get_transaction(payment_id)
        if transaction is None:
            raise PaymentNotFoundError(payment_id)
        return transaction

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)

    def _call(self, fn: Callable[..., T], *args) -> T:
        future = self._executor.submit(fn, *args)
        try:
            return future.result(timeout=self._timeout_seconds)
        except FutureTimeoutError as exc:
            future.cancel()
            raise GatewayTimeoutError() from exc


def _result(transaction: PaymentTransaction) -> PaymentResult:
    status = transaction.status
    if status is PaymentStatus.REFUNDED:
        status = PaymentStatus.COMPLETED
    return PaymentResult(
        payment_id=transaction.id,
        status=status,
        transaction_id=transaction.transaction_id,
        receipt_url=transaction.receipt_url,
        error_message=transaction.error_message,
    )
