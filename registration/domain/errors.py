"""Domain error codes for the registration module."""

from dataclasses import dataclass
from enum import Enum


class ErrorCode(Enum):
    """Domain error codes."""

    INVALID_REQUEST = "INVALID_REQUEST"
    PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
    DATE_UNAVAILABLE = "DATE_UNAVAILABLE"
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    BOOKING_NOT_FOUND = "BOOKING_NOT_FOUND"
    INVALID_BOOKING_STATE = "INVALID_BOOKING_STATE"
    WORKSHOP_NOT_FOUND = "WORKSHOP_NOT_FOUND"
    COUPON_NOT_FOUND = "COUPON_NOT_FOUND"
    COUPON_INVALID = "COUPON_INVALID"
    PAYMENT_NOT_FOUND = "PAYMENT_NOT_FOUND"
    PAYMENT_DECLINED = "PAYMENT_DECLINED"
    GATEWAY_TIMEOUT = "GATEWAY_TIMEOUT"
    PURCHASE_NOT_FOUND = "PURCHASE_NOT_FOUND"
    PURCHASE_NOT_CANCELLABLE = "PURCHASE_NOT_CANCELLABLE"


@dataclass(eq=False)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class RequestValidationError(DomainError):
    """Input that can never succeed as submitted; nothing was committed."""


class NotFoundError(DomainError):
    """An identifier on a read or cancel call matched nothing."""


class CapacityError(DomainError):
    """The workshop cannot take the requested attendees."""


class PaymentError(DomainError):
    """The payment step failed; the purchase is compensated."""


class InvalidRequestError(RequestValidationError):
    """Raised when a request is malformed."""

    def __init__(self, message: str) -> None:
        super().__init__(code=ErrorCode.INVALID_REQUEST, message=message)


class ProductNotFoundError(RequestValidationError):
    """Raised when a product does not exist or is not on sale."""

    def __init__(self, product_id: str) -> None:
        super().__init__(
            code=ErrorCode.PRODUCT_NOT_FOUND,
            message="Product not found",
        )
        self.product_id = product_id


class DateUnavailableError(RequestValidationError):
    """Raised when the requested date or hours are blocked or taken."""

    def __init__(self, detail: str = "Requested date is not available") -> None:
        super().__init__(code=ErrorCode.DATE_UNAVAILABLE, message=detail)


class CapacityExceededError(CapacityError):
    """Raised when a workshop has fewer open seats than requested."""

    def __init__(self, requested: int, available: int) -> None:
        super().__init__(
            code=ErrorCode.CAPACITY_EXCEEDED,
            message=f"Only {available} seat(s) available, {requested} requested",
        )
        self.requested = requested
        self.available = available


class BookingNotFoundError(NotFoundError):
    """Raised when a booking is not found."""

    def __init__(self, booking_id: str) -> None:
        super().__init__(code=ErrorCode.BOOKING_NOT_FOUND, message="Booking not found")
        self.booking_id = booking_id


class InvalidBookingStateError(DomainError):
    """Raised when a booking cannot make the requested transition."""

    def __init__(self, booking_id: str, status: str) -> None:
        super().__init__(
            code=ErrorCode.INVALID_BOOKING_STATE,
            message=f"Booking is {status.lower()}",
        )
        self.booking_id = booking_id


class WorkshopNotFoundError(NotFoundError):
    """Raised when a workshop is not found."""

    def __init__(self, workshop_id: str) -> None:
        super().__init__(code=ErrorCode.WORKSHOP_NOT_FOUND, message="Workshop not found")
        self.workshop_id = workshop_id


class CouponNotFoundError(NotFoundError):
    """Raised when a coupon code is unknown."""

    def __init__(self, code: str) -> None:
        super().__init__(code=ErrorCode.COUPON_NOT_FOUND, message="Coupon not found")
        self.coupon_code = code


class CouponInvalidError(RequestValidationError):
    """Raised when a coupon fails validation at apply time."""

    def __init__(self, code: str, reason: str) -> None:
        super().__init__(
            code=ErrorCode.COUPON_INVALID,
            message=f"Coupon cannot be applied ({reason})",
        )
        self.coupon_code = code
        self.reason = reason


class PaymentNotFoundError(NotFoundError):
    """Raised when a payment transaction is unknown."""

    def __init__(self, payment_id: str) -> None:
        super().__init__(code=ErrorCode.PAYMENT_NOT_FOUND, message="Payment not found")
        self.payment_id = payment_id


class PaymentDeclinedError(PaymentError):
    """Raised by gateways when a charge or refund is refused."""

    def __init__(self, message: str = "Payment was declined") -> None:
        super().__init__(code=ErrorCode.PAYMENT_DECLINED, message=message)


class GatewayTimeoutError(PaymentError):
    """Raised when the payment gateway does not answer in time."""

    def __init__(self, message: str = "Payment gateway timed out") -> None:
        super().__init__(code=ErrorCode.GATEWAY_TIMEOUT, message=message)


class PurchaseNotFoundError(NotFoundError):
    """Raised when a purchase is not found."""

    def __init__(self, purchase_id: str) -> None:
        super().__init__(code=ErrorCode.PURCHASE_NOT_FOUND, message="Purchase not found")
        self.purchase_id = purchase_id


class PurchaseNotCancellableError(DomainError):
    """Raised when cancellation is requested for an in-flight purchase."""

    def __init__(self, purchase_id: str, status: str) -> None:
        super().__init__(
            code=ErrorCode.PURCHASE_NOT_CANCELLABLE,
            message=f"Purchase cannot be cancelled while {status.lower()}",
        )
        self.purchase_id = purchase_id
