"""Domain models representing persisted state.

These are pure domain objects with no API input rules.
Django ORM models are in registration/models.py (persistence layer).
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum

from registration.domain.value_objects import Capacity, DateRange, Money


class ProductType(Enum):
    THREE_DAY = "THREE_DAY"
    FIVE_DAY = "FIVE_DAY"
    HOURLY_CONSULTING = "HOURLY_CONSULTING"

    @property
    def is_hourly(self) -> bool:
        return self is ProductType.HOURLY_CONSULTING


class BookingStatus(Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class WorkshopStatus(Enum):
    SCHEDULED = "SCHEDULED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class DiscountType(Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


class CouponRejection(Enum):
    """Why a coupon cannot be used right now."""

    COUPON_NOT_FOUND = "COUPON_NOT_FOUND"
    COUPON_INACTIVE = "COUPON_INACTIVE"
    COUPON_EXPIRED = "COUPON_EXPIRED"
    USAGE_LIMIT_EXCEEDED = "USAGE_LIMIT_EXCEEDED"
    BELOW_MINIMUM_AMOUNT = "BELOW_MINIMUM_AMOUNT"


class PaymentStatus(Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    # Capture timed out; the gateway may or may not have charged.
    UNKNOWN = "UNKNOWN"


class RefundStatus(Enum):
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class PurchaseState(Enum):
    """Saga states of a purchase."""

    PENDING = "PENDING"
    BOOKING_CREATED = "BOOKING_CREATED"
    DISCOUNT_APPLIED = "DISCOUNT_APPLIED"
    PAYMENT_CAPTURED = "PAYMENT_CAPTURED"
    COMPLETED = "COMPLETED"
    COMPENSATING = "COMPENSATING"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (PurchaseState.COMPLETED, PurchaseState.FAILED, PurchaseState.CANCELLED)


class NotificationTrack(Enum):
    WORKSHOP = "WORKSHOP"
    CONSULTING = "CONSULTING"


@dataclass(frozen=True)
class Product:
    """Domain representation of a catalog product.

    ``duration`` counts days for workshops and hours for consulting blocks.
    """

    id: str
    name: str
    product_type: ProductType
    price: Money
    duration: int
    max_capacity: Capacity
    is_active: bool = True

    def covered_dates(self, start_date: date) -> DateRange:
        if self.product_type.is_hourly:
            return DateRange.single(start_date)
        return DateRange(start=start_date, end=start_date + timedelta(days=max(self.duration, 1) - 1))


@dataclass(frozen=True)
class ContactInfo:
    first_name: str
    last_name: str
    email: str
    phone: str = ""
    company: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class AttendeeInfo:
    first_name: str
    last_name: str
    email: str
    company: str = ""


@dataclass(frozen=True)
class PaymentMethod:
    """Tokenized payment source; card data never reaches this service."""

    type: str = "card"
    source_id: str = ""


@dataclass(frozen=True)
class PurchaseRequest:
    """Input for one purchase; never persisted as-is."""

    product_id: str
    start_date: date
    attendees: tuple[AttendeeInfo, ...]
    point_of_contact: ContactInfo
    payment_method: PaymentMethod
    coupon_code: str | None = None
    start_hour: int | None = None

    @property
    def attendee_count(self) -> int:
        return len(self.attendees)


@dataclass(frozen=True)
class Workshop:
    """Domain representation of a scheduled workshop or consulting session."""

    id: str
    product_id: str
    start_date: date
    end_date: date
    capacity: Capacity
    current_attendees: int
    start_hour: int | None = None
    status: WorkshopStatus = WorkshopStatus.SCHEDULED

    @property
    def available_spots(self) -> int:
        return self.capacity.remaining(self.current_attendees)


@dataclass(frozen=True)
class Booking:
    """Domain representation of a Booking.

    ``start_hour`` / ``end_hour`` are set for hourly consulting only.
    """

    id: str
    workshop_id: str
    product_id: str
    start_date: date
    attendee_count: int
    status: BookingStatus
    confirmation_number: str
    created_at: datetime
    updated_at: datetime
    start_hour: int | None = None
    end_hour: int | None = None

    def occupies_hour(self, hour: int) -> bool:
        if self.start_hour is None or self.end_hour is None:
            return False
        return self.start_hour <= hour < self.end_hour


@dataclass(frozen=True)
class CalendarBlockout:
    id: str
    date_range: DateRange
    reason: str
    created_by: str
    created_at: datetime


@dataclass(frozen=True)
class Slot:
    start: datetime
    end: datetime
    available: bool


@dataclass(frozen=True)
class CouponUsage:
    code: str
    total_usage: int
    usage_limit: int | None
    remaining_uses: int | None


@dataclass(frozen=True)
class Coupon:
    """Domain representation of a discount code.

    ``usage_limit`` and ``expires_at`` of None mean unlimited and never.
    """

    code: str
    discount_type: DiscountType
    discount_value: Decimal
    minimum_amount: Money = field(default_factory=Money.zero)
    usage_limit: int | None = None
    current_usage: int = 0
    expires_at: datetime | None = None
    is_active: bool = True

    @property
    def remaining_uses(self) -> int | None:
        if self.usage_limit is None:
            return None
        return max(self.usage_limit - self.current_usage, 0)

    @property
    def usage(self) -> CouponUsage:
        return CouponUsage(
            code=self.code,
            total_usage=self.current_usage,
            usage_limit=self.usage_limit,
            remaining_uses=self.remaining_uses,
        )

    def rejection(self, now: datetime, amount: Money | None = None) -> CouponRejection | None:
        """Return the first rule this coupon breaks, or None when usable."""
        if not self.is_active:
            return CouponRejection.COUPON_INACTIVE
        if self.expires_at is not None and self.expires_at <= now:
            return CouponRejection.COUPON_EXPIRED
        if self.usage_limit is not None and self.current_usage >= self.usage_limit:
            return CouponRejection.USAGE_LIMIT_EXCEEDED
        if amount is not None and amount < self.minimum_amount:
            return CouponRejection.BELOW_MINIMUM_AMOUNT
        return None

    def discount_for(self, amount: Money) -> Money:
        if self.discount_type is DiscountType.PERCENTAGE:
            discount = amount.percentage(self.discount_value)
        else:
            discount = Money(self.discount_value)
        return min(discount, amount)


@dataclass(frozen=True)
class CouponValidation:
    is_valid: bool
    code: str
    reason: CouponRejection | None = None
    discount_type: DiscountType | None = None
    discount_value: Decimal | None = None
    minimum_amount: Money | None = None
    usage: CouponUsage | None = None


@dataclass(frozen=True)
class PaymentRequest:
    amount: Money
    currency: str
    booking_id: str
    idempotency_key: str
    source_id: str = ""


@dataclass(frozen=True)
class PaymentTransaction:
    """One capture attempt, keyed by its idempotency key."""

    id: str
    idempotency_key: str
    booking_id: str
    status: PaymentStatus
    amount: Money
    currency: str
    transaction_date: datetime
    transaction_id: str | None = None
    receipt_url: str | None = None
    refund_id: str | None = None
    refunded_amount: Money = field(default_factory=Money.zero)
    error_message: str | None = None
    source_id: str = ""


@dataclass(frozen=True)
class PaymentResult:
    payment_id: str | None
    status: PaymentStatus
    transaction_id: str | None = None
    receipt_url: str | None = None
    error_message: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is PaymentStatus.COMPLETED


@dataclass(frozen=True)
class RefundResult:
    refund_id: str | None
    status: RefundStatus
    amount: Money
    error_message: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is RefundStatus.COMPLETED


@dataclass(frozen=True)
class Purchase:
    """Saga record for one ``process_purchase`` call.

    ``compensation_target`` is the state a COMPENSATING purchase settles in.
    """

    id: str
    status: PurchaseState
    product_id: str
    contact: ContactInfo
    attendee_count: int
    start_date: date
    created_at: datetime
    updated_at: datetime
    start_hour: int | None = None
    coupon_code: str | None = None
    booking_id: str | None = None
    payment_id: str | None = None
    confirmation_number: str | None = None
    receipt_url: str | None = None
    total_amount: Money = field(default_factory=Money.zero)
    discount_amount: Money = field(default_factory=Money.zero)
    paid_amount: Money = field(default_factory=Money.zero)
    refund_amount: Money = field(default_factory=Money.zero)
    coupon_applied: bool = False
    coupon_released: bool = False
    compensation_target: PurchaseState | None = None
    error_message: str | None = None

    @property
    def idempotency_key(self) -> str:
        return f"purchase-{self.id}"


@dataclass(frozen=True)
class PurchaseResult:
    purchase_id: str
    status: PurchaseState
    total_amount: Money
    booking_id: str | None = None
    payment_id: str | None = None
    confirmation_number: str | None = None
    receipt_url: str | None = None
    error_message: str | None = None


@dataclass(frozen=True)
class NotificationSchedule:
    """Follow-up timeline of one purchase; ``next_email_due`` is None when done."""

    purchase_id: str
    track: NotificationTrack
    recipient_email: str
    recipient_name: str
    booking_id: str
    purchased_at: datetime
    event_start: datetime
    event_end: datetime
    sent_tags: tuple[str, ...] = ()
    next_email_due: datetime | None = None
    cancelled: bool = False


@dataclass(frozen=True)
class NotificationMessage:
    to: str
    subject: str
    body: str
    tag: str
    purchase_id: str


@dataclass(frozen=True)
class CapacityStatus:
    workshop_id: str
    capacity: int
    current_attendees: int
    available_spots: int

    @property
    def is_fully_booked(self) -> bool:
        return self.available_spots == 0


@dataclass(frozen=True)
class SalesMetrics:
    purchases_by_status: dict[str, int]
    collected: Money
    refunded: Money

    @property
    def net_revenue(self) -> Money:
        return self.collected - self.refunded
