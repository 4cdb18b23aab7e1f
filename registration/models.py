"""Django ORM models (persistence layer).

These models handle database concerns. Domain logic lives in domain/models.py.
"""

import uuid

from django.db import models
from django.db.models import F, Q

from registration.domain import (
    BookingStatus,
    DiscountType,
    NotificationTrack,
    PaymentStatus,
    ProductType,
    PurchaseState,
    WorkshopStatus,
)


def _choices(enum_cls) -> list[tuple[str, str]]:
    return [(member.value, member.value.replace("_", " ").title()) for member in enum_cls]


class Product(models.Model):
    """Persistence model for catalog products."""

    id = models.CharField(primary_key=True, max_length=64)
    name = models.CharField(max_length=255)
    product_type = models.CharField(max_length=32, choices=_choices(ProductType))
    price = models.DecimalField(max_digits=10, decimal_places=2)
    duration = models.PositiveIntegerField()
    max_capacity = models.PositiveIntegerField()
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["id"]

    def __str__(self) -> str:
        return self.name


class Workshop(models.Model):
    """Persistence model for a scheduled workshop or consulting session."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name="workshops")
    start_date = models.DateField()
    end_date = models.DateField()
    start_hour = models.PositiveSmallIntegerField(null=True, blank=True)
    capacity = models.PositiveIntegerField()
    current_attendees = models.PositiveIntegerField(default=0)
    status = models.CharField(
        max_length=16, choices=_choices(WorkshopStatus), default=WorkshopStatus.SCHEDULED.value
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["start_date", "start_hour"]
        indexes = [
            models.Index(fields=["start_date", "end_date"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["product", "start_date", "start_hour"],
                name="unique_workshop_session",
                nulls_distinct=False,
            ),
            models.CheckConstraint(
                condition=Q(current_attendees__lte=F("capacity")),
                name="workshop_attendees_within_capacity",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.product_id} - {self.start_date}"


class Booking(models.Model):
    """Persistence model for bookings."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    workshop = models.ForeignKey(Workshop, on_delete=models.PROTECT, related_name="bookings")
    attendee_count = models.PositiveIntegerField()
    status = models.CharField(
        max_length=16, choices=_choices(BookingStatus), default=BookingStatus.PENDING.value
    )
    confirmation_number = models.CharField(max_length=32, unique=True)
    start_hour = models.PositiveSmallIntegerField(null=True, blank=True)
    end_hour = models.PositiveSmallIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["workshop", "status"]),
        ]

    def __str__(self) -> str:
        return self.confirmation_number


class CalendarBlockout(models.Model):
    """Persistence model for admin-authored blockout ranges."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    start_date = models.DateField()
    end_date = models.DateField()
    reason = models.CharField(max_length=255, blank=True)
    created_by = models.CharField(max_length=150, default="admin")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["start_date"]
        indexes = [
            models.Index(fields=["start_date", "end_date"]),
        ]

    def __str__(self) -> str:
        return f"{self.start_date} - {self.end_date}: {self.reason}"


class Coupon(models.Model):
    """Persistence model for discount codes."""

    code = models.CharField(primary_key=True, max_length=64)
    discount_type = models.CharField(max_length=16, choices=_choices(DiscountType))
    discount_value = models.DecimalField(max_digits=10, decimal_places=2)
    minimum_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    usage_limit = models.PositiveIntegerField(null=True, blank=True)
    current_usage = models.PositiveIntegerField(default=0)
    expires_at = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["code"]
        constraints = [
            models.CheckConstraint(
                condition=Q(usage_limit__isnull=True) | Q(current_usage__lte=F("usage_limit")),
                name="coupon_usage_within_limit",
            ),
        ]

    def __str__(self) -> str:
        return self.code


class CouponRedemption(models.Model):
    """One use of a coupon by a purchase; released when the purchase is compensated."""

    coupon = models.ForeignKey(Coupon, on_delete=models.CASCADE, related_name="redemptions")
    redemption_id = models.CharField(max_length=64, unique=True)
    released_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["coupon", "released_at"]),
        ]

    def __str__(self) -> str:
        return f"{self.coupon_id} / {self.redemption_id}"


class PaymentTransaction(models.Model):
    """Persistence model for captured (or attempted) payments."""

    id = models.CharField(primary_key=True, max_length=64)
    idempotency_key = models.CharField(max_length=128, unique=True)
    booking_id = models.CharField(max_length=64, db_index=True)
    status = models.CharField(max_length=16, choices=_choices(PaymentStatus))
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    currency = models.CharField(max_length=3)
    transaction_id = models.CharField(max_length=128, null=True, blank=True)
    receipt_url = models.URLField(max_length=500, null=True, blank=True)
    refund_id = models.CharField(max_length=128, null=True, blank=True)
    refunded_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    error_message = models.TextField(null=True, blank=True)
    source_id = models.CharField(max_length=255, blank=True, default="")
    transaction_date = models.DateTimeField()

    class Meta:
        ordering = ["-transaction_date"]

    def __str__(self) -> str:
        return f"{self.id} ({self.status})"


class Purchase(models.Model):
    """Persistence model for purchase saga records."""

    id = models.UUIDField(primary_key=True, editable=False)
    status = models.CharField(max_length=24, choices=_choices(PurchaseState))
    product_id = models.CharField(max_length=64)
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    email = models.EmailField()
    phone = models.CharField(max_length=32, blank=True)
    company = models.CharField(max_length=255, blank=True)
    attendee_count = models.PositiveIntegerField()
    start_date = models.DateField()
    start_hour = models.PositiveSmallIntegerField(null=True, blank=True)
    coupon_code = models.CharField(max_length=64, null=True, blank=True)
    booking_id = models.CharField(max_length=64, null=True, blank=True)
    payment_id = models.CharField(max_length=64, null=True, blank=True)
    confirmation_number = models.CharField(max_length=32, null=True, blank=True)
    receipt_url = models.URLField(max_length=500, null=True, blank=True)
    total_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    discount_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    paid_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    refund_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    coupon_applied = models.BooleanField(default=False)
    coupon_released = models.BooleanField(default=False)
    compensation_target = models.CharField(
        max_length=24, choices=_choices(PurchaseState), null=True, blank=True
    )
    error_message = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField()
    updated_at = models.DateTimeField()

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["status"]),
        ]

    def __str__(self) -> str:
        return f"{self.id} ({self.status})"


class NotificationSchedule(models.Model):
    """Persistence model for follow-up email timelines.

    ``version`` backs the compare-and-swap in tag claims.
    """

    purchase_id = models.CharField(primary_key=True, max_length=64)
    track = models.CharField(max_length=16, choices=_choices(NotificationTrack))
    recipient_email = models.EmailField()
    recipient_name = models.CharField(max_length=255)
    booking_id = models.CharField(max_length=64)
    purchased_at = models.DateTimeField()
    event_start = models.DateTimeField()
    event_end = models.DateTimeField()
    sent_tags = models.JSONField(default=list)
    next_email_due = models.DateTimeField(null=True, blank=True, db_index=True)
    cancelled = models.BooleanField(default=False)
    version = models.PositiveIntegerField(default=0)

    def __str__(self) -> str:
        return f"{self.purchase_id} ({self.track})"
