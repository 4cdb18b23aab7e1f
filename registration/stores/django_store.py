"""Django ORM implementation of the stores.

Counter changes are single conditional UPDATEs built from F() expressions, so
the capacity / usage-limit check and the increment happen in one statement
the database serializes per row. Booking transitions additionally take a
row lock with select_for_update() inside transaction.atomic().
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable

from django.db import IntegrityError, transaction
from django.db.models import F, Q
from django.utils import timezone

from registration import models
from registration.domain import (
    Booking,
    BookingStatus,
    CalendarBlockout,
    Capacity,
    ContactInfo,
    Coupon,
    DateRange,
    DiscountType,
    Money,
    NotificationSchedule,
    NotificationTrack,
    PaymentStatus,
    PaymentTransaction,
    Product,
    ProductType,
    Purchase,
    PurchaseState,
    Workshop,
    WorkshopStatus,
)
from registration.domain.errors import (
    BookingNotFoundError,
    CapacityExceededError,
    InvalidBookingStateError,
    WorkshopNotFoundError,
)
from registration.stores.interfaces import (
    BookingStore,
    CalendarStore,
    CatalogStore,
    CouponStore,
    NotificationStore,
    PaymentStore,
    PurchaseStore,
)


def _parse_uuid(value: str) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _to_product(row: models.Product) -> Product:
    return Product(
        id=row.id,
        name=row.name,
        product_type=ProductType(row.product_type),
        price=Money(row.price),
        duration=row.duration,
        max_capacity=Capacity(row.max_capacity),
        is_active=row.is_active,
    )


def _to_workshop(row: models.Workshop) -> Workshop:
    return Workshop(
        id=str(row.id),
        product_id=row.product_id,
        start_date=row.start_date,
        end_date=row.end_date,
        capacity=Capacity(row.capacity),
        current_attendees=row.current_attendees,
        start_hour=row.start_hour,
        status=WorkshopStatus(row.status),
    )


def _to_booking(row: models.Booking) -> Booking:
    return Booking(
        id=str(row.id),
        workshop_id=str(row.workshop_id),
        product_id=row.workshop.product_id,
        start_date=row.workshop.start_date,
        attendee_count=row.attendee_count,
        status=BookingStatus(row.status),
        confirmation_number=row.confirmation_number,
        created_at=row.created_at,
        updated_at=row.updated_at,
        start_hour=row.start_hour,
        end_hour=row.end_hour,
    )


def _to_blockout(row: models.CalendarBlockout) -> CalendarBlockout:
    return CalendarBlockout(
        id=str(row.id),
        date_range=DateRange(start=row.start_date, end=row.end_date),
        reason=row.reason,
        created_by=row.created_by,
        created_at=row.created_at,
    )


def _to_coupon(row: models.Coupon) -> Coupon:
    return Coupon(
        code=row.code,
        discount_type=DiscountType(row.discount_type),
        discount_value=Decimal(row.discount_value),
        minimum_amount=Money(row.minimum_amount),
        usage_limit=row.usage_limit,
        current_usage=row.current_usage,
        expires_at=row.expires_at,
        is_active=row.is_active,
    )


def _to_transaction(row: models.PaymentTransaction) -> PaymentTransaction:
    return PaymentTransaction(
        id=row.id,
        idempotency_key=row.idempotency_key,
        booking_id=row.booking_id,
        status=PaymentStatus(row.status),
        amount=Money(row.amount),
        currency=row.currency,
        transaction_date=row.transaction_date,
        transaction_id=row.transaction_id,
        receipt_url=row.receipt_url,
        refund_id=row.refund_id,
        refunded_amount=Money(row.refunded_amount),
        error_message=row.error_message,
        source_id=row.source_id,
    )


def _to_purchase(row: models.Purchase) -> Purchase:
    return Purchase(
        id=str(row.id),
        status=PurchaseState(row.status),
        product_id=row.product_id,
        contact=ContactInfo(
            first_name=row.first_name,
            last_name=row.last_name,
            email=row.email,
            phone=row.phone,
            company=row.company,
        ),
        attendee_count=row.attendee_count,
        start_date=row.start_date,
        created_at=row.created_at,
        updated_at=row.updated_at,
        start_hour=row.start_hour,
        coupon_code=row.coupon_code,
        booking_id=row.booking_id,
        payment_id=row.payment_id,
        confirmation_number=row.confirmation_number,
        receipt_url=row.receipt_url,
        total_amount=Money(row.total_amount),
        discount_amount=Money(row.discount_amount),
        paid_amount=Money(row.paid_amount),
        refund_amount=Money(row.refund_amount),
        coupon_applied=row.coupon_applied,
        coupon_released=row.coupon_released,
        compensation_target=(
            PurchaseState(row.compensation_target) if row.compensation_target else None
        ),
        error_message=row.error_message,
    )


def _to_schedule(row: models.NotificationSchedule) -> NotificationSchedule:
    return NotificationSchedule(
        purchase_id=row.purchase_id,
        track=NotificationTrack(row.track),
        recipient_email=row.recipient_email,
        recipient_name=row.recipient_name,
        booking_id=row.booking_id,
        purchased_at=row.purchased_at,
        event_start=row.event_start,
        event_end=row.event_end,
        sent_tags=tuple(row.sent_tags),
        next_email_due=row.next_email_due,
        cancelled=row.cancelled,
    )


class DjangoCatalogStore(CatalogStore):
    """Product catalog backed by the Django ORM."""

    def get_product(self, product_id: str) -> Product | None:
        row = models.Product.objects.filter(pk=product_id).first()
        return _to_product(row) if row else None

    def save_product(self, product: Product) -> Product:
        row, _ = models.Product.objects.update_or_create(
            id=product.id,
            defaults={
                "name": product.name,
                "product_type": product.product_type.value,
                "price": product.price.amount,
                "duration": product.duration,
                "max_capacity": product.max_capacity.value,
                "is_active": product.is_active,
            },
        )
        return _to_product(row)

    def list_products(self) -> list[Product]:
        return [_to_product(row) for row in models.Product.objects.order_by("id")]


class DjangoCalendarStore(CalendarStore):
    """Blockouts backed by the Django ORM."""

    def add_blockout(self, date_range: DateRange, reason: str, created_by: str) -> CalendarBlockout:
        row = models.CalendarBlockout.objects.create(
            start_date=date_range.start,
            end_date=date_range.end,
            reason=reason,
            created_by=created_by,
        )
        return _to_blockout(row)

    def remove_blockouts_covering(self, day: date) -> int:
        removed, _ = models.CalendarBlockout.objects.filter(
            start_date__lte=day, end_date__gte=day
        ).delete()
        return removed

    def list_blockouts(self, overlapping: DateRange | None = None) -> list[CalendarBlockout]:
        rows = models.CalendarBlockout.objects.all()
        if overlapping is not None:
            rows = rows.filter(start_date__lte=overlapping.end, end_date__gte=overlapping.start)
        return [_to_blockout(row) for row in rows.order_by("start_date")]


class DjangoBookingStore(BookingStore):
    """Workshops and bookings backed by the Django ORM."""

    def get_or_create_workshop(
        self, product: Product, start_date: date, start_hour: int | None
    ) -> Workshop:
        covered = product.covered_dates(start_date)
        lookup = {"product_id": product.id, "start_date": start_date, "start_hour": start_hour}
        try:
            with transaction.atomic():
                row, _ = models.Workshop.objects.get_or_create(
                    **lookup,
                    defaults={"end_date": covered.end, "capacity": product.max_capacity.value},
                )
        except IntegrityError:
            # Lost the insert race; the winner's row is there now.
            row = models.Workshop.objects.get(**lookup)
        return _to_workshop(row)

    def get_workshop(self, workshop_id: str) -> Workshop | None:
        pk = _parse_uuid(workshop_id)
        row = models.Workshop.objects.filter(pk=pk).first() if pk else None
        return _to_workshop(row) if row else None

    def create_booking(
        self,
        workshop: Workshop,
        attendee_count: int,
        confirmation_number: str,
        start_hour: int | None = None,
        end_hour: int | None = None,
    ) -> Booking:
        row = models.Booking.objects.create(
            workshop_id=workshop.id,
            attendee_count=attendee_count,
            confirmation_number=confirmation_number,
            start_hour=start_hour,
            end_hour=end_hour,
        )
        return self._load(row.pk)

    def get_booking(self, booking_id: str) -> Booking | None:
        pk = _parse_uuid(booking_id)
        if pk is None or not models.Booking.objects.filter(pk=pk).exists():
            return None
        return self._load(pk)

    def confirm_booking(self, booking_id: str) -> Booking:
        pk = self._require_pk(booking_id)
        with transaction.atomic():
            row = models.Booking.objects.select_for_update().filter(pk=pk).first()
            if row is None:
                raise BookingNotFoundError(booking_id)
            if row.status == BookingStatus.CONFIRMED.value:
                return self._load(pk)
            if row.status == BookingStatus.CANCELLED.value:
                raise InvalidBookingStateError(booking_id, row.status)

            seats = row.attendee_count
            taken = models.Workshop.objects.filter(
                pk=row.workshop_id,
                current_attendees__lte=F("capacity") - seats,
            ).update(current_attendees=F("current_attendees") + seats, updated_at=timezone.now())
            if not taken:
                workshop = models.Workshop.objects.get(pk=row.workshop_id)
                raise CapacityExceededError(
                    seats, max(workshop.capacity - workshop.current_attendees, 0)
                )

            row.status = BookingStatus.CONFIRMED.value
            row.save(update_fields=["status", "updated_at"])
        return self._load(pk)

    def cancel_booking(self, booking_id: str) -> Booking:
        pk = self._require_pk(booking_id)
        with transaction.atomic():
            row = models.Booking.objects.select_for_update().filter(pk=pk).first()
            if row is None:
                raise BookingNotFoundError(booking_id)
            if row.status == BookingStatus.CANCELLED.value:
                return self._load(pk)

            if row.status == BookingStatus.CONFIRMED.value:
                models.Workshop.objects.filter(
                    pk=row.workshop_id, current_attendees__gte=row.attendee_count
                ).update(
                    current_attendees=F("current_attendees") - row.attendee_count,
                    updated_at=timezone.now(),
                )
            row.status = BookingStatus.CANCELLED.value
            row.save(update_fields=["status", "updated_at"])
        return self._load(pk)

    def list_confirmed_bookings_on(self, day: date) -> list[Booking]:
        rows = models.Booking.objects.select_related("workshop").filter(
            status=BookingStatus.CONFIRMED.value,
            workshop__start_date__lte=day,
            workshop__end_date__gte=day,
        )
        return [_to_booking(row) for row in rows]

    def set_workshop_capacity(self, workshop_id: str, capacity: int) -> Workshop:
        pk = _parse_uuid(workshop_id)
        row = models.Workshop.objects.filter(pk=pk).first() if pk else None
        if row is None:
            raise WorkshopNotFoundError(workshop_id)
        changed = models.Workshop.objects.filter(pk=pk, current_attendees__lte=capacity).update(
            capacity=capacity, updated_at=timezone.now()
        )
        row.refresh_from_db()
        if not changed:
            raise CapacityExceededError(row.current_attendees, capacity)
        return _to_workshop(row)

    def _require_pk(self, booking_id: str) -> uuid.UUID:
        pk = _parse_uuid(booking_id)
        if pk is None:
            raise BookingNotFoundError(booking_id)
        return pk

    def _load(self, pk: uuid.UUID) -> Booking:
        return _to_booking(models.Booking.objects.select_related("workshop").get(pk=pk))


class DjangoCouponStore(CouponStore):
    """Coupons backed by the Django ORM; usage moves by conditional UPDATE only."""

    def get_coupon(self, code: str) -> Coupon | None:
        row = models.Coupon.objects.filter(pk=code).first()
        return _to_coupon(row) if row else None

    def save_coupon(self, coupon: Coupon) -> Coupon:
        definition = {
            "discount_type": coupon.discount_type.value,
            "discount_value": coupon.discount_value,
            "minimum_amount": coupon.minimum_amount.amount,
            "usage_limit": coupon.usage_limit,
            "expires_at": coupon.expires_at,
            "is_active": coupon.is_active,
        }
        row, _ = models.Coupon.objects.update_or_create(
            code=coupon.code,
            defaults=definition,
            create_defaults={**definition, "current_usage": coupon.current_usage},
        )
        return _to_coupon(row)

    def consume_usage(self, code: str, now: datetime, redemption_id: str | None = None) -> bool:
        with transaction.atomic():
            if redemption_id is not None and models.CouponRedemption.objects.filter(
                redemption_id=redemption_id, coupon_id=code, released_at__isnull=True
            ).exists():
                return True

            taken = models.Coupon.objects.filter(
                Q(usage_limit__isnull=True) | Q(current_usage__lt=F("usage_limit")),
                Q(expires_at__isnull=True) | Q(expires_at__gt=now),
                code=code,
                is_active=True,
            ).update(current_usage=F("current_usage") + 1, updated_at=now)
            if not taken:
                return False

            if redemption_id is not None:
                models.CouponRedemption.objects.update_or_create(
                    redemption_id=redemption_id,
                    defaults={"coupon_id": code, "released_at": None},
                )
        return True

    def restore_usage(self, code: str, redemption_id: str | None = None) -> bool:
        now = timezone.now()
        with transaction.atomic():
            if redemption_id is not None:
                released = models.CouponRedemption.objects.filter(
                    redemption_id=redemption_id, coupon_id=code, released_at__isnull=True
                ).update(released_at=now)
                if not released:
                    return False
            returned = models.Coupon.objects.filter(code=code, current_usage__gt=0).update(
                current_usage=F("current_usage") - 1, updated_at=now
            )
        return bool(returned)


class DjangoPaymentStore(PaymentStore):
    """Payment transactions backed by the Django ORM."""

    def save_transaction(self, transaction: PaymentTransaction) -> PaymentTransaction:
        row, _ = models.PaymentTransaction.objects.update_or_create(
            id=transaction.id,
            defaults={
                "idempotency_key": transaction.idempotency_key,
                "booking_id": transaction.booking_id,
                "status": transaction.status.value,
                "amount": transaction.amount.amount,
                "currency": transaction.currency,
                "transaction_id": transaction.transaction_id,
                "receipt_url": transaction.receipt_url,
                "refund_id": transaction.refund_id,
                "refunded_amount": transaction.refunded_amount.amount,
                "error_message": transaction.error_message,
                "source_id": transaction.source_id,
                "transaction_date": transaction.transaction_date,
            },
        )
        return _to_transaction(row)

    def get_transaction(self, payment_id: str) -> PaymentTransaction | None:
        row = models.PaymentTransaction.objects.filter(pk=payment_id).first()
        return _to_transaction(row) if row else None

    def find_by_idempotency_key(self, idempotency_key: str) -> PaymentTransaction | None:
        row = models.PaymentTransaction.objects.filter(idempotency_key=idempotency_key).first()
        return _to_transaction(row) if row else None

    def list_transactions(self) -> list[PaymentTransaction]:
        return [_to_transaction(row) for row in models.PaymentTransaction.objects.all()]


class DjangoPurchaseStore(PurchaseStore):
    """Purchase saga records backed by the Django ORM."""

    def save_purchase(self, purchase: Purchase) -> Purchase:
        contact = purchase.contact
        models.Purchase.objects.update_or_create(
            id=uuid.UUID(purchase.id),
            defaults={
                "status": purchase.status.value,
                "product_id": purchase.product_id,
                "first_name": contact.first_name,
                "last_name": contact.last_name,
                "email": contact.email,
                "phone": contact.phone,
                "company": contact.company,
                "attendee_count": purchase.attendee_count,
                "start_date": purchase.start_date,
                "start_hour": purchase.start_hour,
                "coupon_code": purchase.coupon_code,
                "booking_id": purchase.booking_id,
                "payment_id": purchase.payment_id,
                "confirmation_number": purchase.confirmation_number,
                "receipt_url": purchase.receipt_url,
                "total_amount": purchase.total_amount.amount,
                "discount_amount": purchase.discount_amount.amount,
                "paid_amount": purchase.paid_amount.amount,
                "refund_amount": purchase.refund_amount.amount,
                "coupon_applied": purchase.coupon_applied,
                "coupon_released": purchase.coupon_released,
                "compensation_target": (
                    purchase.compensation_target.value if purchase.compensation_target else None
                ),
                "error_message": purchase.error_message,
                "created_at": purchase.created_at,
                "updated_at": purchase.updated_at,
            },
        )
        return purchase

    def get_purchase(self, purchase_id: str) -> Purchase | None:
        pk = _parse_uuid(purchase_id)
        row = models.Purchase.objects.filter(pk=pk).first() if pk else None
        return _to_purchase(row) if row else None

    def list_purchases(self, statuses: Iterable[PurchaseState] | None = None) -> list[Purchase]:
        rows = models.Purchase.objects.order_by("created_at")
        if statuses is not None:
            rows = rows.filter(status__in=[status.value for status in statuses])
        return [_to_purchase(row) for row in rows]


class DjangoNotificationStore(NotificationStore):
    """Follow-up schedules backed by the Django ORM; tag claims are versioned CAS writes."""

    def save_schedule(self, schedule: NotificationSchedule) -> NotificationSchedule:
        models.NotificationSchedule.objects.update_or_create(
            purchase_id=schedule.purchase_id,
            defaults={
                "track": schedule.track.value,
                "recipient_email": schedule.recipient_email,
                "recipient_name": schedule.recipient_name,
                "booking_id": schedule.booking_id,
                "purchased_at": schedule.purchased_at,
                "event_start": schedule.event_start,
                "event_end": schedule.event_end,
                "sent_tags": list(schedule.sent_tags),
                "next_email_due": schedule.next_email_due,
                "cancelled": schedule.cancelled,
            },
        )
        return schedule

    def get_schedule(self, purchase_id: str) -> NotificationSchedule | None:
        row = models.NotificationSchedule.objects.filter(pk=purchase_id).first()
        return _to_schedule(row) if row else None

    def list_due(self, now: datetime) -> list[NotificationSchedule]:
        rows = models.NotificationSchedule.objects.filter(
            cancelled=False, next_email_due__isnull=False, next_email_due__lte=now
        ).order_by("next_email_due")
        return [_to_schedule(row) for row in rows]

    def claim_tag(self, purchase_id: str, tag: str, next_email_due: datetime | None) -> bool:
        row = models.NotificationSchedule.objects.filter(pk=purchase_id, cancelled=False).first()
        if row is None or tag in row.sent_tags:
            return False
        claimed = models.NotificationSchedule.objects.filter(
            pk=purchase_id, version=row.version
        ).update(
            sent_tags=[*row.sent_tags, tag],
            next_email_due=next_email_due,
            version=F("version") + 1,
        )
        return bool(claimed)

    def release_tag(self, purchase_id: str, tag: str, next_email_due: datetime | None) -> None:
        row = models.NotificationSchedule.objects.filter(pk=purchase_id).first()
        if row is None or tag not in row.sent_tags:
            return
        models.NotificationSchedule.objects.filter(pk=purchase_id, version=row.version).update(
            sent_tags=[t for t in row.sent_tags if t != tag],
            next_email_due=next_email_due,
            version=F("version") + 1,
        )
