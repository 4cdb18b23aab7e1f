"""Composition root: the one place collaborators are wired together."""

from dataclasses import dataclass
from functools import lru_cache

from registration.conf import RegistrationSettings, get_registration_settings
from registration.gateways.notifier import DjangoMailNotifier, Notifier
from registration.gateways.payment import (
    HttpPaymentGateway,
    PaymentGateway,
    SimulatedPaymentGateway,
)
from registration.services.admin_service import AdminConsole
from registration.services.availability_service import AvailabilityEngine
from registration.services.booking_service import BookingRegistry
from registration.services.coupon_service import CouponLedger
from registration.services.notification_service import NotificationScheduler
from registration.services.payment_service import PaymentCoordinator
from registration.services.purchase_saga import PurchaseSaga
from registration.stores import django_store, memory_store


@dataclass(frozen=True)
class Services:
    availability: AvailabilityEngine
    bookings: BookingRegistry
    coupons: CouponLedger
    payments: PaymentCoordinator
    notifications: NotificationScheduler
    saga: PurchaseSaga
    admin: AdminConsole


def build_payment_gateway(config: RegistrationSettings) -> PaymentGateway:
    if config.payment_gateway_url:
        # Shares the coordinator's timeout so a timed-out call frees its worker.
        return HttpPaymentGateway(
            base_url=config.payment_gateway_url,
            api_key=config.payment_gateway_api_key,
            timeout_seconds=config.payment_timeout_seconds,
        )
    return SimulatedPaymentGateway()


def build_services(
    config: RegistrationSettings | None = None,
    *,
    in_memory: bool = False,
    gateway: PaymentGateway | None = None,
    notifier: Notifier | None = None,
) -> Services:
    config = config or get_registration_settings()
    if in_memory:
        catalog = memory_store.InMemoryCatalogStore()
        calendar = memory_store.InMemoryCalendarStore()
        booking_store = memory_store.InMemoryBookingStore()
        coupon_store = memory_store.InMemoryCouponStore()
        payment_store = memory_store.InMemoryPaymentStore()
        purchase_store = memory_store.InMemoryPurchaseStore()
        notification_store = memory_store.InMemoryNotificationStore()
    else:
        catalog = django_store.DjangoCatalogStore()
        calendar = django_store.DjangoCalendarStore()
        booking_store = django_store.DjangoBookingStore()
        coupon_store = django_store.DjangoCouponStore()
        payment_store = django_store.DjangoPaymentStore()
        purchase_store = django_store.DjangoPurchaseStore()
        notification_store = django_store.DjangoNotificationStore()

    availability = AvailabilityEngine(
        calendar,
        booking_store,
        open_hour=config.business_open_hour,
        close_hour=config.business_close_hour,
    )
    bookings = BookingRegistry(catalog, booking_store, availability)
    coupons = CouponLedger(coupon_store)
    payments = PaymentCoordinator(
        payment_store,
        gateway or build_payment_gateway(config),
        supported_currencies=config.supported_currencies,
        timeout_seconds=config.payment_timeout_seconds,
    )
    notifications = NotificationScheduler(
        notification_store,
        notifier or DjangoMailNotifier(from_email=config.notification_from_email),
    )
    saga = PurchaseSaga(
        catalog,
        purchase_store,
        bookings,
        coupons,
        payments,
        notifications,
        currency=config.currency,
    )
    admin = AdminConsole(
        availability,
        coupons,
        catalog,
        booking_store,
        coupon_store,
        payment_store,
        purchase_store,
    )
    return Services(
        availability=availability,
        bookings=bookings,
        coupons=coupons,
        payments=payments,
        notifications=notifications,
        saga=saga,
        admin=admin,
    )


@lru_cache(maxsize=1)
def get_services() -> Services:
    """Process-wide services over the Django stores."""
    return build_services()
