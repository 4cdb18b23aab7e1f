from registration.services.admin_service import AdminConsole
from registration.services.availability_service import AvailabilityEngine
from registration.services.booking_service import BookingRegistry
from registration.services.coupon_service import CouponLedger
from registration.services.notification_service import NotificationScheduler
from registration.services.payment_service import PaymentCoordinator
from registration.services.purchase_saga import PurchaseSaga

__all__ = [
    "AdminConsole",
    "AvailabilityEngine",
    "BookingRegistry",
    "CouponLedger",
    "NotificationScheduler",
    "PaymentCoordinator",
    "PurchaseSaga",
]
