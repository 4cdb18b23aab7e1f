from registration.domain.models import (
    AttendeeInfo,
    Booking,
    BookingStatus,
    CalendarBlockout,
    CapacityStatus,
    ContactInfo,
    Coupon,
    CouponRejection,
    CouponUsage,
    CouponValidation,
    DiscountType,
    NotificationMessage,
    NotificationSchedule,
    NotificationTrack,
    PaymentMethod,
    PaymentRequest,
    PaymentResult,
    PaymentStatus,
    PaymentTransaction,
    Product,
    ProductType,
    Purchase,
    PurchaseRequest,
    PurchaseResult,
    PurchaseState,
    RefundResult,
    RefundStatus,
    SalesMetrics,
    Slot,
    Workshop,
    WorkshopStatus,
)
from registration.domain.value_objects import Capacity, DateRange, Money

__all__ = [
    "AttendeeInfo",
    "Booking",
    "BookingStatus",
    "CalendarBlockout",
    "Capacity",
    "CapacityStatus",
    "ContactInfo",
    "Coupon",
    "CouponRejection",
    "CouponUsage",
    "CouponValidation",
    "DateRange",
    "DiscountType",
    "Money",
    "NotificationMessage",
    "NotificationSchedule",
    "NotificationTrack",
    "PaymentMethod",
    "PaymentRequest",
    "PaymentResult",
    "PaymentStatus",
    "PaymentTransaction",
    "Product",
    "ProductType",
    "Purchase",
    "PurchaseRequest",
    "PurchaseResult",
    "PurchaseState",
    "RefundResult",
    "RefundStatus",
    "SalesMetrics",
    "Slot",
    "Workshop",
    "WorkshopStatus",
]
