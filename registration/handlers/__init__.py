from registration.handlers.views import (
    AdminBlockoutDetailView,
    AdminBlockoutListView,
    AdminCouponUsageView,
    AdminMetricsView,
    AvailabilityView,
    BlockedDatesView,
    CouponValidateView,
    PurchaseCancelView,
    PurchaseDetailView,
    PurchaseListView,
    SlotListView,
)

__all__ = [
    "AdminBlockoutDetailView",
    "AdminBlockoutListView",
    "AdminCouponUsageView",
    "AdminMetricsView",
    "AvailabilityView",
    "BlockedDatesView",
    "CouponValidateView",
    "PurchaseCancelView",
    "PurchaseDetailView",
    "PurchaseListView",
    "SlotListView",
]
