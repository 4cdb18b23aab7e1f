from django.urls import path

from registration.handlers import (
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

urlpatterns = [
    path("purchases", PurchaseListView.as_view(), name="purchase-list"),
    path("purchases/<str:purchase_id>", PurchaseDetailView.as_view(), name="purchase-detail"),
    path(
        "purchases/<str:purchase_id>/cancel",
        PurchaseCancelView.as_view(),
        name="purchase-cancel",
    ),
    path("calendar/availability", AvailabilityView.as_view(), name="calendar-availability"),
    path("calendar/slots", SlotListView.as_view(), name="calendar-slots"),
    path("calendar/blocked", BlockedDatesView.as_view(), name="calendar-blocked"),
    path("coupons/validate", CouponValidateView.as_view(), name="coupon-validate"),
    path(
        "admin/calendar/blockouts",
        AdminBlockoutListView.as_view(),
        name="admin-blockout-list",
    ),
    path(
        "admin/calendar/blockouts/<str:day>",
        AdminBlockoutDetailView.as_view(),
        name="admin-blockout-detail",
    ),
    path(
        "admin/coupons/<str:code>/usage",
        AdminCouponUsageView.as_view(),
        name="admin-coupon-usage",
    ),
    path("admin/metrics", AdminMetricsView.as_view(), name="admin-metrics"),
]
