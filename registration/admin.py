from django.contrib import admin

from registration.models import (
    Booking,
    CalendarBlockout,
    Coupon,
    CouponRedemption,
    NotificationSchedule,
    PaymentTransaction,
    Product,
    Purchase,
    Workshop,
)


class BookingInline(admin.TabularInline):
    model = Booking
    extra = 0
    readonly_fields = ["attendee_count", "status", "confirmation_number"]


class CouponRedemptionInline(admin.TabularInline):
    model = CouponRedemption
    extra = 0
    readonly_fields = ["redemption_id", "released_at", "created_at"]


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ["id", "name", "product_type", "price", "max_capacity", "is_active"]
    list_filter = ["product_type", "is_active"]


@admin.register(Workshop)
class WorkshopAdmin(admin.ModelAdmin):
    list_display = ["product", "start_date", "end_date", "start_hour", "capacity", "current_attendees"]
    list_filter = ["product", "status"]
    readonly_fields = ["current_attendees"]
    inlines = [BookingInline]


@admin.register(CalendarBlockout)
class CalendarBlockoutAdmin(admin.ModelAdmin):
    list_display = ["start_date", "end_date", "reason", "created_by"]


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    list_display = ["code", "discount_type", "discount_value", "current_usage", "usage_limit", "is_active"]
    search_fields = ["code"]
    readonly_fields = ["current_usage"]
    inlines = [CouponRedemptionInline]


@admin.register(PaymentTransaction)
class PaymentTransactionAdmin(admin.ModelAdmin):
    list_display = ["id", "booking_id", "status", "amount", "refunded_amount", "transaction_date"]
    list_filter = ["status"]


@admin.register(Purchase)
class PurchaseAdmin(admin.ModelAdmin):
    list_display = ["id", "status", "product_id", "email", "total_amount", "created_at"]
    list_filter = ["status"]
    search_fields = ["email", "confirmation_number"]


@admin.register(NotificationSchedule)
class NotificationScheduleAdmin(admin.ModelAdmin):
    list_display = ["purchase_id", "track", "recipient_email", "next_email_due", "cancelled"]
    list_filter = ["track", "cancelled"]
