"""Serializers for request validation and domain-model responses.

Request serializers check shape and format only; business rules live in the
services. Response serializers read attributes straight off the frozen
domain dataclasses.
"""

from rest_framework import serializers

from registration.domain import (
    AttendeeInfo,
    ContactInfo,
    PaymentMethod,
    PurchaseRequest,
)


class MoneyField(serializers.Field):
    """Renders Money as a two-decimal string."""

    def to_representation(self, value):
        return str(value)


class EnumValueField(serializers.Field):
    def to_representation(self, value):
        return value.value if value is not None else None


# Requests


class AttendeeSerializer(serializers.Serializer):
    first_name = serializers.CharField(max_length=100)
    last_name = serializers.CharField(max_length=100)
    email = serializers.EmailField()
    company = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class ContactSerializer(AttendeeSerializer):
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")


class PaymentMethodSerializer(serializers.Serializer):
    type = serializers.CharField(max_length=32, default="card")
    source_id = serializers.CharField(max_length=255)


class PurchaseRequestSerializer(serializers.Serializer):
    product_id = serializers.CharField(max_length=64)
    start_date = serializers.DateField()
    start_hour = serializers.IntegerField(
        min_value=0, max_value=23, required=False, allow_null=True, default=None
    )
    attendees = AttendeeSerializer(many=True, allow_empty=False)
    point_of_contact = ContactSerializer()
    coupon_code = serializers.CharField(
        max_length=64, required=False, allow_blank=True, allow_null=True, default=None
    )
    payment_method = PaymentMethodSerializer()

    def to_domain(self) -> PurchaseRequest:
        data = self.validated_data
        return PurchaseRequest(
            product_id=data["product_id"],
            start_date=data["start_date"],
            start_hour=data["start_hour"],
            attendees=tuple(AttendeeInfo(**attendee) for attendee in data["attendees"]),
            point_of_contact=ContactInfo(**data["point_of_contact"]),
            coupon_code=data["coupon_code"] or None,
            payment_method=PaymentMethod(**data["payment_method"]),
        )


class DateQuerySerializer(serializers.Serializer):
    date = serializers.DateField()


class DateRangeQuerySerializer(serializers.Serializer):
    start = serializers.DateField()
    end = serializers.DateField()

    def validate(self, attrs):
        if attrs["start"] > attrs["end"]:
            raise serializers.ValidationError("start must not be after end")
        return attrs


class CouponValidateRequestSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=64)
    amount = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=0, required=False, allow_null=True
    )


class BlockoutRequestSerializer(serializers.Serializer):
    start_date = serializers.DateField()
    end_date = serializers.DateField(required=False, allow_null=True, default=None)
    reason = serializers.CharField(max_length=255, allow_blank=True, default="")


# Responses


class PurchaseResultSerializer(serializers.Serializer):
    purchase_id = serializers.CharField()
    status = EnumValueField()
    total_amount = MoneyField()
    booking_id = serializers.CharField(allow_null=True)
    payment_id = serializers.CharField(allow_null=True)
    confirmation_number = serializers.CharField(allow_null=True)
    receipt_url = serializers.CharField(allow_null=True)
    error_message = serializers.CharField(allow_null=True)


class PurchaseSerializer(serializers.Serializer):
    id = serializers.CharField()
    status = EnumValueField()
    product_id = serializers.CharField()
    attendee_count = serializers.IntegerField()
    start_date = serializers.DateField()
    start_hour = serializers.IntegerField(allow_null=True)
    coupon_code = serializers.CharField(allow_null=True)
    booking_id = serializers.CharField(allow_null=True)
    payment_id = serializers.CharField(allow_null=True)
    confirmation_number = serializers.CharField(allow_null=True)
    receipt_url = serializers.CharField(allow_null=True)
    total_amount = MoneyField()
    discount_amount = MoneyField()
    paid_amount = MoneyField()
    refund_amount = MoneyField()
    error_message = serializers.CharField(allow_null=True)
    created_at = serializers.DateTimeField()
    updated_at = serializers.DateTimeField()


class SlotSerializer(serializers.Serializer):
    start = serializers.DateTimeField()
    end = serializers.DateTimeField()
    available = serializers.BooleanField()


class CouponUsageSerializer(serializers.Serializer):
    code = serializers.CharField()
    total_usage = serializers.IntegerField()
    usage_limit = serializers.IntegerField(allow_null=True)
    remaining_uses = serializers.IntegerField(allow_null=True)


class CouponValidationSerializer(serializers.Serializer):
    is_valid = serializers.BooleanField()
    code = serializers.CharField()
    reason = EnumValueField()
    discount_type = EnumValueField()
    discount_value = serializers.DecimalField(max_digits=10, decimal_places=2, allow_null=True)
    minimum_amount = MoneyField()
    usage = CouponUsageSerializer(allow_null=True)


class BlockoutSerializer(serializers.Serializer):
    id = serializers.CharField()
    start_date = serializers.DateField(source="date_range.start")
    end_date = serializers.DateField(source="date_range.end")
    reason = serializers.CharField()
    created_by = serializers.CharField()
    created_at = serializers.DateTimeField()


class SalesMetricsSerializer(serializers.Serializer):
    purchases_by_status = serializers.DictField(child=serializers.IntegerField())
    collected = MoneyField()
    refunded = MoneyField()
    net_revenue = MoneyField()
