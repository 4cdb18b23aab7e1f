"""HTTP handlers (views) - handle HTTP concerns only.

Handlers:
- Parse requests and validate input format
- Call services for business logic
- Map domain errors to HTTP responses
- Never contain business logic
- Never expose internal error details
"""

import logging

from django.core.cache import cache
from rest_framework import status
from rest_framework.permissions import IsAdminUser
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from registration.cache import blocked_dates_key
from registration.conf import get_registration_settings
from registration.domain import DateRange, Money, PurchaseState
from registration.domain.errors import (
    CapacityError,
    DomainError,
    ErrorCode,
    InvalidBookingStateError,
    NotFoundError,
    PaymentError,
    PurchaseNotCancellableError,
    RequestValidationError,
)
from registration.handlers.serializers import (
    BlockoutRequestSerializer,
    BlockoutSerializer,
    CouponUsageSerializer,
    CouponValidateRequestSerializer,
    CouponValidationSerializer,
    DateQuerySerializer,
    DateRangeQuerySerializer,
    PurchaseRequestSerializer,
    PurchaseResultSerializer,
    PurchaseSerializer,
    SalesMetricsSerializer,
    SlotSerializer,
)
from registration.services.dependencies import get_services

logger = logging.getLogger(__name__)

ERROR_STATUSES = (
    (RequestValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (CapacityError, status.HTTP_409_CONFLICT),
    (PaymentError, status.HTTP_402_PAYMENT_REQUIRED),
    (InvalidBookingStateError, status.HTTP_409_CONFLICT),
    (PurchaseNotCancellableError, status.HTTP_409_CONFLICT),
)


def error_response(exc: DomainError) -> Response:
    for error_type, http_status in ERROR_STATUSES:
        if isinstance(exc, error_type):
            break
    else:
        http_status = status.HTTP_400_BAD_REQUEST
    return Response(
        {"error": {"code": exc.code.value, "message": exc.message}},
        status=http_status,
    )


def invalid_input(errors) -> Response:
    return Response(
        {
            "error": {
                "code": ErrorCode.INVALID_REQUEST.value,
                "message": "Invalid request",
                "details": errors,
            }
        },
        status=status.HTTP_400_BAD_REQUEST,
    )


class PurchaseListView(APIView):
    """Handler for POST /api/purchases"""

    def post(self, request: Request) -> Response:
        serializer = PurchaseRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)
        try:
            result = get_services().saga.process_purchase(serializer.to_domain())
        except DomainError as exc:
            return error_response(exc)
        data = PurchaseResultSerializer(result).data
        if result.status is PurchaseState.COMPLETED:
            return Response(data, status=status.HTTP_201_CREATED)
        if result.status is PurchaseState.COMPENSATING:
            # Payment outcome unknown; the purchase settles on a later retry.
            return Response(data, status=status.HTTP_202_ACCEPTED)
        # Remaining failures are payment failures; the purchase was compensated.
        return Response(data, status=status.HTTP_402_PAYMENT_REQUIRED)


class PurchaseDetailView(APIView):
    """Handler for GET /api/purchases/{purchase_id}"""

    def get(self, request: Request, purchase_id: str) -> Response:
        try:
            purchase = get_services().saga.get_purchase_status(purchase_id)
        except DomainError as exc:
            return error_response(exc)
        return Response(PurchaseSerializer(purchase).data)


class PurchaseCancelView(APIView):
    """Handler for POST /api/purchases/{purchase_id}/cancel"""

    def post(self, request: Request, purchase_id: str) -> Response:
        try:
            result = get_services().saga.cancel_purchase(purchase_id)
        except DomainError as exc:
            return error_response(exc)
        if result.status is PurchaseState.COMPENSATING:
            return Response(PurchaseResultSerializer(result).data, status=status.HTTP_202_ACCEPTED)
        return Response(PurchaseResultSerializer(result).data)


class AvailabilityView(APIView):
    """Handler for GET /api/calendar/availability?date="""

    def get(self, request: Request) -> Response:
        query = DateQuerySerializer(data=request.query_params)
        if not query.is_valid():
            return invalid_input(query.errors)
        day = query.validated_data["date"]
        available = get_services().availability.is_date_available(day)
        return Response({"date": day.isoformat(), "available": available})


class SlotListView(APIView):
    """Handler for GET /api/calendar/slots?date="""

    def get(self, request: Request) -> Response:
        query = DateQuerySerializer(data=request.query_params)
        if not query.is_valid():
            return invalid_input(query.errors)
        day = query.validated_data["date"]
        slots = get_services().availability.get_hourly_slots(day)
        return Response({"date": day.isoformat(), "slots": SlotSerializer(slots, many=True).data})


class BlockedDatesView(APIView):
    """Handler for GET /api/calendar/blocked?start=&end=

    Responses are cached per range; blockout signals invalidate them.
    """

    def get(self, request: Request) -> Response:
        query = DateRangeQuerySerializer(data=request.query_params)
        if not query.is_valid():
            return invalid_input(query.errors)
        start, end = query.validated_data["start"], query.validated_data["end"]

        key = blocked_dates_key(start, end)
        payload = cache.get(key)
        if payload is None:
            dates = get_services().availability.get_blocked_dates(DateRange(start, end))
            payload = {
                "start": start.isoformat(),
                "end": end.isoformat(),
                "blocked_dates": [day.isoformat() for day in dates],
            }
            cache.set(key, payload, timeout=get_registration_settings().blocked_dates_cache_ttl)
        return Response(payload)


class CouponValidateView(APIView):
    """Handler for POST /api/coupons/validate"""

    def post(self, request: Request) -> Response:
        serializer = CouponValidateRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)
        amount = serializer.validated_data.get("amount")
        validation = get_services().coupons.validate_coupon(
            serializer.validated_data["code"],
            Money(amount) if amount is not None else None,
        )
        return Response(CouponValidationSerializer(validation).data)


class AdminBlockoutListView(APIView):
    """Handler for GET/POST /api/admin/calendar/blockouts"""

    permission_classes = [IsAdminUser]

    def get(self, request: Request) -> Response:
        blockouts = get_services().admin.list_blockouts()
        return Response(BlockoutSerializer(blockouts, many=True).data)

    def post(self, request: Request) -> Response:
        serializer = BlockoutRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)
        data = serializer.validated_data
        try:
            blockout = get_services().admin.block_range(
                data["start_date"],
                data["end_date"] or data["start_date"],
                data["reason"],
                created_by=request.user.get_username(),
            )
        except DomainError as exc:
            return error_response(exc)
        return Response(BlockoutSerializer(blockout).data, status=status.HTTP_201_CREATED)


class AdminBlockoutDetailView(APIView):
    """Handler for DELETE /api/admin/calendar/blockouts/{date}"""

    permission_classes = [IsAdminUser]

    def delete(self, request: Request, day: str) -> Response:
        query = DateQuerySerializer(data={"date": day})
        if not query.is_valid():
            return invalid_input(query.errors)
        removed = get_services().admin.unblock_date(query.validated_data["date"])
        return Response({"date": day, "removed": removed})


class AdminCouponUsageView(APIView):
    """Handler for GET /api/admin/coupons/{code}/usage"""

    permission_classes = [IsAdminUser]

    def get(self, request: Request, code: str) -> Response:
        try:
            usage = get_services().admin.get_coupon_usage(code)
        except DomainError as exc:
            return error_response(exc)
        return Response(CouponUsageSerializer(usage).data)


class AdminMetricsView(APIView):
    """Handler for GET /api/admin/metrics"""

    permission_classes = [IsAdminUser]

    def get(self, request: Request) -> Response:
        metrics = get_services().admin.get_sales_metrics()
        return Response(SalesMetricsSerializer(metrics).data)
