# payments/views.py
import logging
from collections.abc import Mapping

from django.utils.decorators import method_decorator
from django.views.decorators.csrf import csrf_exempt
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.middleware import client_ip
from .activation import activate
from .audit import security_event
from .errors import ActivationConflict, PaymentError, StoreUnavailable, WebhookRejected
from .filters import PaymentAttemptFilter
from .initiation import initiate, retry
from .models import PaymentAttempt
from .serializers import (
    InitiationResponseSerializer,
    PaymentAttemptSerializer,
    PaymentErrorSerializer,
    PaymentInitiateRequestSerializer,
    PaymentRetryRequestSerializer,
    PaymentStatusSerializer,
)
from .tasks import requery_attempt
from .webhooks import RawCallback, verify

logger = logging.getLogger(__name__)

# ---- helpers ----------------------------------------------------------------

class SafePaginator(PageNumberPagination):
    page_size = 25
    page_size_query_param = "page_size"
    max_page_size = 100


def _error(exc: PaymentError) -> Response:
    return Response(exc.as_dict(), status=exc.http_status)


def _client_context(request) -> dict:
    ctx = getattr(request, "client_context", None)
    if ctx is None:
        ctx = {"ip_address": client_ip(request), "user_agent": request.META.get("HTTP_USER_AGENT", "")}
    return ctx


def _flatten(data) -> dict:
    # Form posts arrive as a QueryDict
    if hasattr(data, "dict"):
        return data.dict()
    if isinstance(data, Mapping):
        return dict(data)
    # JSON lists and scalars carry no callback fields
    return {}


def _initiation_body(result) -> dict:
    attempt = result.attempt
    return {
        "order_id": attempt.order_id,
        "status": attempt.status,
        "amount": str(attempt.amount),
        "currency": attempt.currency,
        "gateway_url": result.order.redirect_url,
        "gateway_params": result.order.params,
    }


def _status_body(attempt: PaymentAttempt) -> dict:
    return PaymentStatusSerializer({"payment": attempt, "registration": attempt.target}).data


def _own_attempt(request, order_id: str):
    return (
        PaymentAttempt.objects.select_related("target__service", "parent")
        .filter(order_id=order_id, payer=request.user)
        .first()
    )


ERROR_RESPONSES = {
    400: OpenApiResponse(PaymentErrorSerializer, description="Amount mismatch or invalid input"),
    404: OpenApiResponse(PaymentErrorSerializer, description="Unknown registration"),
    409: OpenApiResponse(PaymentErrorSerializer, description="Duplicate or in-progress payment"),
    503: OpenApiResponse(PaymentErrorSerializer, description="Store unavailable; retry"),
}

# ---- endpoints ---------------------------------------------------------------

@extend_schema(
    description="Start a registration payment. Returns the order id and signed gateway form parameters.",
    request=PaymentInitiateRequestSerializer,
    responses={201: InitiationResponseSerializer, **ERROR_RESPONSES},
)
class InitiatePaymentView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "payment_initiation"

    def post(self, request):
        ser = PaymentInitiateRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data
        try:
            result = initiate(
                request.user,
                data["target_id"],
                data["amount"],
                currency=data.get("currency") or None,
                client_context=_client_context(request),
            )
        except PaymentError as e:
            return _error(e)
        return Response(_initiation_body(result), status=status.HTTP_201_CREATED)


@extend_schema(
    description="Retry a failed or expired payment as a new attempt linked to the original.",
    request=PaymentRetryRequestSerializer,
    responses={201: InitiationResponseSerializer, **ERROR_RESPONSES},
)
class RetryPaymentView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "payment_initiation"

    def post(self, request):
        ser = PaymentRetryRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data
        try:
            result = retry(
                request.user,
                data["order_id"],
                claimed_amount=data.get("amount"),
                currency=data.get("currency") or None,
                client_context=_client_context(request),
            )
        except PaymentError as e:
            return _error(e)
        return Response(_initiation_body(result), status=status.HTTP_201_CREATED)


@extend_schema(exclude=True)
@method_decorator(csrf_exempt, name="dispatch")
class PaymentWebhookView(APIView):
    """Gateway callback. Rejections get a bare body; details go to logs and the security audit."""

    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_scope = "payment_webhook"

    def post(self, request):
        callback = RawCallback(params=_flatten(request.data), remote_addr=client_ip(request))
        try:
            event = verify(callback)
        except WebhookRejected as e:
            return Response({"status": "rejected"}, status=e.http_status)
        except StoreUnavailable:
            return Response({"status": "retry"}, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        try:
            result = activate(event)
        except ActivationConflict as e:
            # Needs a human; acknowledging stops gateway re-delivery
            logger.error("activation conflict for %s: %s", event.order_id, e.message)
            security_event(
                "activation_conflict", order_id=event.order_id, ip_address=callback.remote_addr,
                action_taken="manual_review", details=e.as_dict(),
            )
            return Response({"status": "ok"})
        except StoreUnavailable:
            # Receipt is stored; reconcile_payments re-applies it
            return Response({"status": "retry"}, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        return Response({"status": "ok", "order_id": event.order_id, "result": result.outcome})


@extend_schema(
    description="Current state of one of the caller's payments and of the registration it pays for.",
    responses={200: PaymentStatusSerializer, 404: OpenApiResponse(description="Unknown order")},
)
class PaymentStatusView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, order_id: str):
        attempt = _own_attempt(request, order_id)
        if attempt is None:
            return Response({"detail": "Unknown order"}, status=status.HTTP_404_NOT_FOUND)
        return Response(_status_body(attempt))


@extend_schema(
    description="The caller's payment attempts, newest first. Filter with ?status=, ?target=, "
                "?created_after=, ?created_before=.",
    responses={200: PaymentAttemptSerializer(many=True)},
)
class PaymentHistoryView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        qs = (
            PaymentAttempt.objects.filter(payer=request.user)
            .select_related("target__service", "parent")
            .order_by("-created_at")
        )
        filterset = PaymentAttemptFilter(request.query_params, queryset=qs)
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        paginator = SafePaginator()
        page = paginator.paginate_queryset(filterset.qs, request)
        return paginator.get_paginated_response(PaymentAttemptSerializer(page, many=True).data)


@extend_schema(
    description="Ask the gateway for the order's status and apply it. Use when the callback seems lost.",
    request=None,
    responses={
        200: PaymentStatusSerializer,
        404: OpenApiResponse(description="Unknown order"),
        409: OpenApiResponse(PaymentErrorSerializer, description="Conflicting gateway state"),
        502: OpenApiResponse(PaymentErrorSerializer, description="Gateway unreachable"),
        503: OpenApiResponse(PaymentErrorSerializer, description="Store unavailable"),
    },
)
class PaymentVerifyView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, order_id: str):
        attempt = _own_attempt(request, order_id)
        if attempt is None:
            return Response({"detail": "Unknown order"}, status=status.HTTP_404_NOT_FOUND)

        # Only open attempts can still change
        if attempt.status in (PaymentAttempt.STATUS_PENDING, PaymentAttempt.STATUS_EXPIRED):
            try:
                requery_attempt(attempt)
            except PaymentError as e:
                return _error(e)
            attempt = _own_attempt(request, order_id)
        return Response(_status_body(attempt))
