# payments/urls.py
from django.urls import path
from .views import (
    InitiatePaymentView,
    PaymentHistoryView,
    PaymentStatusView,
    PaymentVerifyView,
    PaymentWebhookView,
    RetryPaymentView,
)

urlpatterns = [
    path("initiate/", InitiatePaymentView.as_view(), name="payments_initiate"),
    path("retry/", RetryPaymentView.as_view(), name="payments_retry"),
    path("webhook/", PaymentWebhookView.as_view(), name="payments_webhook"),
    path("status/<str:order_id>/", PaymentStatusView.as_view(), name="payments_status"),
    path("history/", PaymentHistoryView.as_view(), name="payments_history"),
    path("verify/<str:order_id>/", PaymentVerifyView.as_view(), name="payments_verify"),
]
