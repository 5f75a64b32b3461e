# core/models.py
from django.conf import settings
from django.db import models


class GatewayLog(models.Model):
    """Raw request/response traffic with the payment gateway (payloads masked)."""

    DIRECTION_CHOICES = [
        ("req", "Request"),
        ("res", "Response"),
    ]

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)
    provider = models.CharField(max_length=32, default="paytm")
    order_id = models.CharField(max_length=64, blank=True, db_index=True)
    direction = models.CharField(max_length=3, choices=DIRECTION_CHOICES)
    endpoint = models.CharField(max_length=255)
    payload = models.JSONField(default=dict, blank=True)
    status_code = models.PositiveIntegerField(null=True, blank=True)
    latency_ms = models.PositiveIntegerField(null=True, blank=True)
    error = models.TextField(blank=True)
    created = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ("-created",)

    def __str__(self):
        return f"{self.provider} {self.direction} {self.endpoint} | {self.order_id or 'no-order'}"
