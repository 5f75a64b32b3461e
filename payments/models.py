# payments/models.py
from __future__ import annotations

import secrets

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone


def generate_order_id() -> str:
    return f"ORDER_{timezone.now().strftime('%Y%m%d%H%M%S%f')}_{secrets.token_hex(4)}"


class PaymentAttempt(models.Model):
    """
    Ledger entry for one registration payment. Rows are never deleted.

        pending --(verified success)--> completed
        pending --(verified failure)--> failed
        pending --(timeout sweep)-----> expired --(late verified success)--> completed
    """

    STATUS_PENDING = "pending"
    STATUS_COMPLETED = "completed"
    STATUS_FAILED = "failed"
    STATUS_EXPIRED = "expired"

    STATUS = [
        (STATUS_PENDING, "Pending"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_FAILED, "Failed"),
        (STATUS_EXPIRED, "Expired"),
    ]
    TERMINAL = {STATUS_COMPLETED, STATUS_FAILED, STATUS_EXPIRED}
    RETRYABLE = {STATUS_FAILED, STATUS_EXPIRED}

    order_id = models.CharField(max_length=64, unique=True, default=generate_order_id, editable=False)
    gateway_txn_id = models.CharField(max_length=100, unique=True, blank=True, null=True)

    payer = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="payment_attempts"
    )
    target = models.ForeignKey(
        "services.ProviderService", on_delete=models.PROTECT, related_name="payment_attempts"
    )
    pricing_plan = models.ForeignKey(
        "services.ServicePricing", on_delete=models.SET_NULL, blank=True, null=True, related_name="+"
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=8, default="INR")
    status = models.CharField(max_length=16, choices=STATUS, default=STATUS_PENDING)

    # Retry linkage
    parent = models.ForeignKey(
        "self", on_delete=models.PROTECT, blank=True, null=True, related_name="retries"
    )
    retry_count = models.PositiveIntegerField(default=0)

    # Raw gateway payload for audit
    gateway_response = models.JSONField(blank=True, null=True)

    # Client context captured at initiation (risk input)
    ip_address = models.GenericIPAddressField(blank=True, null=True)
    user_agent = models.TextField(blank=True)
    device_fingerprint = models.CharField(max_length=128, blank=True)

    # Advisory risk annotation, attached on completion
    risk_score = models.DecimalField(max_digits=3, decimal_places=2, blank=True, null=True)
    risk_factors = models.JSONField(default=list, blank=True)
    flagged_for_review = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    completed_at = models.DateTimeField(blank=True, null=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created_at",)
        constraints = [
            # Backstop for the idempotency guard: one in-flight attempt per (payer, target)
            models.UniqueConstraint(
                fields=["payer", "target"],
                condition=Q(status="pending"),
                name="uniq_pending_attempt_per_payer_target",
            ),
        ]
        indexes = [
            models.Index(fields=["payer", "target", "status"], name="attempt_payer_target_st_idx"),
            models.Index(fields=["status", "created_at"], name="attempt_status_created_idx"),
        ]

    def __str__(self):
        return f"{self.order_id} | {self.payer_id} -> {self.target_id} | {self.currency} {self.amount} | {self.status}"

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL


class PaymentLock(models.Model):
    """DB-backed lease; the unique lock_key makes acquisition a test-and-set."""

    lock_key = models.CharField(max_length=255, unique=True)
    token = models.CharField(max_length=255, unique=True)
    payer_id = models.CharField(max_length=64)
    target_id = models.CharField(max_length=64)
    acquired_at = models.DateTimeField(default=timezone.now)
    expires_at = models.DateTimeField(db_index=True)

    def __str__(self):
        return f"{self.lock_key} until {self.expires_at:%H:%M:%S}"

    @property
    def is_expired(self) -> bool:
        return self.expires_at <= timezone.now()


class WebhookReceipt(models.Model):
    """Accepted gateway callbacks; a receipt_key may be accepted only once."""

    OUTCOME_ACCEPTED = "accepted"
    OUTCOMES = [(OUTCOME_ACCEPTED, "Accepted")]

    receipt_key = models.CharField(max_length=64, unique=True)
    order_id = models.CharField(max_length=64, db_index=True)
    gateway_txn_id = models.CharField(max_length=100, blank=True)
    gateway_timestamp = models.CharField(max_length=64, blank=True)
    nonce = models.CharField(max_length=128, blank=True)
    gateway_status = models.CharField(max_length=16)
    amount = models.DecimalField(max_digits=12, decimal_places=2, blank=True, null=True)
    outcome = models.CharField(max_length=16, choices=OUTCOMES, default=OUTCOME_ACCEPTED)
    # Normalized event, replayed by reconciliation if activation did not commit
    event = models.JSONField(default=dict)
    received_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ("-received_at",)

    def __str__(self):
        return f"{self.order_id} | {self.gateway_txn_id or '-'} | {self.gateway_status}"


class PaymentEvent(models.Model):
    """Lifecycle audit trail per attempt."""

    attempt = models.ForeignKey(
        PaymentAttempt, on_delete=models.CASCADE, related_name="events", blank=True, null=True
    )
    event_type = models.CharField(max_length=64, db_index=True)
    event_data = models.JSONField(default=dict, blank=True)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, blank=True, null=True)
    ip_address = models.GenericIPAddressField(blank=True, null=True)
    timestamp = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ("-timestamp",)

    def __str__(self):
        return f"{self.event_type} | {self.attempt_id or '-'}"


class PaymentSecurityEvent(models.Model):
    """Webhook rejections and risk flags, for security review."""

    attempt = models.ForeignKey(
        PaymentAttempt, on_delete=models.SET_NULL, related_name="security_events", blank=True, null=True
    )
    order_id = models.CharField(max_length=64, blank=True, db_index=True)
    event_type = models.CharField(max_length=64, db_index=True)
    risk_score = models.DecimalField(max_digits=3, decimal_places=2, default=0)
    risk_factors = models.JSONField(default=list, blank=True)
    action_taken = models.CharField(max_length=64, blank=True)
    ip_address = models.GenericIPAddressField(blank=True, null=True)
    details = models.JSONField(default=dict, blank=True)
    timestamp = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ("-timestamp",)

    def __str__(self):
        return f"{self.event_type} | {self.order_id or '-'} | {self.action_taken}"
