from __future__ import annotations

from django.contrib import admin, messages

from .errors import PaymentError
from .models import PaymentAttempt, PaymentEvent, PaymentLock, PaymentSecurityEvent, WebhookReceipt
from .tasks import requery_attempt


class PaymentEventInline(admin.TabularInline):
    model = PaymentEvent
    extra = 0
    can_delete = False
    fields = ("event_type", "event_data", "ip_address", "timestamp")
    readonly_fields = fields


@admin.register(PaymentAttempt)
class PaymentAttemptAdmin(admin.ModelAdmin):
    list_display = (
        "order_id", "payer", "target", "amount", "currency", "status",
        "gateway_txn_id", "risk_score", "flagged_for_review", "created_at",
    )
    list_filter = ("status", "flagged_for_review", "currency", "created_at")
    search_fields = ("order_id", "gateway_txn_id", "payer__email")
    date_hierarchy = "created_at"
    ordering = ("-created_at",)
    inlines = [PaymentEventInline]

    # Ledger rows are append-only from the admin's point of view
    readonly_fields = (
        "order_id", "payer", "target", "pricing_plan", "amount", "currency", "status",
        "gateway_txn_id", "gateway_response", "parent", "retry_count",
        "ip_address", "user_agent", "device_fingerprint",
        "risk_score", "risk_factors", "created_at", "completed_at", "updated_at",
    )

    actions = ("admin_requery_status",)

    def has_delete_permission(self, request, obj=None):
        return False

    @admin.action(description="Re-query gateway status")
    def admin_requery_status(self, request, queryset):
        changed = 0
        for attempt in queryset.filter(status__in=[PaymentAttempt.STATUS_PENDING, PaymentAttempt.STATUS_EXPIRED]):
            try:
                if requery_attempt(attempt).changed:
                    changed += 1
            except PaymentError as e:
                self.message_user(request, f"Error on {attempt.order_id}: {e.message}", level=messages.ERROR)
        self.message_user(request, f"Requery complete. Updated {changed} payment(s).", level=messages.INFO)


@admin.register(PaymentLock)
class PaymentLockAdmin(admin.ModelAdmin):
    list_display = ("lock_key", "acquired_at", "expires_at")
    search_fields = ("lock_key",)


@admin.register(WebhookReceipt)
class WebhookReceiptAdmin(admin.ModelAdmin):
    list_display = ("order_id", "gateway_txn_id", "gateway_status", "amount", "received_at")
    list_filter = ("gateway_status", "received_at")
    search_fields = ("order_id", "gateway_txn_id", "receipt_key")
    readonly_fields = [f.name for f in WebhookReceipt._meta.fields]


@admin.register(PaymentSecurityEvent)
class PaymentSecurityEventAdmin(admin.ModelAdmin):
    list_display = ("event_type", "order_id", "risk_score", "action_taken", "ip_address", "timestamp")
    list_filter = ("event_type", "action_taken", "timestamp")
    search_fields = ("order_id", "ip_address")
    date_hierarchy = "timestamp"
