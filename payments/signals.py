# payments/signals
from __future__ import annotations

import logging

from django.conf import settings
from django.db import transaction
from django.db.models.signals import post_save, pre_save
from django.dispatch import receiver

from notifications.utils import notify
from .models import PaymentAttempt

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Config (overridable in settings.py)
# ---------------------------------------------------------------------------
PAYMENT_NOTIFICATIONS_ENABLED = bool(getattr(settings, "PAYMENT_NOTIFICATIONS_ENABLED", True))

NOTIFY_ON = {PaymentAttempt.STATUS_COMPLETED, PaymentAttempt.STATUS_FAILED}

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _message(attempt: PaymentAttempt) -> tuple[str, str]:
    target = attempt.target
    label = getattr(target.service, "name", "your service")
    if attempt.status == PaymentAttempt.STATUS_COMPLETED:
        until = target.payment_end_date.strftime("%d %b %Y") if target.payment_end_date else "-"
        return (
            "Payment successful",
            f"Your registration for {label} is active until {until}. "
            f"Amount: {attempt.currency} {attempt.amount}. Order: {attempt.order_id}.",
        )
    return (
        "Payment failed",
        f"Your payment of {attempt.currency} {attempt.amount} for {label} did not go through. "
        f"You can retry from your registrations page. Order: {attempt.order_id}.",
    )


def _notify_safe(attempt: PaymentAttempt) -> None:
    if not PAYMENT_NOTIFICATIONS_ENABLED:
        return
    try:
        title, message = _message(attempt)
        notify(attempt.payer, title, message)
    except Exception:
        # Notification is best-effort; the payment is already committed
        logger.exception("payment notification failed for %s", attempt.order_id)


# ---------------------------------------------------------------------------
# Capture previous status so we only act on transitions
# ---------------------------------------------------------------------------

def _attach_old_status(instance) -> None:
    if not getattr(instance, "pk", None):
        instance._old_status = None
        return
    try:
        old = instance.__class__.objects.only("status").get(pk=instance.pk)
        instance._old_status = old.status
    except instance.__class__.DoesNotExist:
        instance._old_status = None


@receiver(pre_save, sender=PaymentAttempt)
def _attempt_presave(sender, instance: PaymentAttempt, **kwargs):
    _attach_old_status(instance)


# ---------------------------------------------------------------------------
# Post-save: notify on transition to completed/failed (AFTER COMMIT)
# ---------------------------------------------------------------------------

@receiver(post_save, sender=PaymentAttempt)
def on_attempt_finished(sender, instance: PaymentAttempt, created, **kwargs):
    if instance.status in NOTIFY_ON and getattr(instance, "_old_status", None) != instance.status:
        pk = instance.pk

        def _after_commit():
            attempt = PaymentAttempt.objects.select_related("payer", "target__service").filter(pk=pk).first()
            if attempt is not None and attempt.status in NOTIFY_ON:
                _notify_safe(attempt)
        transaction.on_commit(_after_commit)
