# payments/tasks.py
"""
Periodic maintenance. Each function is idempotent and safe to run from cron
via the management commands in core.
"""
from __future__ import annotations

import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from services.entitlements import expire_lapsed

from . import gateway, locks
from .activation import activate
from .audit import record_event
from .errors import GatewayError, PaymentError
from .models import PaymentAttempt, WebhookReceipt
from .webhooks import VerifiedEvent

logger = logging.getLogger(__name__)


def expire_pending_attempts(timeout_minutes: int | None = None, now=None) -> int:
    """pending attempts older than the timeout become expired."""
    if timeout_minutes is None:
        timeout_minutes = int(getattr(settings, "PAYMENT_PENDING_TIMEOUT_MINUTES", 30))
    now = now or timezone.now()
    cutoff = now - timedelta(minutes=timeout_minutes)

    with transaction.atomic():
        stale = list(
            PaymentAttempt.objects.select_for_update()
            .filter(status=PaymentAttempt.STATUS_PENDING, created_at__lt=cutoff)
            .order_by("created_at")
        )
        for attempt in stale:
            attempt.status = PaymentAttempt.STATUS_EXPIRED
            attempt.save(update_fields=["status", "updated_at"])
            record_event(attempt, "payment_expired", {"timeout_minutes": timeout_minutes})

    if stale:
        logger.info("expired %s pending payment attempt(s)", len(stale))
    return len(stale)


def reclaim_payment_locks() -> int:
    return locks.sweep_expired()


def purge_webhook_receipts(retention_hours: int | None = None, now=None) -> int:
    if retention_hours is None:
        retention_hours = int(getattr(settings, "WEBHOOK_RECEIPT_RETENTION_HOURS", 72))
    cutoff = (now or timezone.now()) - timedelta(hours=retention_hours)
    deleted, _ = WebhookReceipt.objects.filter(received_at__lt=cutoff).delete()
    if deleted:
        logger.info("purged %s webhook receipt(s) older than %sh", deleted, retention_hours)
    return deleted


def expire_registrations(now=None) -> int:
    return expire_lapsed(now)


def requery_attempt(attempt: PaymentAttempt):
    """Pull the order's status from the gateway and apply it."""
    data = gateway.fetch_status(attempt.order_id, user=attempt.payer)
    params = dict(data)
    params.setdefault("ORDERID", attempt.order_id)
    if str(params["ORDERID"]) != attempt.order_id:
        raise GatewayError("status response for a different order", order_id=attempt.order_id)
    event = VerifiedEvent.from_gateway(params, timestamp=timezone.now())
    record_event(attempt, "gateway_requery", {"gateway_status": event.gateway_status})
    return activate(event)


def reconcile_payments(requery: bool = False, age_minutes: int = 2, limit: int = 200) -> dict:
    """
    Re-apply accepted callbacks whose attempt never left pending/expired (the
    activation transaction did not commit), and optionally ask the gateway about
    pending attempts older than `age_minutes`.
    """
    stats = {"replayed": 0, "requeried": 0, "changed": 0, "errors": 0}

    # A failure can only move a pending attempt; success also reopens expired ones
    open_for_success = PaymentAttempt.objects.filter(
        status__in=[PaymentAttempt.STATUS_PENDING, PaymentAttempt.STATUS_EXPIRED]
    ).values("order_id")
    open_for_failure = PaymentAttempt.objects.filter(status=PaymentAttempt.STATUS_PENDING).values("order_id")
    receipts = (
        WebhookReceipt.objects.filter(
            Q(gateway_status=gateway.SUCCESS, order_id__in=open_for_success)
            | Q(gateway_status=gateway.FAILURE, order_id__in=open_for_failure)
        )
        .order_by("received_at")[:limit]
    )
    for receipt in receipts:
        stats["replayed"] += 1
        try:
            result = activate(VerifiedEvent.from_json(receipt.event))
        except PaymentError as e:
            stats["errors"] += 1
            logger.warning("reconcile: receipt for %s not applied: %s", receipt.order_id, e.message)
            continue
        if result.changed:
            stats["changed"] += 1

    if requery:
        cutoff = timezone.now() - timedelta(minutes=age_minutes)
        pending = (
            PaymentAttempt.objects.filter(status=PaymentAttempt.STATUS_PENDING, created_at__lte=cutoff)
            .select_related("payer")
            .order_by("created_at")[:limit]
        )
        for attempt in pending:
            stats["requeried"] += 1
            try:
                result = requery_attempt(attempt)
            except PaymentError as e:
                stats["errors"] += 1
                logger.warning("reconcile: requery for %s failed: %s", attempt.order_id, e.message)
                continue
            if result.changed:
                stats["changed"] += 1

    logger.info("reconcile done: %s", stats)
    return stats
