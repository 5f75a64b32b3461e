from datetime import timedelta
from io import StringIO
from unittest.mock import patch

import pytest
from django.core.management import call_command
from django.db import DatabaseError
from django.utils import timezone

from payments import gateway, locks, tasks
from payments.activation import activate
from payments.errors import GatewayError, StoreUnavailable
from payments.models import PaymentAttempt, PaymentEvent, PaymentLock, WebhookReceipt
from payments.webhooks import RawCallback, verify
from services.models import ProviderService
from tests.conftest import GATEWAY_IP

pytestmark = pytest.mark.django_db


def test_stale_pending_attempts_expire(make_attempt):
    old = make_attempt(age=timedelta(minutes=45))
    assert tasks.expire_pending_attempts(timeout_minutes=30) == 1
    old.refresh_from_db()
    assert old.status == PaymentAttempt.STATUS_EXPIRED
    assert PaymentEvent.objects.filter(attempt=old, event_type="payment_expired").exists()


def test_fresh_pending_attempts_are_left_alone(make_attempt):
    fresh = make_attempt(age=timedelta(minutes=5))
    assert tasks.expire_pending_attempts(timeout_minutes=30) == 0
    fresh.refresh_from_db()
    assert fresh.status == PaymentAttempt.STATUS_PENDING


def test_reclaim_payment_locks(provider, registration, settings):
    settings.PAYMENT_LOCK_BACKEND = "db"
    locks.acquire(provider, registration)
    PaymentLock.objects.update(expires_at=timezone.now() - timedelta(seconds=1))
    assert tasks.reclaim_payment_locks() == 1


def test_purge_webhook_receipts_keeps_recent(signed_callback):
    verify(RawCallback(signed_callback("ORDER_OLD", txn_id="T1"), GATEWAY_IP))
    verify(RawCallback(signed_callback("ORDER_NEW", txn_id="T2"), GATEWAY_IP))
    WebhookReceipt.objects.filter(order_id="ORDER_OLD").update(received_at=timezone.now() - timedelta(hours=80))

    assert tasks.purge_webhook_receipts(retention_hours=72) == 1
    assert list(WebhookReceipt.objects.values_list("order_id", flat=True)) == ["ORDER_NEW"]


def test_expire_registrations(registration):
    ProviderService.objects.filter(pk=registration.pk).update(
        payment_status=ProviderService.STATUS_ACTIVE,
        payment_start_date=timezone.now() - timedelta(days=366),
        payment_end_date=timezone.now() - timedelta(days=1),
    )
    assert tasks.expire_registrations() == 1
    registration.refresh_from_db()
    assert registration.payment_status == ProviderService.STATUS_EXPIRED


def test_reconcile_replays_receipt_whose_activation_never_committed(make_attempt, registration, signed_callback):
    attempt = make_attempt()
    event = verify(RawCallback(signed_callback(attempt.order_id), GATEWAY_IP))
    with patch("payments.activation.set_active", side_effect=DatabaseError("lost connection")):
        with pytest.raises(StoreUnavailable):
            activate(event)
    attempt.refresh_from_db()
    assert attempt.status == PaymentAttempt.STATUS_PENDING

    stats = tasks.reconcile_payments()
    assert stats["replayed"] == 1
    assert stats["changed"] == 1
    attempt.refresh_from_db()
    registration.refresh_from_db()
    assert attempt.status == PaymentAttempt.STATUS_COMPLETED
    assert registration.payment_status == ProviderService.STATUS_ACTIVE

    # Nothing left to do on the next pass
    assert tasks.reconcile_payments()["replayed"] == 0


def test_reconcile_is_not_starved_by_failures_for_expired_attempts(make_attempt, registration, signed_callback):
    # Late failure callbacks for attempts the sweep already expired can never apply
    for n in range(3):
        expired = make_attempt(status=PaymentAttempt.STATUS_EXPIRED)
        verify(RawCallback(signed_callback(expired.order_id, status=gateway.TXN_FAILURE, txn_id=f"F-{n}"),
                           GATEWAY_IP))

    attempt = make_attempt()
    event = verify(RawCallback(signed_callback(attempt.order_id), GATEWAY_IP))
    WebhookReceipt.objects.filter(receipt_key=event.receipt_key).update(
        received_at=timezone.now() + timedelta(seconds=5)
    )

    stats = tasks.reconcile_payments(limit=3)
    assert stats["replayed"] == 1
    assert stats["changed"] == 1
    attempt.refresh_from_db()
    assert attempt.status == PaymentAttempt.STATUS_COMPLETED
    assert tasks.reconcile_payments(limit=3)["replayed"] == 0


def test_reconcile_requery_activates_from_gateway_status(make_attempt, registration):
    attempt = make_attempt(age=timedelta(minutes=10))
    body = {"ORDERID": attempt.order_id, "STATUS": gateway.TXN_SUCCESS, "TXNID": "TXN-9",
            "TXNAMOUNT": "500.00", "RESPCODE": "01"}
    with patch("payments.gateway.fetch_status", return_value=body):
        stats = tasks.reconcile_payments(requery=True, age_minutes=2)

    assert stats["requeried"] == 1
    assert stats["changed"] == 1
    attempt.refresh_from_db()
    assert attempt.status == PaymentAttempt.STATUS_COMPLETED
    assert attempt.gateway_txn_id == "TXN-9"


def test_reconcile_requery_counts_gateway_errors(make_attempt):
    make_attempt(age=timedelta(minutes=10))
    with patch("payments.gateway.fetch_status", side_effect=GatewayError("timeout")):
        stats = tasks.reconcile_payments(requery=True)
    assert stats["errors"] == 1
    assert stats["changed"] == 0


def test_requery_rejects_status_for_another_order(make_attempt):
    attempt = make_attempt()
    with patch("payments.gateway.fetch_status", return_value={"ORDERID": "SOMETHING_ELSE", "STATUS": "TXN_SUCCESS"}):
        with pytest.raises(GatewayError):
            tasks.requery_attempt(attempt)


# ---- management commands ----------------------------------------------------

def test_expire_pending_payments_command(make_attempt):
    make_attempt(age=timedelta(hours=2))
    out = StringIO()
    call_command("expire_pending_payments", stdout=out)
    assert "Expired 1 pending payment(s)." in out.getvalue()


def test_reconcile_payments_command_reports(db):
    out = StringIO()
    call_command("reconcile_payments", stdout=out)
    assert "Replayed 0 receipt(s)" in out.getvalue()


def test_housekeeping_commands_run(db):
    for name in ("reclaim_payment_locks", "purge_webhook_receipts", "expire_registrations"):
        out = StringIO()
        call_command(name, stdout=out)
        assert out.getvalue().strip()
