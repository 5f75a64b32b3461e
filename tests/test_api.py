from datetime import timedelta
from unittest.mock import patch

import pytest
from django.urls import reverse
from django.utils.dateparse import parse_datetime
from rest_framework.test import APIClient

from payments import gateway
from payments.errors import GatewayError, StoreUnavailable
from payments.models import PaymentAttempt, PaymentSecurityEvent, WebhookReceipt
from services.models import ProviderService
from tests.conftest import GATEWAY_IP, OUTSIDE_IP

pytestmark = pytest.mark.django_db

INITIATE = reverse("payments_initiate")
RETRY = reverse("payments_retry")
WEBHOOK = reverse("payments_webhook")
HISTORY = reverse("payments_history")


def _initiate(api, registration, amount="500.00", **extra):
    return api.post(INITIATE, {"target_id": registration.pk, "amount": amount, **extra}, format="json")


# ---- initiation -------------------------------------------------------------

def test_registration_paid_end_to_end(api, gateway_client, registration, signed_callback,
                                      django_capture_on_commit_callbacks):
    res = _initiate(api, registration)
    assert res.status_code == 201, res.data
    order_id = res.data["order_id"]
    assert res.data["status"] == "pending"
    assert res.data["amount"] == "500.00"
    assert res.data["gateway_url"].endswith("/order/process")
    assert gateway.valid_checksum(res.data["gateway_params"])

    with django_capture_on_commit_callbacks(execute=True):
        hook = gateway_client.post(WEBHOOK, signed_callback(order_id))
    assert hook.status_code == 200
    assert hook.data == {"status": "ok", "order_id": order_id, "result": "activated"}

    status_res = api.get(reverse("payments_status", args=[order_id]))
    assert status_res.status_code == 200
    payment, reg = status_res.data["payment"], status_res.data["registration"]
    assert payment["status"] == "completed"
    assert reg["payment_status"] == "active"
    assert reg["is_active"] is True
    start, end = parse_datetime(reg["payment_start_date"]), parse_datetime(reg["payment_end_date"])
    assert end - start == timedelta(days=365)
    assert registration.provider.notifications.filter(title="Payment successful").exists()


def test_double_click_returns_the_same_order(api, registration):
    first = _initiate(api, registration)
    second = _initiate(api, registration)

    assert first.status_code == 201
    assert second.status_code == 409
    assert second.data["code"] == "duplicate_attempt"
    assert second.data["order_id"] == first.data["order_id"]
    assert PaymentAttempt.objects.count() == 1


def test_amount_mismatch_is_rejected_with_expected_price(api, registration):
    res = _initiate(api, registration, amount="1.00")
    assert res.status_code == 400
    assert res.data["code"] == "amount_mismatch"
    assert res.data["expected"] == "500.00"
    assert not PaymentAttempt.objects.exists()


def test_currency_is_checked(api, registration):
    res = _initiate(api, registration, currency="usd")
    assert res.status_code == 400
    assert res.data["received_currency"] == "USD"


def test_unknown_registration_is_404(api, other_provider, service):
    foreign = ProviderService.objects.create(provider=other_provider, service=service)
    res = _initiate(api, foreign)
    assert res.status_code == 404
    assert res.data["code"] == "unknown_target"


def test_invalid_body_is_400(api):
    res = api.post(INITIATE, {"amount": "abc"}, format="json")
    assert res.status_code == 400


def test_store_outage_is_503_and_retryable(api, registration):
    with patch("payments.views.initiate", side_effect=StoreUnavailable("db down")):
        res = _initiate(api, registration)
    assert res.status_code == 503
    assert res.data["retryable"] is True


def test_initiation_requires_authentication(registration):
    res = APIClient().post(INITIATE, {"target_id": registration.pk, "amount": "500.00"}, format="json")
    assert res.status_code in (401, 403)


def test_retry_endpoint(api, make_attempt):
    failed = make_attempt(status=PaymentAttempt.STATUS_FAILED)
    res = api.post(RETRY, {"order_id": failed.order_id}, format="json")
    assert res.status_code == 201
    child = PaymentAttempt.objects.get(order_id=res.data["order_id"])
    assert child.parent == failed

    missing = api.post(RETRY, {"order_id": "ORDER_NOPE"}, format="json")
    assert missing.status_code == 404
    assert missing.data["code"] == "not_retryable"


# ---- webhook ----------------------------------------------------------------

def test_replayed_webhook_is_rejected_without_state_change(gateway_client, make_attempt, registration,
                                                           signed_callback):
    attempt = make_attempt()
    params = signed_callback(attempt.order_id)
    assert gateway_client.post(WEBHOOK, params).status_code == 200
    registration.refresh_from_db()
    end = registration.payment_end_date

    again = gateway_client.post(WEBHOOK, params)
    assert again.status_code == 400
    assert again.data == {"status": "rejected"}
    registration.refresh_from_db()
    assert registration.payment_end_date == end


def test_spoofed_origin_is_403(make_attempt, signed_callback):
    attempt = make_attempt()
    res = APIClient(REMOTE_ADDR=OUTSIDE_IP).post(WEBHOOK, signed_callback(attempt.order_id))
    assert res.status_code == 403
    assert res.data == {"status": "rejected"}
    attempt.refresh_from_db()
    assert attempt.status == PaymentAttempt.STATUS_PENDING


def test_forwarded_for_is_only_trusted_when_configured(make_attempt, signed_callback, settings):
    attempt = make_attempt()
    client = APIClient(REMOTE_ADDR=OUTSIDE_IP, HTTP_X_FORWARDED_FOR=GATEWAY_IP)
    assert client.post(WEBHOOK, signed_callback(attempt.order_id)).status_code == 403

    settings.GATEWAY_TRUST_FORWARDED_FOR = True
    assert client.post(WEBHOOK, signed_callback(attempt.order_id)).status_code == 200


def test_forged_checksum_is_400(gateway_client, make_attempt, signed_callback):
    attempt = make_attempt()
    params = signed_callback(attempt.order_id)
    params["CHECKSUMHASH"] = "0" * 64
    res = gateway_client.post(WEBHOOK, params)
    assert res.status_code == 400
    assert res.data == {"status": "rejected"}
    attempt.refresh_from_db()
    assert attempt.status == PaymentAttempt.STATUS_PENDING


def test_webhook_accepts_json_body(gateway_client, make_attempt, signed_callback):
    attempt = make_attempt()
    res = gateway_client.post(WEBHOOK, signed_callback(attempt.order_id), format="json")
    assert res.status_code == 200


@pytest.mark.parametrize("body", [[1, 2, 3], "hello", 5])
def test_non_object_json_body_is_rejected_not_a_crash(gateway_client, body):
    outside = APIClient(REMOTE_ADDR=OUTSIDE_IP).post(WEBHOOK, body, format="json")
    assert outside.status_code == 403
    assert outside.data == {"status": "rejected"}

    from_gateway = gateway_client.post(WEBHOOK, body, format="json")
    assert from_gateway.status_code == 400
    assert from_gateway.data == {"status": "rejected"}


def test_failure_webhook_marks_attempt_failed(gateway_client, make_attempt, signed_callback):
    attempt = make_attempt()
    res = gateway_client.post(WEBHOOK, signed_callback(attempt.order_id, status=gateway.TXN_FAILURE))
    assert res.data["result"] == "failed"
    attempt.refresh_from_db()
    assert attempt.status == PaymentAttempt.STATUS_FAILED


def test_webhook_for_unknown_order_is_acknowledged(gateway_client, signed_callback):
    res = gateway_client.post(WEBHOOK, signed_callback("ORDER_NOT_OURS"))
    assert res.status_code == 200
    assert res.data["result"] == "unknown_order"


def test_success_for_failed_attempt_is_acknowledged_and_audited(gateway_client, make_attempt, signed_callback):
    attempt = make_attempt(status=PaymentAttempt.STATUS_FAILED)
    res = gateway_client.post(WEBHOOK, signed_callback(attempt.order_id))
    assert res.status_code == 200
    attempt.refresh_from_db()
    assert attempt.status == PaymentAttempt.STATUS_FAILED
    assert PaymentSecurityEvent.objects.filter(event_type="activation_conflict", order_id=attempt.order_id).exists()


def test_activation_outage_is_503_and_receipt_kept(gateway_client, make_attempt, signed_callback):
    attempt = make_attempt()
    with patch("payments.views.activate", side_effect=StoreUnavailable("db down")):
        res = gateway_client.post(WEBHOOK, signed_callback(attempt.order_id))
    assert res.status_code == 503
    assert WebhookReceipt.objects.filter(order_id=attempt.order_id).exists()


# ---- status / history / verify ----------------------------------------------

def test_status_of_someone_elses_order_is_404(make_attempt, other_provider):
    attempt = make_attempt()
    client = APIClient()
    client.force_authenticate(user=other_provider)
    assert client.get(reverse("payments_status", args=[attempt.order_id])).status_code == 404


def test_history_is_paginated_and_filterable(api, make_attempt):
    make_attempt(status=PaymentAttempt.STATUS_FAILED)
    make_attempt(status=PaymentAttempt.STATUS_EXPIRED)
    make_attempt()

    res = api.get(HISTORY)
    assert res.status_code == 200
    assert res.data["count"] == 3

    failed = api.get(HISTORY, {"status": "failed"})
    assert failed.data["count"] == 1
    assert failed.data["results"][0]["status"] == "failed"

    assert api.get(HISTORY, {"status": "bogus"}).status_code == 400


def test_history_only_shows_own_attempts(make_attempt, other_provider):
    make_attempt()
    client = APIClient()
    client.force_authenticate(user=other_provider)
    assert client.get(HISTORY).data["count"] == 0


def test_verify_pulls_status_from_gateway(api, make_attempt):
    attempt = make_attempt()
    body = {"ORDERID": attempt.order_id, "STATUS": gateway.TXN_SUCCESS, "TXNID": "TXN-77", "TXNAMOUNT": "500.00"}
    with patch("payments.gateway.fetch_status", return_value=body):
        res = api.post(reverse("payments_verify", args=[attempt.order_id]))
    assert res.status_code == 200
    assert res.data["payment"]["status"] == "completed"
    assert res.data["registration"]["payment_status"] == "active"


def test_verify_reports_gateway_outage(api, make_attempt):
    attempt = make_attempt()
    with patch("payments.gateway.fetch_status", side_effect=GatewayError("timeout", order_id=attempt.order_id)):
        res = api.post(reverse("payments_verify", args=[attempt.order_id]))
    assert res.status_code == 502
    assert res.data["code"] == "gateway_error"


def test_verify_does_not_requery_finished_payments(api, make_attempt):
    attempt = make_attempt(status=PaymentAttempt.STATUS_FAILED)
    with patch("payments.gateway.fetch_status") as fetch:
        res = api.post(reverse("payments_verify", args=[attempt.order_id]))
    assert res.status_code == 200
    fetch.assert_not_called()


# ---- misc -------------------------------------------------------------------

def test_registrations_listing_shows_price(api, registration):
    res = api.get(reverse("registration-list"))
    assert res.status_code == 200
    row = res.data["results"][0]
    assert row["id"] == registration.pk
    assert row["price"] == {"amount": "500.00", "currency": "INR", "plan": None}


def test_health(client):
    res = client.get("/api/health/")
    assert res.status_code == 200
    assert res.json()["status"] == "ok"
