from datetime import timedelta
from decimal import Decimal

import pytest
from django.core.cache import cache
from django.utils import timezone
from rest_framework.test import APIClient

from payments import gateway
from payments.models import PaymentAttempt
from services.models import ProviderService, Service

GATEWAY_IP = "203.192.240.10"
OUTSIDE_IP = "198.51.100.7"


@pytest.fixture(autouse=True)
def _clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def provider(django_user_model):
    return django_user_model.objects.create_user(
        email="provider@example.com", password="pass12345", role="provider", phone="9876543210",
    )


@pytest.fixture
def other_provider(django_user_model):
    return django_user_model.objects.create_user(
        email="other@example.com", password="pass12345", role="provider",
    )


@pytest.fixture
def service(db):
    return Service.objects.create(name="Plumbing", category="home", base_price=Decimal("500.00"))


@pytest.fixture
def registration(provider, service):
    return ProviderService.objects.create(provider=provider, service=service)


@pytest.fixture
def make_attempt(provider, registration):
    def _make(status=PaymentAttempt.STATUS_PENDING, age=None, **kwargs):
        kwargs.setdefault("payer", provider)
        kwargs.setdefault("target", registration)
        kwargs.setdefault("amount", Decimal("500.00"))
        if status == PaymentAttempt.STATUS_COMPLETED:
            kwargs.setdefault("completed_at", timezone.now())
        attempt = PaymentAttempt.objects.create(status=status, **kwargs)
        if age is not None:
            PaymentAttempt.objects.filter(pk=attempt.pk).update(created_at=timezone.now() - age)
            attempt.refresh_from_db()
        return attempt
    return _make


def gateway_time(when=None) -> str:
    return timezone.localtime(when or timezone.now()).strftime("%Y-%m-%d %H:%M:%S.0")


@pytest.fixture
def signed_callback():
    """Callback params as the gateway would post them, signed with the test merchant key."""
    def _build(order_id, status=gateway.TXN_SUCCESS, amount="500.00", txn_id="20261018111212800110168",
               when=None, **extra):
        params = {
            "MID": "TESTMID0001",
            "ORDERID": order_id,
            "TXNID": txn_id,
            "TXNAMOUNT": amount,
            "STATUS": status,
            "RESPCODE": "01" if status == gateway.TXN_SUCCESS else "227",
            "RESPMSG": "Txn Success" if status == gateway.TXN_SUCCESS else "Txn Failed",
            "TXNDATE": gateway_time(when),
            "CURRENCY": "INR",
        }
        params.update(extra)
        params["CHECKSUMHASH"] = gateway.generate_checksum(params)
        return params
    return _build


@pytest.fixture
def api(provider):
    client = APIClient()
    client.force_authenticate(user=provider)
    return client


@pytest.fixture
def gateway_client():
    return APIClient(REMOTE_ADDR=GATEWAY_IP)


@pytest.fixture
def stale_time():
    return timezone.now() - timedelta(minutes=10)
