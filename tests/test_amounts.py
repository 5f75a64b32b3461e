from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from payments.amounts import validate
from payments.errors import AmountMismatch, UnknownTarget
from services.models import ServicePricing

pytestmark = pytest.mark.django_db


def test_base_price_applies_without_plans(registration):
    check = validate(registration, "500")
    assert check.expected == Decimal("500.00")
    assert check.currency == "INR"
    assert check.plan is None


def test_client_amount_lower_than_price_is_rejected(registration):
    with pytest.raises(AmountMismatch) as exc:
        validate(registration, Decimal("1.00"))
    body = exc.value.as_dict()
    assert body["code"] == "amount_mismatch"
    assert body["expected"] == "500.00"
    assert body["received"] == "1.00"


def test_tolerance_is_zero(registration):
    with pytest.raises(AmountMismatch):
        validate(registration, "500.001")
    with pytest.raises(AmountMismatch):
        validate(registration, "499.99")


def test_currency_must_match(registration):
    with pytest.raises(AmountMismatch) as exc:
        validate(registration, "500.00", currency="usd")
    assert exc.value.as_dict()["received_currency"] == "USD"


def test_default_plan_wins_over_priority(registration, service):
    ServicePricing.objects.create(service=service, plan_name="promo", price=Decimal("299.00"), priority=10)
    default = ServicePricing.objects.create(service=service, plan_name="standard", price=Decimal("450.00"),
                                            is_default=True)
    check = validate(registration, "450.00")
    assert check.plan == default


def test_highest_priority_plan_wins_among_non_defaults(registration, service):
    ServicePricing.objects.create(service=service, plan_name="low", price=Decimal("300.00"), priority=1)
    high = ServicePricing.objects.create(service=service, plan_name="high", price=Decimal("350.00"), priority=5)
    assert validate(registration, "350").plan == high


def test_plans_outside_their_window_or_inactive_are_ignored(registration, service):
    now = timezone.now()
    ServicePricing.objects.create(service=service, plan_name="future", price=Decimal("100.00"),
                                  is_default=True, effective_from=now + timedelta(days=1))
    ServicePricing.objects.create(service=service, plan_name="ended", price=Decimal("150.00"),
                                  is_default=True, effective_to=now - timedelta(days=1))
    ServicePricing.objects.create(service=service, plan_name="off", price=Decimal("200.00"),
                                  is_default=True, is_active=False)
    check = validate(registration, "500.00")
    assert check.plan is None


def test_unknown_target(db):
    with pytest.raises(UnknownTarget):
        validate(987654, "500")


def test_currency_comes_from_the_catalog(registration, service, settings):
    service.currency_code = "usd"
    service.save()
    settings.PAYMENT_CURRENCY = "INR"
    assert validate(registration, "500.00").currency == "USD"
    with pytest.raises(AmountMismatch):
        validate(registration, "500.00", "INR")
