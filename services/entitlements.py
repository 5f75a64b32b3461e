# services/entitlements.py
"""
Pricing and entitlement lookups used by the payment subsystem.

These are the only entry points payments code uses to read catalog prices and
to flip a provider's registration on or off.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.db.models import F
from django.utils import timezone

from .models import ProviderService, ServicePricing

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Price:
    amount: Decimal
    currency: str
    plan: Optional[ServicePricing] = None


@dataclass(frozen=True)
class ValidityWindow:
    start: datetime
    end: datetime


def validity_days() -> int:
    return int(getattr(settings, "REGISTRATION_VALIDITY_DAYS", 365))


def get_entitlement(target_id, for_update: bool = False) -> ProviderService:
    """Raises ProviderService.DoesNotExist for unknown targets."""
    qs = ProviderService.objects.select_related("service")
    if for_update:
        qs = qs.select_for_update()
    return qs.get(pk=target_id)


def get_price(target_id) -> Price:
    """
    Authoritative price for registering `target_id`.

    Effective plans are ranked default-first, then by priority, then by the most
    recent effective_from. Without any effective plan the service base price applies.
    """
    target = get_entitlement(target_id)
    service = target.service
    plan = (
        ServicePricing.objects.effective()
        .filter(service=service)
        .order_by("-is_default", "-priority", F("effective_from").desc(nulls_last=True), "-id")
        .first()
    )
    if plan is not None:
        return Price(amount=plan.price, currency=plan.currency_code.upper(), plan=plan)
    return Price(amount=service.base_price, currency=service.currency_code.upper())


def validity_window(target: ProviderService, starting_at: datetime, days: int | None = None) -> ValidityWindow:
    """
    New window for a completed payment. A still-running registration is extended
    from its current end date; anything else starts at `starting_at`.
    """
    period = timedelta(days=days if days is not None else validity_days())
    if (
        target.payment_status == ProviderService.STATUS_ACTIVE
        and target.payment_end_date
        and target.payment_end_date > starting_at
    ):
        return ValidityWindow(
            start=target.payment_start_date or starting_at,
            end=target.payment_end_date + period,
        )
    return ValidityWindow(start=starting_at, end=starting_at + period)


def set_active(target: ProviderService, window: ValidityWindow, attempt=None) -> ProviderService:
    """Caller holds the row lock and the surrounding transaction."""
    target.payment_status = ProviderService.STATUS_ACTIVE
    target.payment_start_date = window.start
    target.payment_end_date = window.end
    target.activated_by = attempt
    target.save(update_fields=[
        "payment_status", "payment_start_date", "payment_end_date", "activated_by", "updated_at",
    ])
    return target


def expire_lapsed(now: datetime | None = None) -> int:
    """Mark active registrations whose window has ended as expired."""
    now = now or timezone.now()
    count = ProviderService.objects.filter(
        payment_status=ProviderService.STATUS_ACTIVE,
        payment_end_date__lte=now,
    ).update(payment_status=ProviderService.STATUS_EXPIRED, updated_at=now)
    if count:
        logger.info("expired %s lapsed provider registration(s)", count)
    return count
