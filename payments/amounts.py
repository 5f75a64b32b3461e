from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from django.db import DatabaseError

from services.entitlements import get_price
from services.models import ProviderService, ServicePricing

from .errors import AmountMismatch, StoreUnavailable, UnknownTarget

TWO_PLACES = Decimal("0.01")


def q(amount: Decimal | int | float | str) -> Decimal:
    """Quantize to 2dp for storage and display."""
    d = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    return d.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class AmountCheck:
    expected: Decimal
    currency: str
    plan: Optional[ServicePricing] = None


def validate(target, claimed_amount, currency: str | None = None) -> AmountCheck:
    """
    Compare the client's claimed amount with the catalog price, tolerance zero.
    The client price is only ever compared, never charged.
    """
    target_id = getattr(target, "pk", target)
    try:
        price = get_price(target_id)
    except ProviderService.DoesNotExist:
        raise UnknownTarget(target_id)
    except DatabaseError as e:
        raise StoreUnavailable(f"pricing lookup failed: {e}") from e

    try:
        received = Decimal(str(claimed_amount))
    except (InvalidOperation, ValueError):
        raise AmountMismatch(price.amount, claimed_amount, price.currency)

    if currency and currency.upper() != price.currency:
        raise AmountMismatch(price.amount, received, price.currency, received_currency=currency.upper())

    if not received.is_finite() or received != price.amount:
        raise AmountMismatch(q(price.amount), received, price.currency)

    return AmountCheck(expected=q(price.amount), currency=price.currency, plan=price.plan)
