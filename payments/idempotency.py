from __future__ import annotations

from datetime import timedelta

from django.conf import settings
from django.db import DatabaseError
from django.db.models import Q
from django.utils import timezone

from .errors import StoreUnavailable
from .models import PaymentAttempt


def grace_window() -> timedelta:
    return timedelta(seconds=int(getattr(settings, "PAYMENT_DUPLICATE_GRACE_SECONDS", 300)))


def check_duplicate(payer, target):
    """
    Existing attempt that should be returned to the client instead of creating a
    new one: any pending attempt, or one completed within the grace window.
    """
    recent = timezone.now() - grace_window()
    try:
        return (
            PaymentAttempt.objects.filter(payer=payer, target=target)
            .filter(
                Q(status=PaymentAttempt.STATUS_PENDING)
                | Q(status=PaymentAttempt.STATUS_COMPLETED, completed_at__gte=recent)
            )
            .order_by("-created_at")
            .first()
        )
    except DatabaseError as e:
        raise StoreUnavailable(f"ledger lookup failed: {e}") from e
