# payments/risk.py
from __future__ import annotations

import ipaddress
import statistics
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.utils import timezone

from .models import PaymentAttempt

# ---------------------------------------------------------------------------
# Weights (score is the clamped sum of the triggered factors)
# ---------------------------------------------------------------------------
WEIGHTS = {
    "high_velocity": Decimal("0.40"),
    "high_failure_rate": Decimal("0.30"),
    "amount_above_history": Decimal("0.20"),
    "high_amount": Decimal("0.20"),
    "ip_reputation": Decimal("0.30"),
    "missing_device": Decimal("0.10"),
    "gateway_amount_mismatch": Decimal("0.50"),
    "unusual_hour": Decimal("0.10"),
}

LEVEL_HIGH = "high"
LEVEL_MEDIUM = "medium"
LEVEL_LOW = "low"

UNUSUAL_HOURS = range(3, 7)  # 03:00-06:59 local
HISTORY_MULTIPLIER = 3


@dataclass(frozen=True)
class PayerHistory:
    attempts_last_hour: int = 0
    finished_attempts: int = 0
    failed_attempts: int = 0
    completed_amounts: tuple = ()

    @property
    def failure_rate(self) -> float:
        if not self.finished_attempts:
            return 0.0
        return self.failed_attempts / self.finished_attempts

    @property
    def median_completed(self) -> Optional[Decimal]:
        if not self.completed_amounts:
            return None
        return Decimal(str(statistics.median(self.completed_amounts)))


@dataclass(frozen=True)
class RiskAssessment:
    score: Decimal
    factors: tuple
    level: str

    @property
    def flagged(self) -> bool:
        return self.score > threshold()


def threshold() -> Decimal:
    return Decimal(str(getattr(settings, "RISK_REVIEW_THRESHOLD", 0.7)))


def _level(score: Decimal) -> str:
    if score > Decimal("0.7"):
        return LEVEL_HIGH
    if score > Decimal("0.4"):
        return LEVEL_MEDIUM
    return LEVEL_LOW


def _ip_listed(raw) -> bool:
    try:
        ip = ipaddress.ip_address(str(raw or "").strip())
    except ValueError:
        return False
    for cidr in getattr(settings, "RISK_BLOCKED_IP_RANGES", []) or []:
        cidr = str(cidr).strip()
        if not cidr:
            continue
        net = ipaddress.ip_network(cidr, strict=False)
        if net.version == ip.version and ip in net:
            return True
    return False


def load_history(payer, now: datetime | None = None) -> PayerHistory:
    now = now or timezone.now()
    qs = PaymentAttempt.objects.filter(payer=payer)
    finished = qs.filter(status__in=[PaymentAttempt.STATUS_COMPLETED, PaymentAttempt.STATUS_FAILED])
    return PayerHistory(
        attempts_last_hour=qs.filter(created_at__gte=now - timedelta(hours=1)).count(),
        finished_attempts=finished.count(),
        failed_attempts=finished.filter(status=PaymentAttempt.STATUS_FAILED).count(),
        completed_amounts=tuple(
            qs.filter(status=PaymentAttempt.STATUS_COMPLETED).values_list("amount", flat=True)
        ),
    )


def score(attempt, client_context: dict | None, history: PayerHistory,
          gateway_amount: Decimal | None = None, now: datetime | None = None) -> RiskAssessment:
    """
    Advisory fraud score for an attempt. No I/O: everything comes in as arguments.
    A high score only flags the attempt for review.
    """
    ctx = client_context or {}
    now = now or timezone.now()
    amount = Decimal(str(attempt.amount))
    factors = []

    if history.attempts_last_hour > int(getattr(settings, "RISK_VELOCITY_LIMIT", 3)):
        factors.append("high_velocity")
    if history.failure_rate > 0.5:
        factors.append("high_failure_rate")

    median = history.median_completed
    if median and amount > median * HISTORY_MULTIPLIER:
        factors.append("amount_above_history")
    if amount >= Decimal(str(getattr(settings, "RISK_HIGH_AMOUNT", "50000"))):
        factors.append("high_amount")

    if _ip_listed(ctx.get("ip_address")):
        factors.append("ip_reputation")
    if not ctx.get("device_fingerprint"):
        factors.append("missing_device")

    if gateway_amount is not None and Decimal(str(gateway_amount)) != amount:
        factors.append("gateway_amount_mismatch")

    if timezone.localtime(now).hour in UNUSUAL_HOURS:
        factors.append("unusual_hour")

    total = min(sum((WEIGHTS[f] for f in factors), Decimal("0")), Decimal("1"))
    total = total.quantize(Decimal("0.01"))
    return RiskAssessment(score=total, factors=tuple(factors), level=_level(total))
