# payments/activation.py
"""
Finalize a verified gateway event: attempt status and the provider's
registration change together in one transaction, or not at all.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from django.db import DatabaseError, transaction
from django.utils import timezone

from services.entitlements import get_entitlement, set_active, validity_window

from . import gateway
from .audit import record_event, security_event
from .errors import ActivationConflict, StoreUnavailable
from .models import PaymentAttempt
from .risk import RiskAssessment, load_history, score

logger = logging.getLogger(__name__)

ACTIVATED = "activated"
FAILED = "failed"
NOOP = "noop"
PENDING = "pending"
UNKNOWN = "unknown_order"


@dataclass(frozen=True)
class ActivationResult:
    order_id: str
    outcome: str
    status: Optional[str] = None
    attempt: Optional[PaymentAttempt] = None
    risk: Optional[RiskAssessment] = None

    @property
    def changed(self) -> bool:
        return self.outcome in (ACTIVATED, FAILED)


def _client_context(attempt: PaymentAttempt) -> dict:
    return {
        "ip_address": attempt.ip_address,
        "user_agent": attempt.user_agent,
        "device_fingerprint": attempt.device_fingerprint,
    }


def _complete(attempt: PaymentAttempt, event) -> ActivationResult:
    now = timezone.now()
    target = get_entitlement(attempt.target_id, for_update=True)

    risk = score(attempt, _client_context(attempt), load_history(attempt.payer_id, now),
                 gateway_amount=event.amount, now=now)

    previous = attempt.status
    attempt.status = PaymentAttempt.STATUS_COMPLETED
    attempt.gateway_txn_id = event.transaction_id or None
    attempt.gateway_response = event.payload
    attempt.completed_at = now
    attempt.risk_score = risk.score
    attempt.risk_factors = list(risk.factors)
    attempt.flagged_for_review = risk.flagged
    attempt.save(update_fields=[
        "status", "gateway_txn_id", "gateway_response", "completed_at",
        "risk_score", "risk_factors", "flagged_for_review", "updated_at",
    ])

    window = validity_window(target, now)
    set_active(target, window, attempt)

    record_event(attempt, "payment_completed", {
        "previous_status": previous,
        "transaction_id": event.transaction_id,
        "valid_until": window.end.isoformat(),
        "risk_score": str(risk.score),
    })
    if risk.flagged:
        logger.warning("payment %s flagged for review (score=%s factors=%s)",
                       attempt.order_id, risk.score, ",".join(risk.factors))
        security_event(
            "high_risk_payment", attempt=attempt, ip_address=attempt.ip_address,
            risk_score=risk.score, risk_factors=risk.factors, action_taken="flagged_for_review",
        )
    logger.info("payment %s completed; registration %s active until %s",
                attempt.order_id, target.pk, window.end.date())
    return ActivationResult(attempt.order_id, ACTIVATED, attempt.status, attempt, risk)


def _fail(attempt: PaymentAttempt, event) -> ActivationResult:
    attempt.status = PaymentAttempt.STATUS_FAILED
    attempt.gateway_response = event.payload
    if event.transaction_id:
        attempt.gateway_txn_id = event.transaction_id
    attempt.save(update_fields=["status", "gateway_response", "gateway_txn_id", "updated_at"])
    record_event(attempt, "payment_failed", {
        "respcode": event.payload.get("RESPCODE"),
        "respmsg": event.payload.get("RESPMSG"),
    })
    logger.info("payment %s failed at gateway (%s)", attempt.order_id, event.payload.get("RESPMSG", "-"))
    return ActivationResult(attempt.order_id, FAILED, attempt.status, attempt)


def activate(event) -> ActivationResult:
    """
    Apply a VerifiedEvent. Safe to call any number of times for the same event.

    Raises ActivationConflict for a success reported against a failed attempt and
    StoreUnavailable when the database gives out (nothing is committed then).
    """
    try:
        with transaction.atomic():
            attempt = (
                PaymentAttempt.objects.select_for_update()
                .filter(order_id=event.order_id)
                .first()
            )
            if attempt is None:
                logger.warning("gateway event for unknown order %s ignored", event.order_id)
                return ActivationResult(event.order_id, UNKNOWN)

            if attempt.status == PaymentAttempt.STATUS_COMPLETED:
                record_event(attempt, "activation_noop", {"gateway_status": event.gateway_status})
                return ActivationResult(attempt.order_id, NOOP, attempt.status, attempt)

            if event.gateway_status == gateway.PENDING:
                record_event(attempt, "webhook_pending", {"transaction_id": event.transaction_id})
                return ActivationResult(attempt.order_id, PENDING, attempt.status, attempt)

            if event.gateway_status == gateway.SUCCESS:
                if attempt.status == PaymentAttempt.STATUS_FAILED:
                    raise ActivationConflict(
                        "Gateway reported success for a payment already marked failed.",
                        order_id=attempt.order_id,
                        transaction_id=event.transaction_id or None,
                    )
                return _complete(attempt, event)

            if attempt.status == PaymentAttempt.STATUS_PENDING:
                return _fail(attempt, event)
            return ActivationResult(attempt.order_id, NOOP, attempt.status, attempt)
    except DatabaseError as e:
        logger.exception("activation rolled back for order %s", event.order_id)
        raise StoreUnavailable(f"activation failed: {e}", order_id=event.order_id) from e
