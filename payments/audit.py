# payments/audit.py
"""Best-effort writers for PaymentEvent / PaymentSecurityEvent rows."""
import logging

from django.db import DatabaseError, transaction

from .models import PaymentEvent, PaymentSecurityEvent

logger = logging.getLogger(__name__)


def record_event(attempt, event_type: str, data=None, user=None, ip_address=None):
    try:
        # Savepoint keeps an enclosing transaction usable if the insert fails
        with transaction.atomic():
            return PaymentEvent.objects.create(
                attempt=attempt,
                event_type=event_type,
                event_data=data or {},
                user=user,
                ip_address=ip_address or None,
            )
    except DatabaseError:
        logger.warning("could not record payment event %s for %s", event_type,
                       getattr(attempt, "order_id", None), exc_info=True)
        return None


def security_event(event_type: str, *, order_id: str = "", attempt=None, ip_address=None,
                   risk_score=0, risk_factors=None, action_taken: str = "", details=None):
    try:
        with transaction.atomic():
            return PaymentSecurityEvent.objects.create(
                attempt=attempt,
                order_id=order_id or getattr(attempt, "order_id", "") or "",
                event_type=event_type,
                risk_score=risk_score,
                risk_factors=list(risk_factors or []),
                action_taken=action_taken,
                ip_address=ip_address or None,
                details=details or {},
            )
    except DatabaseError:
        logger.warning("could not record security event %s for %s", event_type, order_id, exc_info=True)
        return None
