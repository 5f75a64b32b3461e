# payments/initiation.py
from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass

from django.db import DatabaseError, IntegrityError, transaction

from services.models import ProviderService

from . import amounts, gateway, locks
from .audit import record_event, security_event
from .errors import AmountMismatch, DuplicateAttempt, LockBusy, NotRetryable, StoreUnavailable, UnknownTarget
from .idempotency import check_duplicate
from .models import PaymentAttempt

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InitiationResult:
    attempt: PaymentAttempt
    order: gateway.GatewayOrder


def _clean_ip(raw):
    try:
        return str(ipaddress.ip_address(str(raw or "").strip()))
    except ValueError:
        return None


def _latest_pending(payer, target):
    return (
        PaymentAttempt.objects.filter(payer=payer, target=target, status=PaymentAttempt.STATUS_PENDING)
        .order_by("-created_at")
        .first()
    )


def _resolve_target(payer, target_id) -> ProviderService:
    try:
        return ProviderService.objects.select_related("service").get(pk=target_id, provider=payer)
    except (ProviderService.DoesNotExist, ValueError, TypeError):
        raise UnknownTarget(target_id)
    except DatabaseError as e:
        raise StoreUnavailable(f"registration lookup failed: {e}") from e


def initiate(payer, target_id, claimed_amount, currency=None, parent=None, client_context=None) -> InitiationResult:
    """
    Open a pending payment for one of the payer's registrations.

    Under the (payer, target) lock: duplicate check, price check, ledger insert.
    The lock is released before the gateway order is built.
    """
    ctx = client_context or {}
    target = _resolve_target(payer, target_id)

    try:
        with locks.holding(payer, target):
            existing = check_duplicate(payer, target)
            if existing is not None:
                raise DuplicateAttempt(existing)

            try:
                check = amounts.validate(target, claimed_amount, currency)
            except AmountMismatch as e:
                security_event(
                    "amount_mismatch", ip_address=_clean_ip(ctx.get("ip_address")),
                    action_taken="rejected", details=e.as_dict(),
                )
                raise

            try:
                with transaction.atomic():
                    attempt = PaymentAttempt.objects.create(
                        payer=payer,
                        target=target,
                        pricing_plan=check.plan,
                        amount=check.expected,
                        currency=check.currency,
                        parent=parent,
                        retry_count=(parent.retry_count + 1) if parent else 0,
                        ip_address=_clean_ip(ctx.get("ip_address")),
                        user_agent=ctx.get("user_agent") or "",
                        device_fingerprint=ctx.get("device_fingerprint") or "",
                    )
            except IntegrityError:
                # Another request got its pending row in first
                winner = _latest_pending(payer, target)
                if winner is None:
                    raise StoreUnavailable("ledger insert conflicted without a pending attempt")
                raise DuplicateAttempt(winner)
            except DatabaseError as e:
                raise StoreUnavailable(f"ledger insert failed: {e}") from e

            record_event(attempt, "payment_initiated", {
                "amount": str(attempt.amount),
                "currency": attempt.currency,
                "pricing_plan": check.plan.plan_name if check.plan else None,
                "parent": parent.order_id if parent else None,
            }, user=payer, ip_address=attempt.ip_address)
    except LockBusy:
        pending = _latest_pending(payer, target)
        raise LockBusy(order_id=pending.order_id if pending else None) from None

    order = gateway.create_order(attempt, payer)
    logger.info("payment %s initiated for registration %s (%s %s)",
                attempt.order_id, target.pk, attempt.currency, attempt.amount)
    return InitiationResult(attempt=attempt, order=order)


def retry(payer, parent_order_id, claimed_amount=None, currency=None, client_context=None) -> InitiationResult:
    """New attempt linked to one of the payer's failed or expired attempts."""
    parent = (
        PaymentAttempt.objects.filter(
            order_id=parent_order_id, payer=payer, status__in=PaymentAttempt.RETRYABLE
        ).first()
    )
    if parent is None:
        raise NotRetryable(parent_order_id)
    return initiate(
        payer,
        parent.target_id,
        parent.amount if claimed_amount is None else claimed_amount,
        currency=currency or parent.currency,
        parent=parent,
        client_context=client_context,
    )
