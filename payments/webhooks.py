# payments/webhooks.py
"""
Authentication of gateway callbacks.

Every callback passes three gates, in order, before anything downstream sees it:
origin (source IP inside the gateway's published ranges), checksum (HMAC over
the posted fields) and freshness/replay (recent TXNDATE, receipt not seen
before). Rejections are logged, written to PaymentSecurityEvent and raised as
WebhookRejected subclasses; they never change payment state.
"""
from __future__ import annotations

import hashlib
import ipaddress
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Optional

from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from . import gateway
from .audit import security_event
from .errors import BadSignature, Replay, Stale, StoreUnavailable, UnauthorizedOrigin, WebhookRejected
from .models import WebhookReceipt

logger = logging.getLogger(__name__)

MAX_FUTURE_SKEW = timedelta(seconds=60)
NONCE_FIELD = "NONCE"


@dataclass(frozen=True)
class RawCallback:
    params: dict
    remote_addr: Optional[str] = None


@dataclass(frozen=True)
class VerifiedEvent:
    order_id: str
    gateway_status: str  # success | failure | pending
    amount: Optional[Decimal] = None
    transaction_id: str = ""
    timestamp: Optional[datetime] = None
    payload: dict = field(default_factory=dict)
    receipt_key: str = ""

    @property
    def is_success(self) -> bool:
        return self.gateway_status == gateway.SUCCESS

    @classmethod
    def from_gateway(cls, params: dict, timestamp=None, receipt_key: str = "") -> "VerifiedEvent":
        return cls(
            order_id=str(params.get("ORDERID") or ""),
            gateway_status=gateway.normalize_status(params.get("STATUS")),
            amount=_amount(params.get("TXNAMOUNT")),
            transaction_id=str(params.get("TXNID") or ""),
            timestamp=timestamp,
            payload={k: v for k, v in params.items() if k != "CHECKSUMHASH"},
            receipt_key=receipt_key,
        )

    def as_json(self) -> dict:
        return {
            "order_id": self.order_id,
            "gateway_status": self.gateway_status,
            "amount": str(self.amount) if self.amount is not None else None,
            "transaction_id": self.transaction_id,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "payload": self.payload,
            "receipt_key": self.receipt_key,
        }

    @classmethod
    def from_json(cls, data: dict) -> "VerifiedEvent":
        ts = data.get("timestamp")
        return cls(
            order_id=data["order_id"],
            gateway_status=data["gateway_status"],
            amount=_amount(data.get("amount")),
            transaction_id=data.get("transaction_id") or "",
            timestamp=parse_datetime(ts) if ts else None,
            payload=data.get("payload") or {},
            receipt_key=data.get("receipt_key") or "",
        )


def _amount(raw) -> Optional[Decimal]:
    if raw in (None, ""):
        return None
    try:
        return Decimal(str(raw))
    except (InvalidOperation, ValueError):
        return None


# ---------------------------------------------------------------------------
# Gates
# ---------------------------------------------------------------------------
def _networks():
    nets = []
    for cidr in getattr(settings, "GATEWAY_WEBHOOK_IP_RANGES", []) or []:
        cidr = str(cidr).strip()
        if cidr:
            nets.append(ipaddress.ip_network(cidr, strict=False))
    return nets


def parse_ip(raw):
    try:
        return ipaddress.ip_address(str(raw or "").strip())
    except ValueError:
        return None


def origin_allowed(remote_addr) -> bool:
    ip = parse_ip(remote_addr)
    if ip is None:
        return False
    if (ip.is_loopback or ip.is_private) and getattr(settings, "GATEWAY_ALLOW_PRIVATE_ORIGINS", False):
        return True
    return any(ip.version == net.version and ip in net for net in _networks())


def parse_gateway_time(raw) -> Optional[datetime]:
    if not raw:
        return None
    try:
        ts = parse_datetime(str(raw).strip())
    except ValueError:
        return None
    if ts is None:
        return None
    if timezone.is_naive(ts):
        # Gateway reports local merchant time
        ts = timezone.make_aware(ts, timezone.get_current_timezone())
    return ts


def freshness_window() -> timedelta:
    return timedelta(seconds=int(getattr(settings, "WEBHOOK_FRESHNESS_SECONDS", 300)))


def receipt_key_for(params: dict) -> str:
    nonce = str(params.get(NONCE_FIELD) or "")
    if nonce:
        basis = f"nonce:{nonce}"
    else:
        basis = f"{params.get('ORDERID', '')}|{params.get('TXNID', '')}|{params.get('TXNDATE', '')}"
    return hashlib.sha256(basis.encode()).hexdigest()


def _reject(exc: WebhookRejected, callback: RawCallback, **details):
    order_id = str(callback.params.get("ORDERID") or "")
    ip = parse_ip(callback.remote_addr)
    logger.warning("webhook rejected (%s) order=%s ip=%s %s", exc.code, order_id or "-",
                   callback.remote_addr, details or "")
    security_event(
        exc.code,
        order_id=order_id,
        ip_address=str(ip) if ip else None,
        action_taken="rejected",
        details={"reason": exc.message, **details},
    )
    raise exc


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------
def verify(callback: RawCallback, now: datetime | None = None) -> VerifiedEvent:
    params = dict(callback.params or {})
    now = now or timezone.now()

    if not origin_allowed(callback.remote_addr):
        _reject(UnauthorizedOrigin("callback from outside the gateway's address ranges"), callback)

    if not gateway.valid_checksum(params):
        _reject(BadSignature("checksum verification failed"), callback)
    mid = params.get("MID")
    if mid and mid != settings.GATEWAY_MERCHANT_ID:
        _reject(BadSignature("merchant id mismatch"), callback, mid=mid)
    if not params.get("ORDERID"):
        _reject(WebhookRejected("callback without ORDERID"), callback)

    key = receipt_key_for(params)
    try:
        seen = WebhookReceipt.objects.filter(receipt_key=key).exists()
    except DatabaseError as e:
        logger.exception("could not look up webhook receipt for %s", params.get("ORDERID"))
        raise StoreUnavailable(f"receipt store unavailable: {e}") from e
    if seen:
        _reject(Replay("callback already accepted"), callback)

    ts = parse_gateway_time(params.get("TXNDATE"))
    if ts is None:
        _reject(Stale("missing or unreadable TXNDATE"), callback, txndate=params.get("TXNDATE"))
    age = now - ts
    if age > freshness_window() or age < -MAX_FUTURE_SKEW:
        _reject(Stale("callback outside the freshness window"), callback, age_seconds=int(age.total_seconds()))

    event = VerifiedEvent.from_gateway(params, timestamp=ts, receipt_key=key)

    try:
        with transaction.atomic():
            WebhookReceipt.objects.create(
                receipt_key=key,
                order_id=event.order_id,
                gateway_txn_id=event.transaction_id,
                gateway_timestamp=str(params.get("TXNDATE") or ""),
                nonce=str(params.get(NONCE_FIELD) or ""),
                gateway_status=event.gateway_status,
                amount=event.amount,
                event=event.as_json(),
            )
    except IntegrityError:
        # Lost the race against a concurrent delivery of the same callback
        _reject(Replay("callback already accepted"), callback)
    except DatabaseError as e:
        logger.exception("could not record webhook receipt for %s", event.order_id)
        raise StoreUnavailable(f"receipt store unavailable: {e}") from e

    logger.info("webhook accepted order=%s status=%s txn=%s", event.order_id, event.gateway_status,
                event.transaction_id or "-")
    return event
