# payments/locks.py
"""
Short-lived (payer, target) leases that serialize payment initiation.

Two backends share the same contract:
  - "db":    PaymentLock rows; the unique lock_key is the test-and-set.
  - "cache": Django cache ``add`` (SET NX on django-redis) with a native TTL.

A token is "<lock_key>#<nonce>" so release() needs nothing but the token.
"""
from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from datetime import timedelta
from typing import Optional

from django.conf import settings
from django.core.cache import cache
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from .errors import LockBusy, StoreUnavailable
from .models import PaymentLock

logger = logging.getLogger(__name__)


def lock_key(payer_id, target_id) -> str:
    return f"payment_lock:{payer_id}:{target_id}"


def default_ttl() -> int:
    return int(getattr(settings, "PAYMENT_LOCK_TTL_SECONDS", 30))


def _key_from_token(token: str) -> str:
    return token.rsplit("#", 1)[0]


def _new_token(key: str) -> str:
    return f"{key}#{uuid.uuid4().hex}"


def _pk(obj):
    return getattr(obj, "pk", obj)


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------
class DatabaseLockBackend:
    name = "db"

    def acquire(self, payer_id, target_id, ttl: int) -> Optional[str]:
        key = lock_key(payer_id, target_id)
        token = _new_token(key)
        now = timezone.now()
        try:
            with transaction.atomic():
                # An expired lease is as good as absent
                PaymentLock.objects.filter(lock_key=key, expires_at__lte=now).delete()
                PaymentLock.objects.create(
                    lock_key=key,
                    token=token,
                    payer_id=str(payer_id),
                    target_id=str(target_id),
                    acquired_at=now,
                    expires_at=now + timedelta(seconds=ttl),
                )
        except IntegrityError:
            return None
        except DatabaseError as e:
            raise StoreUnavailable(f"lock store unavailable: {e}") from e
        return token

    def release(self, token: str) -> bool:
        try:
            deleted, _ = PaymentLock.objects.filter(token=token).delete()
        except DatabaseError:
            # The lease still expires on its own
            logger.exception("failed to release payment lock %s", _key_from_token(token))
            return False
        return bool(deleted)

    def sweep_expired(self, now=None) -> int:
        deleted, _ = PaymentLock.objects.filter(expires_at__lte=now or timezone.now()).delete()
        return deleted

    def holder(self, payer_id, target_id) -> Optional[str]:
        lock = PaymentLock.objects.filter(
            lock_key=lock_key(payer_id, target_id), expires_at__gt=timezone.now()
        ).first()
        return lock.token if lock else None


class CacheLockBackend:
    name = "cache"

    def acquire(self, payer_id, target_id, ttl: int) -> Optional[str]:
        key = lock_key(payer_id, target_id)
        token = _new_token(key)
        try:
            added = cache.add(key, token, ttl)
        except Exception as e:  # redis/network errors surface as backend-specific types
            raise StoreUnavailable(f"lock store unavailable: {e}") from e
        return token if added else None

    def release(self, token: str) -> bool:
        key = _key_from_token(token)
        try:
            if cache.get(key) != token:
                return False
            cache.delete(key)
        except Exception:
            logger.exception("failed to release payment lock %s", key)
            return False
        return True

    def sweep_expired(self, now=None) -> int:
        # Cache entries expire natively
        return 0

    def holder(self, payer_id, target_id) -> Optional[str]:
        return cache.get(lock_key(payer_id, target_id))


_BACKENDS = {
    DatabaseLockBackend.name: DatabaseLockBackend,
    CacheLockBackend.name: CacheLockBackend,
}


def get_backend():
    name = str(getattr(settings, "PAYMENT_LOCK_BACKEND", "db")).lower()
    try:
        return _BACKENDS[name]()
    except KeyError:
        raise ValueError(f"Unknown PAYMENT_LOCK_BACKEND: {name!r}")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def acquire(payer, target, ttl: int | None = None) -> Optional[str]:
    """Token on success, None when another live lease holds (payer, target)."""
    return get_backend().acquire(_pk(payer), _pk(target), ttl or default_ttl())


def release(token: str) -> bool:
    return get_backend().release(token)


def sweep_expired() -> int:
    count = get_backend().sweep_expired()
    if count:
        logger.info("reclaimed %s expired payment lock(s)", count)
    return count


def is_locked(payer, target) -> bool:
    return get_backend().holder(_pk(payer), _pk(target)) is not None


@contextmanager
def holding(payer, target, ttl: int | None = None):
    token = acquire(payer, target, ttl)
    if token is None:
        raise LockBusy()
    try:
        yield token
    finally:
        release(token)
