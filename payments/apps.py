from __future__ import annotations

import logging

from django.apps import AppConfig
from django.core.checks import register, Error, Warning

logger = logging.getLogger(__name__)


class PaymentsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Registration Payments"

    def ready(self):
        # Connect signal handlers
        try:
            from . import signals  # noqa: F401
        except Exception as e:  # pragma: no cover
            logger.exception("Failed to import payments.signals: %s", e)
            raise


# ---------------------------------------------------------------------------
# System checks: surface config issues early with `manage.py check`
# ---------------------------------------------------------------------------
@register()
def payments_system_checks(app_configs, **kwargs):
    from django.conf import settings

    messages = []

    mode = str(getattr(settings, "GATEWAY_MODE", "STAGING")).upper()
    if mode not in {"LIVE", "STAGING"}:
        messages.append(
            Warning(
                f"GATEWAY_MODE={mode!r} is not recognised; falling back to STAGING URLs.",
                id="payments.W001",
                hint="Use LIVE or STAGING.",
            )
        )
    if mode == "LIVE":
        missing = [
            name for name in ("GATEWAY_MERCHANT_ID", "GATEWAY_MERCHANT_KEY", "GATEWAY_CALLBACK_URL")
            if not getattr(settings, name, "")
        ]
        if missing:
            messages.append(
                Error(
                    f"Gateway is LIVE but {', '.join(missing)} not set.",
                    id="payments.E001",
                    hint="Set them in the environment or .env.",
                )
            )
        if getattr(settings, "GATEWAY_ALLOW_PRIVATE_ORIGINS", False):
            messages.append(
                Warning(
                    "GATEWAY_ALLOW_PRIVATE_ORIGINS is on while the gateway is LIVE.",
                    id="payments.W002",
                    hint="Callbacks from private/loopback addresses will bypass the origin check.",
                )
            )

    backend = str(getattr(settings, "PAYMENT_LOCK_BACKEND", "db")).lower()
    if backend not in {"db", "cache"}:
        messages.append(
            Error(
                f"PAYMENT_LOCK_BACKEND={backend!r} is not supported.",
                id="payments.E002",
                hint="Use 'db' or 'cache'.",
            )
        )
    elif backend == "cache":
        cache_backend = settings.CACHES.get("default", {}).get("BACKEND", "")
        if "redis" not in cache_backend.lower():
            messages.append(
                Warning(
                    "PAYMENT_LOCK_BACKEND='cache' without a shared Redis cache only serializes within one process.",
                    id="payments.W003",
                    hint="Set REDIS_URL or use PAYMENT_LOCK_BACKEND='db'.",
                )
            )

    ttl = int(getattr(settings, "PAYMENT_LOCK_TTL_SECONDS", 30))
    if not 5 <= ttl <= 300:
        messages.append(
            Warning(
                f"PAYMENT_LOCK_TTL_SECONDS={ttl} is outside 5..300.",
                id="payments.W004",
                hint="Too short lets a slow initiation lose its lock; too long blocks retries after a crash.",
            )
        )

    freshness = int(getattr(settings, "WEBHOOK_FRESHNESS_SECONDS", 300))
    retention_s = int(getattr(settings, "WEBHOOK_RECEIPT_RETENTION_HOURS", 72)) * 3600
    if retention_s <= freshness:
        messages.append(
            Error(
                "WEBHOOK_RECEIPT_RETENTION_HOURS must outlast WEBHOOK_FRESHNESS_SECONDS.",
                id="payments.E003",
                hint="Receipts purged inside the freshness window would let replays through.",
            )
        )
    return messages
