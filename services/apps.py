from __future__ import annotations

import logging

from django.apps import AppConfig
from django.core.checks import register, Warning

logger = logging.getLogger(__name__)


class ServicesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "services"
    verbose_name = "Marketplace Services"


# ---------------------------------------------------------------------------
# System checks: surface config issues early with `manage.py check`
# ---------------------------------------------------------------------------
@register()
def services_system_checks(app_configs, **kwargs):
    from django.conf import settings

    messages = []
    days = getattr(settings, "REGISTRATION_VALIDITY_DAYS", 365)
    try:
        days = int(days)
    except (TypeError, ValueError):
        days = 0
    if days <= 0:
        messages.append(
            Warning(
                "REGISTRATION_VALIDITY_DAYS must be a positive integer.",
                id="services.W001",
                hint="Activated registrations would expire immediately.",
            )
        )
    return messages
