from __future__ import annotations

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone

# ---------------------------------------------------------------------------
# Choices
# ---------------------------------------------------------------------------
PAYMENT_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("active", "Active"),
    ("expired", "Expired"),
]


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------
class Service(models.Model):
    """A service category providers can register for (plumbing, painting, ...)."""

    name = models.CharField(max_length=100, unique=True)
    category = models.CharField(max_length=50, blank=True)
    base_price = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])
    currency_code = models.CharField(max_length=3, default="INR")
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("name",)

    def __str__(self):
        return f"{self.name} | {self.currency_code} {self.base_price}"


class ServicePricingQuerySet(models.QuerySet):
    def effective(self, at=None):
        at = at or timezone.now()
        return self.filter(
            Q(effective_from__isnull=True) | Q(effective_from__lte=at),
            Q(effective_to__isnull=True) | Q(effective_to__gte=at),
            is_active=True,
        )


class ServicePricing(models.Model):
    """Time-boxed pricing plans; the highest-priority effective plan wins."""

    service = models.ForeignKey(Service, on_delete=models.CASCADE, related_name="pricing_plans")
    plan_name = models.CharField(max_length=50, default="standard")
    price = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])
    currency_code = models.CharField(max_length=3, default="INR")
    is_default = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    priority = models.IntegerField(default=0)
    effective_from = models.DateTimeField(blank=True, null=True)
    effective_to = models.DateTimeField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)

    objects = ServicePricingQuerySet.as_manager()

    class Meta:
        ordering = ("-priority", "-effective_from")
        indexes = [
            models.Index(fields=["service", "is_active"], name="servicepricing_svc_active_idx"),
        ]

    def __str__(self):
        return f"{self.service.name}:{self.plan_name} | {self.currency_code} {self.price}"


# ---------------------------------------------------------------------------
# Entitlement: a provider's paid registration for one service
# ---------------------------------------------------------------------------
class ProviderService(models.Model):
    STATUS_PENDING = "pending"
    STATUS_ACTIVE = "active"
    STATUS_EXPIRED = "expired"

    provider = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="registrations"
    )
    service = models.ForeignKey(Service, on_delete=models.PROTECT, related_name="registrations")

    payment_status = models.CharField(max_length=16, choices=PAYMENT_STATUS_CHOICES, default=STATUS_PENDING)
    payment_start_date = models.DateTimeField(blank=True, null=True)
    payment_end_date = models.DateTimeField(blank=True, null=True)
    activated_by = models.ForeignKey(
        "payments.PaymentAttempt",
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name="+",
        help_text="Payment attempt whose completion activated the current window",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created_at",)
        constraints = [
            models.UniqueConstraint(fields=["provider", "service"], name="uniq_provider_service"),
        ]
        indexes = [
            models.Index(fields=["payment_status", "payment_end_date"], name="providerservice_status_end_idx"),
        ]

    def __str__(self):
        return f"{self.provider_id} | {self.service.name} | {self.payment_status}"

    @property
    def is_active(self) -> bool:
        return (
            self.payment_status == self.STATUS_ACTIVE
            and self.payment_end_date is not None
            and self.payment_end_date > timezone.now()
        )
