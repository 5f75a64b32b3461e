from __future__ import annotations

from django.contrib import admin

from .models import ProviderService, Service, ServicePricing


class ServicePricingInline(admin.TabularInline):
    model = ServicePricing
    extra = 0
    fields = ("plan_name", "price", "currency_code", "is_default", "is_active", "priority",
              "effective_from", "effective_to")


@admin.register(Service)
class ServiceAdmin(admin.ModelAdmin):
    list_display = ("name", "category", "base_price", "currency_code", "is_active")
    list_filter = ("category", "is_active")
    search_fields = ("name", "category")
    inlines = [ServicePricingInline]


@admin.register(ProviderService)
class ProviderServiceAdmin(admin.ModelAdmin):
    list_display = ("id", "provider", "service", "payment_status", "payment_start_date", "payment_end_date")
    list_filter = ("payment_status", "service")
    search_fields = ("provider__email", "service__name")
    date_hierarchy = "created_at"
    ordering = ("-created_at",)

    # Status changes only through payment activation
    readonly_fields = ("payment_status", "payment_start_date", "payment_end_date", "activated_by",
                       "created_at", "updated_at")
