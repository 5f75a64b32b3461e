from __future__ import annotations

from rest_framework import serializers

from .entitlements import get_price
from .models import ProviderService, Service


class ServiceSerializer(serializers.ModelSerializer):
    class Meta:
        model = Service
        fields = ["id", "name", "category", "base_price", "currency_code"]
        read_only_fields = fields


class RegistrationSerializer(serializers.ModelSerializer):
    """A provider's registration for one service, with its current price."""

    service = ServiceSerializer(read_only=True)
    is_active = serializers.BooleanField(read_only=True)
    price = serializers.SerializerMethodField()

    class Meta:
        model = ProviderService
        fields = [
            "id", "service", "payment_status", "is_active",
            "payment_start_date", "payment_end_date", "price",
        ]
        read_only_fields = fields

    def get_price(self, obj: ProviderService) -> dict:
        price = get_price(obj.pk)
        return {
            "amount": str(price.amount),
            "currency": price.currency,
            "plan": price.plan.plan_name if price.plan else None,
        }
