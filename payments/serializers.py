# payments/serializers.py
from decimal import Decimal

from rest_framework import serializers

from services.serializers import RegistrationSerializer
from .models import PaymentAttempt


class PaymentInitiateRequestSerializer(serializers.Serializer):
    target_id = serializers.IntegerField(min_value=1)
    amount = serializers.DecimalField(max_digits=14, decimal_places=4, min_value=Decimal("0"))
    currency = serializers.CharField(max_length=3, required=False, allow_blank=True)

    def validate_currency(self, v: str) -> str:
        return v.strip().upper()


class PaymentRetryRequestSerializer(serializers.Serializer):
    order_id = serializers.CharField(max_length=64)
    amount = serializers.DecimalField(max_digits=14, decimal_places=4, min_value=Decimal("0"), required=False)
    currency = serializers.CharField(max_length=3, required=False, allow_blank=True)

    def validate_currency(self, v: str) -> str:
        return v.strip().upper()


class PaymentAttemptSerializer(serializers.ModelSerializer):
    target_id = serializers.IntegerField(read_only=True)
    service_name = serializers.CharField(source="target.service.name", read_only=True)
    parent_order_id = serializers.SlugRelatedField(source="parent", slug_field="order_id", read_only=True)

    class Meta:
        model = PaymentAttempt
        fields = [
            "order_id", "target_id", "service_name", "amount", "currency", "status",
            "gateway_txn_id", "parent_order_id", "retry_count",
            "created_at", "completed_at", "updated_at",
        ]
        read_only_fields = fields


class InitiationResponseSerializer(serializers.Serializer):
    order_id = serializers.CharField()
    status = serializers.CharField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    currency = serializers.CharField()
    gateway_url = serializers.URLField()
    gateway_params = serializers.DictField(child=serializers.CharField())


class PaymentStatusSerializer(serializers.Serializer):
    payment = PaymentAttemptSerializer()
    registration = RegistrationSerializer()


class PaymentErrorSerializer(serializers.Serializer):
    code = serializers.CharField()
    detail = serializers.CharField()
    retryable = serializers.BooleanField()
    order_id = serializers.CharField(required=False)
