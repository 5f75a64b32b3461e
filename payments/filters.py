import django_filters

from .models import PaymentAttempt


class PaymentAttemptFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=PaymentAttempt.STATUS)
    target = django_filters.NumberFilter(field_name="target_id")
    created_after = django_filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="gte")
    created_before = django_filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="lte")

    class Meta:
        model = PaymentAttempt
        fields = ["status", "target", "created_after", "created_before"]
