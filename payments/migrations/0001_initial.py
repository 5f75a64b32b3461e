import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import payments.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("services", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="PaymentLock",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("lock_key", models.CharField(max_length=255, unique=True)),
                ("token", models.CharField(max_length=255, unique=True)),
                ("payer_id", models.CharField(max_length=64)),
                ("target_id", models.CharField(max_length=64)),
                ("acquired_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("expires_at", models.DateTimeField(db_index=True)),
            ],
        ),
        migrations.CreateModel(
            name="WebhookReceipt",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("receipt_key", models.CharField(max_length=64, unique=True)),
                ("order_id", models.CharField(db_index=True, max_length=64)),
                ("gateway_txn_id", models.CharField(blank=True, max_length=100)),
                ("gateway_timestamp", models.CharField(blank=True, max_length=64)),
                ("nonce", models.CharField(blank=True, max_length=128)),
                ("gateway_status", models.CharField(max_length=16)),
                ("amount", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("outcome", models.CharField(choices=[("accepted", "Accepted")], default="accepted", max_length=16)),
                ("event", models.JSONField(default=dict)),
                ("received_at", models.DateTimeField(auto_now_add=True, db_index=True)),
            ],
            options={
                "ordering": ("-received_at",),
            },
        ),
        migrations.CreateModel(
            name="PaymentAttempt",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("order_id", models.CharField(default=payments.models.generate_order_id, editable=False, max_length=64, unique=True)),
                ("gateway_txn_id", models.CharField(blank=True, max_length=100, null=True, unique=True)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("currency", models.CharField(default="INR", max_length=8)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("completed", "Completed"), ("failed", "Failed"), ("expired", "Expired")], default="pending", max_length=16)),
                ("retry_count", models.PositiveIntegerField(default=0)),
                ("gateway_response", models.JSONField(blank=True, null=True)),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("user_agent", models.TextField(blank=True)),
                ("device_fingerprint", models.CharField(blank=True, max_length=128)),
                ("risk_score", models.DecimalField(blank=True, decimal_places=2, max_digits=3, null=True)),
                ("risk_factors", models.JSONField(blank=True, default=list)),
                ("flagged_for_review", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("parent", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="retries", to="payments.paymentattempt")),
                ("payer", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payment_attempts", to=settings.AUTH_USER_MODEL)),
                ("pricing_plan", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to="services.servicepricing")),
                ("target", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payment_attempts", to="services.providerservice")),
            ],
            options={
                "ordering": ("-created_at",),
                "indexes": [
                    models.Index(fields=["payer", "target", "status"], name="attempt_payer_target_st_idx"),
                    models.Index(fields=["status", "created_at"], name="attempt_status_created_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(condition=models.Q(("status", "pending")), fields=("payer", "target"), name="uniq_pending_attempt_per_payer_target"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("event_type", models.CharField(db_index=True, max_length=64)),
                ("event_data", models.JSONField(blank=True, default=dict)),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("timestamp", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("attempt", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name="events", to="payments.paymentattempt")),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ("-timestamp",),
            },
        ),
        migrations.CreateModel(
            name="PaymentSecurityEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("order_id", models.CharField(blank=True, db_index=True, max_length=64)),
                ("event_type", models.CharField(db_index=True, max_length=64)),
                ("risk_score", models.DecimalField(decimal_places=2, default=0, max_digits=3)),
                ("risk_factors", models.JSONField(blank=True, default=list)),
                ("action_taken", models.CharField(blank=True, max_length=64)),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("details", models.JSONField(blank=True, default=dict)),
                ("timestamp", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("attempt", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="security_events", to="payments.paymentattempt")),
            ],
            options={
                "ordering": ("-timestamp",),
            },
        ),
    ]
