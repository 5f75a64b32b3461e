import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("services", "0001_initial"),
        ("payments", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="providerservice",
            name="activated_by",
            field=models.ForeignKey(
                blank=True,
                help_text="Payment attempt whose completion activated the current window",
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name="+",
                to="payments.paymentattempt",
            ),
        ),
    ]
