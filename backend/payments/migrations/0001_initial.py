import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import payments.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("reservations", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("currency", models.CharField(default=payments.models.default_currency, max_length=10)),
                ("status", models.CharField(choices=[("PENDING", "Pending"), ("SUCCEEDED", "Succeeded"), ("FAILED", "Failed"), ("REFUNDED", "Refunded"), ("PARTIALLY_REFUNDED", "Partially refunded")], default="PENDING", max_length=20)),
                ("stripe_payment_intent_id", models.CharField(max_length=255, unique=True)),
                ("stripe_client_secret", models.CharField(blank=True, max_length=255)),
                ("stripe_charge_id", models.CharField(blank=True, max_length=255)),
                ("stripe_refund_id", models.CharField(blank=True, max_length=255)),
                ("payment_method", models.CharField(blank=True, max_length=50)),
                ("card_brand", models.CharField(blank=True, max_length=20)),
                ("card_last4", models.CharField(blank=True, max_length=4)),
                ("receipt_url", models.URLField(blank=True, max_length=500)),
                ("failure_message", models.TextField(blank=True)),
                ("refund_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("refund_reason", models.CharField(blank=True, max_length=500)),
                ("refunded_at", models.DateTimeField(blank=True, null=True)),
                ("refund_error_message", models.TextField(blank=True)),
                ("refund_failed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("guest", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payments", to=settings.AUTH_USER_MODEL)),
                ("reservation", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="reservations.reservation")),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["status"], name="payment_status"),
                ],
                "constraints": [
                    models.UniqueConstraint(condition=models.Q(("status__in", ["PENDING", "SUCCEEDED"])), fields=("reservation",), name="payment_one_active_per_reservation"),
                ],
            },
        ),
    ]
