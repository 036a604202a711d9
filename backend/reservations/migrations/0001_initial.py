import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("rooms", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Reservation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("check_in", models.DateField()),
                ("check_out", models.DateField()),
                ("guests", models.PositiveIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1)])),
                ("total_amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("status", models.CharField(choices=[("PENDING", "Pending"), ("CONFIRMED", "Confirmed"), ("CHECKED_IN", "Checked in"), ("CHECKED_OUT", "Checked out"), ("CANCELLED", "Cancelled")], default="PENDING", max_length=12)),
                ("special_requests", models.TextField(blank=True)),
                ("confirmed_at", models.DateTimeField(blank=True, null=True)),
                ("checked_in_at", models.DateTimeField(blank=True, null=True)),
                ("checked_out_at", models.DateTimeField(blank=True, null=True)),
                ("cancellation_reason", models.CharField(blank=True, max_length=500)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("guest", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="reservations", to=settings.AUTH_USER_MODEL)),
                ("room", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="reservations", to="rooms.room")),
            ],
            options={
                "ordering": ["check_in", "id"],
                "indexes": [
                    models.Index(fields=["room", "check_in", "check_out"], name="reservation_room_dates"),
                    models.Index(fields=["status"], name="reservation_status"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("check_out__gt", models.F("check_in"))), name="reservation_checkout_after_checkin"),
                    models.CheckConstraint(condition=models.Q(("guests__gte", 1)), name="reservation_guests_positive"),
                ],
            },
        ),
    ]
