import django.core.validators
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Room",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=120)),
                ("room_type", models.CharField(choices=[("STANDARD", "Standard"), ("DELUXE", "Deluxe"), ("SUITE", "Suite"), ("PRESIDENTIAL", "Presidential")], default="STANDARD", max_length=20)),
                ("description", models.TextField(blank=True)),
                ("price_per_night", models.DecimalField(decimal_places=2, max_digits=10, validators=[django.core.validators.MinValueValidator(0)])),
                ("capacity", models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ("amenities", models.JSONField(blank=True, default=list)),
                ("image_url", models.URLField(blank=True)),
                ("is_available", models.BooleanField(default=True)),
                ("total_rooms", models.PositiveIntegerField(default=1)),
                ("floor_number", models.IntegerField(blank=True, null=True)),
                ("size_sqft", models.PositiveIntegerField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["name", "id"],
            },
        ),
    ]
