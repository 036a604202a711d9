from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models


class RoomQuerySet(models.QuerySet):
    def bookable(self):
        return self.filter(is_available=True)

    def with_capacity(self, guests: int):
        return self.filter(capacity__gte=guests)


class Room(models.Model):
    """A bookable room category with a fixed nightly rate."""

    STANDARD = "STANDARD"
    DELUXE = "DELUXE"
    SUITE = "SUITE"
    PRESIDENTIAL = "PRESIDENTIAL"
    ROOM_TYPES = [
        (STANDARD, "Standard"),
        (DELUXE, "Deluxe"),
        (SUITE, "Suite"),
        (PRESIDENTIAL, "Presidential"),
    ]

    name = models.CharField(max_length=120)
    room_type = models.CharField(max_length=20, choices=ROOM_TYPES, default=STANDARD)
    description = models.TextField(blank=True)
    price_per_night = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(0)],
    )
    capacity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    amenities = models.JSONField(default=list, blank=True)
    image_url = models.URLField(blank=True)
    is_available = models.BooleanField(default=True)
    total_rooms = models.PositiveIntegerField(default=1)
    floor_number = models.IntegerField(null=True, blank=True)
    size_sqft = models.PositiveIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = RoomQuerySet.as_manager()

    class Meta:
        ordering = ["name", "id"]

    def __str__(self):
        return f"{self.name} ({self.get_room_type_display()})"

    def clean(self):
        super().clean()
        if self.amenities is not None and not isinstance(self.amenities, list):
            raise ValidationError({"amenities": "Amenities must be a list."})
