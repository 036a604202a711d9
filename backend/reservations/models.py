from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import F, Q
from django.utils import timezone


class ReservationQuerySet(models.QuerySet):
    def active(self):
        """Reservations that still hold their dates."""
        return self.filter(status__in=Reservation.BLOCKING_STATUSES)

    def for_room(self, room_id):
        return self.filter(room_id=room_id)

    def for_guest(self, guest):
        return self.filter(guest=guest)

    def with_status(self, *statuses):
        return self.filter(status__in=statuses)

    def overlapping(self, room_id, check_in, check_out):
        # Half-open intervals: [a1, a2) and [b1, b2) overlap iff a1 < b2 and b1 < a2.
        return self.for_room(room_id).active().filter(
            check_in__lt=check_out,
            check_out__gt=check_in,
        )

    def in_date_range(self, start, end):
        """Any reservation whose stay touches the inclusive window [start, end]."""
        return self.filter(check_in__lte=end, check_out__gte=start)


class Reservation(models.Model):
    """A guest's claim on a room for the nights in [check_in, check_out)."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CHECKED_IN = "CHECKED_IN"
    CHECKED_OUT = "CHECKED_OUT"
    CANCELLED = "CANCELLED"
    STATUSES = [
        (PENDING, "Pending"),
        (CONFIRMED, "Confirmed"),
        (CHECKED_IN, "Checked in"),
        (CHECKED_OUT, "Checked out"),
        (CANCELLED, "Cancelled"),
    ]
    BLOCKING_STATUSES = (PENDING, CONFIRMED, CHECKED_IN)
    TERMINAL_STATUSES = (CHECKED_OUT, CANCELLED)

    room = models.ForeignKey("rooms.Room", on_delete=models.PROTECT, related_name="reservations")
    guest = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="reservations",
    )
    check_in = models.DateField()
    check_out = models.DateField()
    guests = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=12, choices=STATUSES, default=PENDING)
    special_requests = models.TextField(blank=True)
    confirmed_at = models.DateTimeField(null=True, blank=True)
    checked_in_at = models.DateTimeField(null=True, blank=True)
    checked_out_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.CharField(max_length=500, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    objects = ReservationQuerySet.as_manager()

    class Meta:
        ordering = ["check_in", "id"]
        indexes = [
            models.Index(fields=["room", "check_in", "check_out"], name="reservation_room_dates"),
            models.Index(fields=["status"], name="reservation_status"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(check_out__gt=F("check_in")),
                name="reservation_checkout_after_checkin",
            ),
            models.CheckConstraint(
                condition=Q(guests__gte=1),
                name="reservation_guests_positive",
            ),
        ]

    def __str__(self):
        return f"{self.room.name}: {self.check_in:%Y-%m-%d} to {self.check_out:%Y-%m-%d} ({self.status})"

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATUSES

    @property
    def blocks_dates(self) -> bool:
        return self.status in self.BLOCKING_STATUSES

    def clean(self):
        super().clean()
        if self.check_in and self.check_out and self.check_out <= self.check_in:
            raise ValidationError({"check_out": "Check-out must be after check-in."})
