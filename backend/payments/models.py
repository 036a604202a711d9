from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone


def default_currency():
    return getattr(settings, "PAYMENT_CURRENCY", "usd")


class PaymentQuerySet(models.QuerySet):
    def active(self):
        """Payments that still count against their reservation (PENDING or SUCCEEDED)."""
        return self.filter(status__in=Payment.ACTIVE_STATUSES)

    def for_reservation(self, reservation_id):
        return self.filter(reservation_id=reservation_id)

    def for_guest(self, guest):
        return self.filter(guest=guest)

    def with_status(self, *statuses):
        return self.filter(status__in=statuses)

    def awaiting_refund(self):
        """Refunds recorded locally whose processor call has not gone through yet."""
        return self.filter(
            status__in=(Payment.REFUNDED, Payment.PARTIALLY_REFUNDED),
            refund_failed_at__isnull=False,
            stripe_refund_id="",
        )


class Payment(models.Model):
    PENDING = "PENDING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED"
    STATUSES = [
        (PENDING, "Pending"),
        (SUCCEEDED, "Succeeded"),
        (FAILED, "Failed"),
        (REFUNDED, "Refunded"),
        (PARTIALLY_REFUNDED, "Partially refunded"),
    ]
    ACTIVE_STATUSES = (PENDING, SUCCEEDED)
    TERMINAL_STATUSES = (FAILED, REFUNDED, PARTIALLY_REFUNDED)

    reservation = models.ForeignKey(
        "reservations.Reservation",
        on_delete=models.PROTECT,
        related_name="payments",
    )
    guest = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payments",
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=10, default=default_currency)
    status = models.CharField(max_length=20, choices=STATUSES, default=PENDING)

    stripe_payment_intent_id = models.CharField(max_length=255, unique=True)
    stripe_client_secret = models.CharField(max_length=255, blank=True)
    stripe_charge_id = models.CharField(max_length=255, blank=True)
    stripe_refund_id = models.CharField(max_length=255, blank=True)

    payment_method = models.CharField(max_length=50, blank=True)
    card_brand = models.CharField(max_length=20, blank=True)
    card_last4 = models.CharField(max_length=4, blank=True)
    receipt_url = models.URLField(max_length=500, blank=True)
    failure_message = models.TextField(blank=True)

    refund_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    refund_reason = models.CharField(max_length=500, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)
    refund_error_message = models.TextField(blank=True)
    refund_failed_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    objects = PaymentQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["status"], name="payment_status"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["reservation"],
                condition=Q(status__in=["PENDING", "SUCCEEDED"]),
                name="payment_one_active_per_reservation",
            ),
        ]

    def __str__(self):
        return f"{self.stripe_payment_intent_id} {self.amount} {self.currency} ({self.status})"

    @property
    def is_refunded(self) -> bool:
        return self.status in (self.REFUNDED, self.PARTIALLY_REFUNDED)

    @property
    def refund_pending_at_processor(self) -> bool:
        return self.is_refunded and self.refund_failed_at is not None and not self.stripe_refund_id
