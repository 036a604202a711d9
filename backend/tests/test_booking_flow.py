from datetime import date
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model

from core.exceptions import ResourceUnavailable
from payments.models import Payment
from payments.services.processor import StubProcessor
from reservations.models import Reservation
from reservations.services.coordinator import build_engines
from rooms.services.catalog import create_room


def _book_and_pay(refund_should_fail):
    processor = StubProcessor()
    reservations, payments = build_engines(processor=processor)
    guest = get_user_model().objects.create_user(username="guest", email="guest@example.com", password="x")
    room = create_room(name="Harbor Deluxe", price_per_night=Decimal("100.00"), capacity=2)

    # A: three nights for two guests
    reservation_a = reservations.create(guest, room.id, date(2025, 6, 1), date(2025, 6, 4), 2)
    assert reservation_a.status == Reservation.PENDING
    assert reservation_a.total_amount == Decimal("300.00")

    # B overlaps A on June 3rd
    with pytest.raises(ResourceUnavailable):
        reservations.create(guest, room.id, date(2025, 6, 3), date(2025, 6, 5), 1)

    # C starts the day A checks out
    reservation_c = reservations.create(guest, room.id, date(2025, 6, 4), date(2025, 6, 6), 1)
    assert reservation_c.status == Reservation.PENDING

    payment = payments.create_intent(reservation_a)
    payment = payments.confirm(payment.stripe_payment_intent_id, charge_id="ch_flow")
    reservation_a.refresh_from_db()
    assert payment.status == Payment.SUCCEEDED
    assert payment.amount == Decimal("300.00")
    assert reservation_a.status == Reservation.CONFIRMED

    if refund_should_fail:
        processor.fail_with = "processor unreachable"

    cancelled = reservations.cancel(reservation_a.id, "Guest cancelled")
    payment.refresh_from_db()
    return processor, cancelled, payment, reservation_c


@pytest.mark.django_db
def test_booking_flow_refunds_on_cancellation():
    processor, cancelled, payment, reservation_c = _book_and_pay(refund_should_fail=False)

    assert cancelled.status == Reservation.CANCELLED
    assert payment.status == Payment.REFUNDED
    assert payment.refund_amount == Decimal("300.00")
    assert payment.stripe_refund_id.startswith("re_test_")
    assert processor.calls[-1] == ("refund", payment.stripe_payment_intent_id, 30000, "Guest cancelled")

    reservation_c.refresh_from_db()
    assert reservation_c.status == Reservation.PENDING


@pytest.mark.django_db
def test_booking_flow_cancellation_survives_refund_failure():
    processor, cancelled, payment, _ = _book_and_pay(refund_should_fail=True)

    assert cancelled.status == Reservation.CANCELLED
    assert Reservation.objects.get(pk=cancelled.pk).status == Reservation.CANCELLED
    assert payment.status == Payment.REFUNDED
    assert payment.refund_amount == Decimal("300.00")
    assert payment.refund_error_message == "processor unreachable"
    assert payment.refund_failed_at is not None
    assert payment.stripe_refund_id == ""
