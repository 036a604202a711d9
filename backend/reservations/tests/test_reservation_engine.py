from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model

from core.clock import FrozenClock
from core.exceptions import (
    CapacityExceeded,
    ErrorKind,
    InvalidDates,
    InvalidState,
    NotFound,
    ResourceUnavailable,
)
from payments.models import Payment
from payments.services.processor import StubProcessor
from reservations.models import Reservation
from reservations.services.coordinator import build_engines
from rooms.models import Room

NOW = datetime(2025, 5, 20, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return FrozenClock(NOW)


@pytest.fixture
def processor():
    return StubProcessor()


@pytest.fixture
def engines(clock, processor):
    return build_engines(clock=clock, processor=processor)


@pytest.fixture
def engine(engines):
    return engines[0]


@pytest.fixture
def guest(db):
    return get_user_model().objects.create_user(username="guest", email="guest@example.com", password="x")


@pytest.fixture
def room(db):
    return Room.objects.create(name="Harbor Deluxe", price_per_night=Decimal("100.00"), capacity=2)


@pytest.mark.django_db
def test_create_prices_the_stay_and_starts_pending(engine, guest, room):
    reservation = engine.create(guest, room.id, date(2025, 6, 1), date(2025, 6, 4), 2, "Late arrival")

    assert reservation.status == Reservation.PENDING
    assert reservation.total_amount == Decimal("300.00")
    assert reservation.nights == 3
    assert reservation.special_requests == "Late arrival"
    assert reservation.created_at == NOW
    assert reservation.updated_at == NOW


@pytest.mark.django_db
def test_create_over_capacity_persists_nothing(engine, guest, room):
    with pytest.raises(CapacityExceeded) as excinfo:
        engine.create(guest, room.id, date(2025, 6, 1), date(2025, 6, 4), 3)

    assert excinfo.value.kind is ErrorKind.CAPACITY_EXCEEDED
    assert not Reservation.objects.exists()


@pytest.mark.django_db
def test_create_rejects_bad_input(engine, guest, room):
    with pytest.raises(InvalidDates):
        engine.create(guest, room.id, date(2025, 6, 4), date(2025, 6, 4), 1)
    with pytest.raises(InvalidState):
        engine.create(guest, room.id, date(2025, 6, 1), date(2025, 6, 4), 0)
    with pytest.raises(NotFound):
        engine.create(guest, 9999, date(2025, 6, 1), date(2025, 6, 4), 1)

    assert not Reservation.objects.exists()


@pytest.mark.django_db
def test_capacity_is_checked_before_dates(engine, guest, room):
    with pytest.raises(CapacityExceeded):
        engine.create(guest, room.id, date(2025, 6, 4), date(2025, 6, 4), 3)

    reservation = engine.create(guest, room.id, date(2025, 6, 1), date(2025, 6, 4), 1)
    with pytest.raises(CapacityExceeded):
        engine.update(reservation.id, date(2025, 6, 4), date(2025, 6, 1), 3)

    reservation.refresh_from_db()
    assert reservation.guests == 1
    assert Reservation.objects.count() == 1


@pytest.mark.django_db
def test_create_on_closed_room_is_unavailable(engine, guest, room):
    room.is_available = False
    room.save()

    with pytest.raises(ResourceUnavailable):
        engine.create(guest, room.id, date(2025, 6, 1), date(2025, 6, 4), 1)


@pytest.mark.django_db
def test_overlapping_create_is_rejected_but_adjacent_succeeds(engine, guest, room):
    engine.create(guest, room.id, date(2025, 1, 1), date(2025, 1, 5), 1)

    with pytest.raises(ResourceUnavailable):
        engine.create(guest, room.id, date(2025, 1, 1), date(2025, 1, 5), 1)
    with pytest.raises(ResourceUnavailable):
        engine.create(guest, room.id, date(2025, 1, 4), date(2025, 1, 6), 1)

    adjacent = engine.create(guest, room.id, date(2025, 1, 5), date(2025, 1, 10), 1)
    assert adjacent.status == Reservation.PENDING
    assert Reservation.objects.count() == 2


@pytest.mark.django_db
def test_cancelled_dates_can_be_rebooked(engine, guest, room):
    first = engine.create(guest, room.id, date(2025, 2, 1), date(2025, 2, 3), 1)
    engine.cancel(first.id, "Change of plans")

    second = engine.create(guest, room.id, date(2025, 2, 1), date(2025, 2, 3), 1)
    assert second.id != first.id


@pytest.mark.django_db
def test_update_rechecks_overlap_excluding_itself(engine, guest, room, clock):
    reservation = engine.create(guest, room.id, date(2025, 3, 1), date(2025, 3, 4), 1)
    engine.create(guest, room.id, date(2025, 3, 10), date(2025, 3, 12), 1)
    clock.advance(timedelta(hours=1))

    moved = engine.update(reservation.id, date(2025, 3, 2), date(2025, 3, 7), 2)

    assert moved.total_amount == Decimal("500.00")
    assert moved.guests == 2
    assert moved.updated_at == NOW + timedelta(hours=1)
    assert moved.created_at == NOW

    with pytest.raises(ResourceUnavailable):
        engine.update(reservation.id, date(2025, 3, 5), date(2025, 3, 11), 1)
    with pytest.raises(CapacityExceeded):
        engine.update(reservation.id, date(2025, 3, 2), date(2025, 3, 7), 5)

    reservation.refresh_from_db()
    assert (reservation.check_in, reservation.check_out) == (date(2025, 3, 2), date(2025, 3, 7))


@pytest.mark.django_db
def test_update_refuses_cancelled_and_missing(engine, guest, room):
    reservation = engine.create(guest, room.id, date(2025, 3, 1), date(2025, 3, 4), 1)
    engine.cancel(reservation.id)

    with pytest.raises(InvalidState):
        engine.update(reservation.id, date(2025, 3, 1), date(2025, 3, 5), 1)
    with pytest.raises(NotFound):
        engine.update(9999, date(2025, 3, 1), date(2025, 3, 5), 1)


@pytest.mark.django_db
def test_update_refused_once_payment_started(engines, guest, room):
    engine, payment_engine = engines
    reservation = engine.create(guest, room.id, date(2025, 3, 1), date(2025, 3, 4), 1)
    payment_engine.create_intent(reservation)

    with pytest.raises(InvalidState):
        engine.update(reservation.id, date(2025, 3, 1), date(2025, 3, 6), 1)


@pytest.mark.django_db
def test_cancel_records_reason_and_time(engine, guest, room, clock):
    reservation = engine.create(guest, room.id, date(2025, 4, 1), date(2025, 4, 3), 1)
    clock.advance(timedelta(days=1))

    cancelled = engine.cancel(reservation.id, "Flight cancelled")

    assert cancelled.status == Reservation.CANCELLED
    assert cancelled.cancellation_reason == "Flight cancelled"
    assert cancelled.cancelled_at == NOW + timedelta(days=1)


@pytest.mark.django_db
def test_cancel_twice_fails(engine, guest, room):
    reservation = engine.create(guest, room.id, date(2025, 4, 1), date(2025, 4, 3), 1)
    engine.cancel(reservation.id)

    with pytest.raises(InvalidState):
        engine.cancel(reservation.id)


@pytest.mark.django_db
def test_cancel_checked_out_fails(engine, guest, room):
    reservation = engine.create(guest, room.id, date(2025, 4, 1), date(2025, 4, 3), 1)
    engine.confirm(reservation.id)
    engine.check_in(reservation.id)
    engine.check_out(reservation.id)

    with pytest.raises(InvalidState):
        engine.cancel(reservation.id)

    reservation.refresh_from_db()
    assert reservation.status == Reservation.CHECKED_OUT


@pytest.mark.django_db
def test_checked_in_guest_can_cancel(engine, guest, room):
    reservation = engine.create(guest, room.id, date(2025, 4, 1), date(2025, 4, 3), 1)
    engine.confirm(reservation.id)
    engine.check_in(reservation.id)

    assert engine.cancel(reservation.id).status == Reservation.CANCELLED


@pytest.mark.django_db
def test_confirm_is_idempotent(engine, guest, room, clock):
    reservation = engine.create(guest, room.id, date(2025, 4, 1), date(2025, 4, 3), 1)

    first = engine.confirm(reservation.id)
    clock.advance(timedelta(minutes=5))
    second = engine.confirm(reservation.id)

    assert first.status == second.status == Reservation.CONFIRMED
    assert second.confirmed_at == NOW


@pytest.mark.django_db
def test_lifecycle_only_moves_forward(engine, guest, room):
    reservation = engine.create(guest, room.id, date(2025, 4, 1), date(2025, 4, 3), 1)

    with pytest.raises(InvalidState):
        engine.check_in(reservation.id)
    with pytest.raises(InvalidState):
        engine.check_out(reservation.id)

    engine.confirm(reservation.id)
    engine.check_in(reservation.id)
    with pytest.raises(InvalidState):
        engine.confirm(reservation.id)

    engine.cancel(reservation.id)
    with pytest.raises(InvalidState):
        engine.confirm(reservation.id)


@pytest.mark.django_db
def test_confirm_missing_reservation(engine):
    with pytest.raises(NotFound):
        engine.confirm(12345)


@pytest.mark.django_db
def test_read_helpers(engine, guest, room):
    other_guest = get_user_model().objects.create_user(username="other", email="other@example.com", password="x")
    mine = engine.create(guest, room.id, date(2025, 8, 1), date(2025, 8, 3), 1)
    theirs = engine.create(other_guest, room.id, date(2025, 8, 10), date(2025, 8, 12), 1)
    engine.confirm(theirs.id)

    assert list(engine.for_guest(guest)) == [mine]
    assert list(engine.by_status(Reservation.CONFIRMED)) == [theirs]
    assert list(engine.in_date_range(date(2025, 8, 3), date(2025, 8, 9))) == [mine]
    assert engine.get(mine.id) == mine
    with pytest.raises(NotFound):
        engine.get(4242)


@pytest.mark.django_db
def test_cancel_without_payment_leaves_no_payment_rows(engine, guest, room):
    reservation = engine.create(guest, room.id, date(2025, 9, 1), date(2025, 9, 2), 1)
    engine.cancel(reservation.id, "No longer needed")

    assert not Payment.objects.exists()
