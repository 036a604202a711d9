from datetime import date
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.core.management import CommandError, call_command

from core.exceptions import InvalidState, NotFound
from reservations.models import Reservation
from rooms.models import Room
from rooms.services import catalog


@pytest.fixture
def room(db):
    return catalog.create_room(
        name="Garden Standard",
        room_type=Room.STANDARD,
        price_per_night=Decimal("100.00"),
        capacity=2,
    )


@pytest.mark.django_db
def test_create_room_validates_fields():
    with pytest.raises(InvalidState):
        catalog.create_room(name="No capacity", price_per_night=Decimal("80.00"), capacity=0)

    with pytest.raises(InvalidState):
        catalog.create_room(name="Odd", price_per_night=Decimal("80.00"), capacity=1, wifi=True)

    assert not Room.objects.exists()


@pytest.mark.django_db
def test_update_room_applies_changes(room):
    updated = catalog.update_room(room.id, price_per_night=Decimal("125.50"), capacity=3)

    room.refresh_from_db()
    assert updated.price_per_night == Decimal("125.50")
    assert room.price_per_night == Decimal("125.50")
    assert room.capacity == 3


@pytest.mark.django_db
def test_update_room_rejects_invalid_amenities(room):
    with pytest.raises(InvalidState):
        catalog.update_room(room.id, amenities="wifi")

    room.refresh_from_db()
    assert room.amenities == []


@pytest.mark.django_db
def test_get_room_missing_raises_not_found():
    with pytest.raises(NotFound):
        catalog.get_room(9999)
    with pytest.raises(NotFound):
        catalog.get_room("not-an-id")


@pytest.mark.django_db
def test_filter_rooms_by_type_and_price(room):
    suite = catalog.create_room(
        name="Skyline Suite",
        room_type=Room.SUITE,
        price_per_night=Decimal("289.50"),
        capacity=4,
    )
    closed = catalog.create_room(name="Closed", price_per_night=Decimal("90.00"), capacity=2)
    catalog.set_room_availability(closed.id, False)

    assert list(catalog.filter_rooms()) == [room, suite]
    assert list(catalog.filter_rooms(room_type=Room.SUITE)) == [suite]
    assert list(catalog.filter_rooms(max_price=Decimal("150"))) == [room]
    assert list(catalog.filter_rooms(min_price=Decimal("150"))) == [suite]


@pytest.mark.django_db
def test_delete_room_with_history_is_refused(room):
    guest = get_user_model().objects.create_user(username="guest", email="guest@example.com", password="x")
    Reservation.objects.create(
        room=room,
        guest=guest,
        check_in=date(2025, 6, 1),
        check_out=date(2025, 6, 3),
        guests=1,
        total_amount=Decimal("200.00"),
    )

    with pytest.raises(InvalidState):
        catalog.delete_room(room.id)
    assert Room.objects.filter(pk=room.pk).exists()


@pytest.mark.django_db
def test_delete_room_without_history(room):
    catalog.delete_room(room.id)
    assert not Room.objects.exists()


@pytest.mark.django_db
def test_seed_rooms_is_idempotent(settings):
    settings.DEBUG = True

    call_command("seed_rooms")
    call_command("seed_rooms")

    assert Room.objects.count() == 4
    assert Room.objects.get(name="Garden Standard").price_per_night == Decimal("100.00")


@pytest.mark.django_db
def test_seed_rooms_refuses_without_debug(settings):
    settings.DEBUG = False

    with pytest.raises(CommandError):
        call_command("seed_rooms")
    assert not Room.objects.exists()
