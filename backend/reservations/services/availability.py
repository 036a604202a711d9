"""Read-only answers to "is this room free for these nights?"."""

from __future__ import annotations

from datetime import date
from typing import Iterable, List, Optional

from core.exceptions import InvalidDates
from reservations.models import Reservation
from rooms.models import Room


def validate_stay(check_in: date, check_out: date) -> None:
    if check_in is None or check_out is None:
        raise InvalidDates("Check-in and check-out dates are required.")
    if check_out <= check_in:
        raise InvalidDates("Check-out date must be after the check-in date.")


def find_conflicts(room_id, check_in: date, check_out: date, exclude_reservation_id=None):
    conflicts = Reservation.objects.overlapping(room_id, check_in, check_out)
    if exclude_reservation_id is not None:
        conflicts = conflicts.exclude(pk=exclude_reservation_id)
    return conflicts


def overlaps(room_id, check_in: date, check_out: date, exclude_reservation_id=None) -> bool:
    """
    True when a PENDING, CONFIRMED or CHECKED_IN reservation on the room shares
    at least one night with [check_in, check_out).

    ``exclude_reservation_id`` lets a reservation being modified ignore its own
    current interval.
    """

    validate_stay(check_in, check_out)
    return find_conflicts(room_id, check_in, check_out, exclude_reservation_id).exists()


def get_available(
    room_ids: Iterable,
    check_in: date,
    check_out: date,
    min_capacity: int = 1,
) -> List[Room]:
    validate_stay(check_in, check_out)
    candidates = (
        Room.objects.filter(pk__in=list(room_ids))
        .bookable()
        .with_capacity(min_capacity)
        .order_by("price_per_night", "id")
    )
    busy_room_ids = set(
        Reservation.objects.active()
        .filter(room__in=candidates, check_in__lt=check_out, check_out__gt=check_in)
        .values_list("room_id", flat=True)
    )
    return [room for room in candidates if room.id not in busy_room_ids]


def find_available_rooms(check_in: date, check_out: date, guests: int = 1, *, room_type: Optional[str] = None) -> List[Room]:
    rooms = Room.objects.bookable()
    if room_type:
        rooms = rooms.filter(room_type=room_type)
    return get_available(rooms.values_list("pk", flat=True), check_in, check_out, min_capacity=guests)
