from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Optional

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import ProtectedError

from core.exceptions import InvalidState, NotFound
from core.locks import room_lock
from rooms.models import Room

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "name",
    "room_type",
    "description",
    "price_per_night",
    "capacity",
    "amenities",
    "image_url",
    "is_available",
    "total_rooms",
    "floor_number",
    "size_sqft",
)


def get_room(room_id) -> Room:
    try:
        return Room.objects.get(pk=room_id)
    except (Room.DoesNotExist, ValueError, TypeError):
        raise NotFound(f"Room not found with id: {room_id}") from None


def _validated(room: Room) -> Room:
    try:
        room.full_clean()
    except ValidationError as exc:
        raise InvalidState(f"Invalid room data: {exc.message_dict}") from exc
    return room


def create_room(**fields: Any) -> Room:
    unknown = set(fields) - set(EDITABLE_FIELDS)
    if unknown:
        raise InvalidState(f"Unknown room fields: {', '.join(sorted(unknown))}")
    room = _validated(Room(**fields))
    room.save()
    logger.info("Room %s created (%s, %s/night)", room.id, room.name, room.price_per_night)
    return room


def update_room(room_id, **changes: Any) -> Room:
    """
    Apply catalog changes to a room.

    Runs under the room's booking lock so rate or capacity never change
    underneath an in-flight reservation computation.
    """

    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise InvalidState(f"Unknown room fields: {', '.join(sorted(unknown))}")

    with room_lock(room_id), transaction.atomic():
        room = get_room(room_id)
        room = Room.objects.select_for_update().get(pk=room.pk)
        for field, value in changes.items():
            setattr(room, field, value)
        _validated(room)
        room.save()

    logger.info("Room %s updated: %s", room.id, ", ".join(sorted(changes)) or "no changes")
    return room


def set_room_availability(room_id, is_available: bool) -> Room:
    return update_room(room_id, is_available=is_available)


def delete_room(room_id) -> None:
    with room_lock(room_id), transaction.atomic():
        room = get_room(room_id)
        try:
            room.delete()
        except ProtectedError:
            raise InvalidState(
                "Room has reservation history and cannot be deleted; mark it unavailable instead."
            ) from None
    logger.info("Room %s deleted", room_id)


def filter_rooms(
    *,
    room_type: Optional[str] = None,
    min_price: Optional[Decimal] = None,
    max_price: Optional[Decimal] = None,
):
    queryset = Room.objects.bookable()
    if room_type:
        queryset = queryset.filter(room_type=room_type)
    if min_price is not None:
        queryset = queryset.filter(price_per_night__gte=min_price)
    if max_price is not None:
        queryset = queryset.filter(price_per_night__lte=max_price)
    return queryset.order_by("price_per_night", "id")

