from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Optional

from django.db import transaction

from core.clock import Clock, system_clock
from core.exceptions import CapacityExceeded, InvalidState, NotFound, ResourceUnavailable
from core.locks import room_lock
from core.money import stay_total
from payments.models import Payment
from reservations.models import Reservation
from reservations.services import availability, coordinator
from rooms.models import Room

logger = logging.getLogger(__name__)


class ReservationEngine:
    """
    Owns the reservation lifecycle.

    ``create`` and ``update`` are serialized per room: the overlap check and the
    write happen while holding the room's lock, inside one transaction that also
    row-locks the room. Status transitions lock only the reservation row.
    """

    def __init__(self, *, clock: Optional[Clock] = None, payment_engine=None):
        self.clock = clock or system_clock
        self._payment_engine = payment_engine

    @property
    def payment_engine(self):
        if self._payment_engine is None:
            from payments.services.engine import PaymentEngine

            self._payment_engine = PaymentEngine(clock=self.clock, reservation_engine=self)
        return self._payment_engine

    @payment_engine.setter
    def payment_engine(self, engine):
        self._payment_engine = engine

    # -- queries ---------------------------------------------------------

    def get(self, reservation_id) -> Reservation:
        try:
            return Reservation.objects.select_related("room").get(pk=reservation_id)
        except (Reservation.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"Reservation not found with id: {reservation_id}") from None

    def for_guest(self, guest):
        return Reservation.objects.for_guest(guest).select_related("room").order_by("-created_at")

    def by_status(self, *statuses: str):
        return Reservation.objects.with_status(*statuses).select_related("room")

    def in_date_range(self, start: date, end: date):
        return Reservation.objects.in_date_range(start, end).select_related("room")

    # -- writes ----------------------------------------------------------

    def create(
        self,
        guest,
        room_id,
        check_in: date,
        check_out: date,
        guests: int,
        special_requests: str = "",
    ) -> Reservation:
        self._validate_guest_count(guests)

        with room_lock(room_id), transaction.atomic():
            room = self._lock_room(room_id)
            self._check_capacity(room, guests)
            availability.validate_stay(check_in, check_out)
            if not room.is_available:
                logger.info("Rejected booking on room %s: room is not open for booking", room.pk)
                raise ResourceUnavailable("Room is not available for booking")
            if availability.overlaps(room.pk, check_in, check_out):
                logger.info(
                    "Rejected booking on room %s for %s to %s: dates already taken",
                    room.pk,
                    check_in,
                    check_out,
                )
                raise ResourceUnavailable("Room is not available for the selected dates")

            now = self.clock()
            reservation = Reservation.objects.create(
                room=room,
                guest=guest,
                check_in=check_in,
                check_out=check_out,
                guests=guests,
                total_amount=stay_total(room.price_per_night, (check_out - check_in).days),
                status=Reservation.PENDING,
                special_requests=special_requests or "",
                created_at=now,
                updated_at=now,
            )

        logger.info(
            "Reservation %s created on room %s for %s to %s (total %s)",
            reservation.pk,
            room.pk,
            check_in,
            check_out,
            reservation.total_amount,
        )
        return reservation

    def update(self, reservation_id, check_in: date, check_out: date, guests: int) -> Reservation:
        current = self.get(reservation_id)
        self._validate_guest_count(guests)

        with room_lock(current.room_id), transaction.atomic():
            reservation = self._lock_reservation(current.pk)
            if reservation.status == Reservation.CANCELLED:
                raise InvalidState("Cannot modify cancelled reservation")
            if reservation.status in (Reservation.CHECKED_IN, Reservation.CHECKED_OUT):
                raise InvalidState("Cannot modify a reservation after check-in")
            if Payment.objects.for_reservation(reservation.pk).active().exists():
                raise InvalidState("Cannot modify a reservation once payment has been started")

            room = self._lock_room(reservation.room_id)
            self._check_capacity(room, guests)
            availability.validate_stay(check_in, check_out)
            if availability.overlaps(room.pk, check_in, check_out, exclude_reservation_id=reservation.pk):
                raise ResourceUnavailable("Room is not available for the selected dates")

            reservation.check_in = check_in
            reservation.check_out = check_out
            reservation.guests = guests
            reservation.total_amount = stay_total(room.price_per_night, (check_out - check_in).days)
            reservation.updated_at = self.clock()
            reservation.save(update_fields=["check_in", "check_out", "guests", "total_amount", "updated_at"])

        logger.info("Reservation %s modified: %s to %s, %s guests", reservation.pk, check_in, check_out, guests)
        return reservation

    def cancel(self, reservation_id, reason: str = "") -> Reservation:
        """
        Cancel a reservation, then refund any settled payment.

        The refund is best-effort: a processor failure is logged and recorded on
        the payment, and the cancellation stands.
        """

        with transaction.atomic():
            reservation = self._lock_reservation(reservation_id)
            if reservation.status == Reservation.CANCELLED:
                raise InvalidState("Reservation is already cancelled")
            if reservation.status == Reservation.CHECKED_OUT:
                raise InvalidState("Cannot cancel completed reservation")

            now = self.clock()
            reservation.status = Reservation.CANCELLED
            reservation.cancellation_reason = reason or ""
            reservation.cancelled_at = now
            reservation.updated_at = now
            reservation.save(update_fields=["status", "cancellation_reason", "cancelled_at", "updated_at"])

        logger.info("Reservation %s cancelled: %s", reservation.pk, reason or "no reason given")
        coordinator.on_reservation_cancelled(reservation, reason, payment_engine=self.payment_engine)
        return reservation

    def confirm(self, reservation_id) -> Reservation:
        """Mark a reservation paid; repeated confirmation is a no-op."""
        return self._transition(
            reservation_id,
            allowed_from=(Reservation.PENDING, Reservation.CONFIRMED),
            to=Reservation.CONFIRMED,
            stamp_field="confirmed_at",
        )

    def check_in(self, reservation_id) -> Reservation:
        return self._transition(
            reservation_id,
            allowed_from=(Reservation.CONFIRMED,),
            to=Reservation.CHECKED_IN,
            stamp_field="checked_in_at",
        )

    def check_out(self, reservation_id) -> Reservation:
        return self._transition(
            reservation_id,
            allowed_from=(Reservation.CHECKED_IN,),
            to=Reservation.CHECKED_OUT,
            stamp_field="checked_out_at",
        )

    # -- helpers ---------------------------------------------------------

    def _transition(self, reservation_id, *, allowed_from: Iterable[str], to: str, stamp_field: str) -> Reservation:
        with transaction.atomic():
            reservation = self._lock_reservation(reservation_id)
            if reservation.status == to:
                return reservation
            if reservation.status not in allowed_from:
                raise InvalidState(
                    f"Cannot move reservation from {reservation.status} to {to}"
                )
            now = self.clock()
            previous = reservation.status
            reservation.status = to
            setattr(reservation, stamp_field, now)
            reservation.updated_at = now
            reservation.save(update_fields=["status", stamp_field, "updated_at"])

        logger.info("Reservation %s moved from %s to %s", reservation.pk, previous, to)
        return reservation

    def _lock_reservation(self, reservation_id) -> Reservation:
        try:
            return Reservation.objects.select_for_update(of=("self",)).select_related("room").get(pk=reservation_id)
        except (Reservation.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"Reservation not found with id: {reservation_id}") from None

    def _lock_room(self, room_id) -> Room:
        try:
            return Room.objects.select_for_update().get(pk=room_id)
        except (Room.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"Room not found with id: {room_id}") from None

    @staticmethod
    def _validate_guest_count(guests) -> None:
        if not isinstance(guests, int) or isinstance(guests, bool) or guests < 1:
            raise InvalidState("A reservation needs at least one guest")

    @staticmethod
    def _check_capacity(room: Room, guests: int) -> None:
        if guests > room.capacity:
            raise CapacityExceeded(
                f"Number of guests ({guests}) exceeds room capacity ({room.capacity})"
            )
