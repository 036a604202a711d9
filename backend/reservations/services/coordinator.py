"""
Policy binding payments and reservations together.

A settled payment confirms its reservation; a cancelled reservation triggers a
best-effort refund of its settled payment. Neither engine calls the other
directly for these two transitions.
"""

from __future__ import annotations

import logging

from core.exceptions import InvalidState, ProcessorError
from payments.models import Payment
from reservations.models import Reservation

logger = logging.getLogger(__name__)


def on_payment_succeeded(payment: Payment, *, reservation_engine) -> None:
    reservation = reservation_engine.get(payment.reservation_id)
    if reservation.status in (Reservation.PENDING, Reservation.CONFIRMED):
        try:
            reservation_engine.confirm(reservation.pk)
            return
        except InvalidState:
            # Cancelled between the read above and the confirm.
            reservation = reservation_engine.get(payment.reservation_id)

    if reservation.status == Reservation.CANCELLED:
        logger.warning(
            "Payment %s settled for cancelled reservation %s; refunding",
            payment.pk,
            reservation.pk,
        )
        refund_for_cancellation(
            payment,
            reservation.cancellation_reason or "Reservation cancelled before payment settled",
            payment_engine=reservation_engine.payment_engine,
        )
        return

    logger.info(
        "Payment %s settled for reservation %s already %s; nothing to confirm",
        payment.pk,
        reservation.pk,
        reservation.status,
    )


def on_reservation_cancelled(reservation: Reservation, reason: str, *, payment_engine) -> None:
    payment = (
        Payment.objects.for_reservation(reservation.pk)
        .with_status(Payment.SUCCEEDED)
        .first()
    )
    if payment is None:
        logger.info("Reservation %s cancelled with no settled payment to refund", reservation.pk)
        return
    refund_for_cancellation(payment, reason or "Reservation cancelled", payment_engine=payment_engine)


def refund_for_cancellation(payment: Payment, reason: str, *, payment_engine) -> None:
    """Refund the full amount; a processor failure is recorded, never raised."""
    if payment.amount <= 0:
        logger.info("Skipped refund of payment %s: nothing was charged", payment.pk)
        return
    try:
        payment_engine.refund(payment.pk, payment.amount, reason)
    except ProcessorError as exc:
        logger.exception("Refund of payment %s failed after cancellation: %s", payment.pk, exc)
        try:
            payment_engine.record_refund_failure(payment.pk, payment.amount, reason, str(exc))
        except InvalidState as state_exc:
            logger.warning("Could not record failed refund on payment %s: %s", payment.pk, state_exc)
    except InvalidState as exc:
        logger.info("Skipped refund of payment %s: %s", payment.pk, exc)


def build_engines(*, clock=None, processor=None):
    """Return a wired ``(ReservationEngine, PaymentEngine)`` pair."""
    from payments.services.engine import PaymentEngine
    from reservations.services.engine import ReservationEngine

    reservation_engine = ReservationEngine(clock=clock)
    payment_engine = PaymentEngine(
        clock=clock,
        processor=processor,
        reservation_engine=reservation_engine,
    )
    reservation_engine.payment_engine = payment_engine
    return reservation_engine, payment_engine
