from __future__ import annotations

import logging
from decimal import Decimal
from typing import List, Optional

from django.conf import settings
from django.db import transaction

from core.clock import Clock, system_clock
from core.exceptions import InvalidAmount, InvalidState, NotFound, ProcessorError
from core.locks import PAYMENT, RESERVATION_PAYMENT, keyed_lock, room_lock
from core.money import to_decimal, to_minor_units
from payments.models import Payment
from payments.services.processor import PaymentProcessor, get_processor
from reservations.models import Reservation
from reservations.services import coordinator

logger = logging.getLogger(__name__)

INTENT_SUCCEEDED = "payment_intent.succeeded"
INTENT_FAILED = "payment_intent.payment_failed"


class PaymentEngine:
    """
    Owns the payment lifecycle: PENDING -> SUCCEEDED -> REFUNDED/PARTIALLY_REFUNDED,
    or PENDING -> FAILED.

    Processor calls never run inside a database transaction. Intent creation is
    serialized per reservation and refunds per payment, so a retried request
    cannot create two intents or issue two refunds.
    """

    def __init__(
        self,
        *,
        clock: Optional[Clock] = None,
        processor: Optional[PaymentProcessor] = None,
        reservation_engine=None,
    ):
        self.clock = clock or system_clock
        self._processor = processor
        self._reservation_engine = reservation_engine

    @property
    def processor(self) -> PaymentProcessor:
        if self._processor is None:
            self._processor = get_processor()
        return self._processor

    @property
    def reservation_engine(self):
        if self._reservation_engine is None:
            from reservations.services.engine import ReservationEngine

            self._reservation_engine = ReservationEngine(clock=self.clock, payment_engine=self)
        return self._reservation_engine

    # -- queries ---------------------------------------------------------

    def get(self, payment_id) -> Payment:
        try:
            return Payment.objects.get(pk=payment_id)
        except (Payment.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"Payment not found with id: {payment_id}") from None

    def for_reservation(self, reservation_id) -> Optional[Payment]:
        return Payment.objects.for_reservation(reservation_id).active().first()

    def history_for(self, guest):
        return Payment.objects.for_guest(guest).select_related("reservation", "reservation__room")

    # -- intents ---------------------------------------------------------

    def create_intent(self, reservation) -> Payment:
        """
        Open a processor intent for the reservation's total and record it PENDING.

        The processor call runs outside the room lock. Before the payment row is
        written the reservation is re-read under the room lock and the intent is
        abandoned if the stay was modified or cancelled in the meantime.
        """

        reservation_id = getattr(reservation, "pk", reservation)
        with keyed_lock(RESERVATION_PAYMENT, reservation_id):
            try:
                reservation = Reservation.objects.get(pk=reservation_id)
            except (Reservation.DoesNotExist, ValueError, TypeError):
                raise NotFound(f"Reservation not found with id: {reservation_id}") from None

            self._check_payable(reservation)
            if reservation.total_amount <= 0:
                raise InvalidAmount("Nothing to charge for a reservation with a zero total")

            currency = getattr(settings, "PAYMENT_CURRENCY", "usd")
            amount = reservation.total_amount
            amount_minor = to_minor_units(amount)
            intent = self.processor.create_intent(
                amount_minor,
                currency,
                {
                    "reservation_id": reservation.pk,
                    "guest_id": reservation.guest_id,
                    "room_id": reservation.room_id,
                },
            )

            with room_lock(reservation.room_id), transaction.atomic():
                current = Reservation.objects.select_for_update().get(pk=reservation.pk)
                if current.total_amount != amount or current.status != reservation.status:
                    logger.warning(
                        "Abandoning intent %s: reservation %s changed while it was being created",
                        intent.intent_id,
                        reservation.pk,
                    )
                    raise InvalidState("Reservation changed while the payment was being set up")
                self._check_payable(current)

                now = self.clock()
                payment = Payment.objects.create(
                    reservation=current,
                    guest_id=current.guest_id,
                    amount=amount,
                    currency=currency,
                    status=Payment.PENDING,
                    stripe_payment_intent_id=intent.intent_id,
                    stripe_client_secret=intent.client_secret,
                    created_at=now,
                    updated_at=now,
                )

        logger.info(
            "Payment intent %s created for reservation %s (%s minor units)",
            intent.intent_id,
            reservation.pk,
            amount_minor,
        )
        return payment

    def confirm(
        self,
        intent_id: str,
        charge_id: Optional[str] = None,
        receipt_url: Optional[str] = None,
        *,
        payment_method: str = "",
        card_brand: str = "",
        card_last4: str = "",
    ) -> Payment:
        with transaction.atomic():
            payment = self._lock_by_intent(intent_id)
            if payment.status == Payment.SUCCEEDED:
                return payment
            if payment.status != Payment.PENDING:
                raise InvalidState(f"Cannot confirm a {payment.status.lower()} payment")

            payment.status = Payment.SUCCEEDED
            payment.stripe_charge_id = charge_id or ""
            payment.receipt_url = receipt_url or ""
            payment.payment_method = payment_method or payment.payment_method
            payment.card_brand = card_brand or payment.card_brand
            payment.card_last4 = card_last4 or payment.card_last4
            payment.updated_at = self.clock()
            payment.save()

        logger.info("Payment %s succeeded (intent %s)", payment.pk, intent_id)
        coordinator.on_payment_succeeded(payment, reservation_engine=self.reservation_engine)
        payment.refresh_from_db()
        return payment

    def fail(self, intent_id: str, message: str = "") -> Payment:
        with transaction.atomic():
            payment = self._lock_by_intent(intent_id)
            if payment.status == Payment.FAILED:
                return payment
            if payment.status != Payment.PENDING:
                raise InvalidState(f"Cannot fail a {payment.status.lower()} payment")

            payment.status = Payment.FAILED
            payment.failure_message = message or ""
            payment.updated_at = self.clock()
            payment.save(update_fields=["status", "failure_message", "updated_at"])

        logger.warning("Payment %s failed (intent %s): %s", payment.pk, intent_id, message or "no reason given")
        return payment

    # -- refunds ---------------------------------------------------------

    def refund(self, payment_id, amount, reason: str = "") -> Payment:
        amount = to_decimal(amount)
        with keyed_lock(PAYMENT, payment_id):
            payment = self.get(payment_id)
            if payment.status != Payment.SUCCEEDED:
                raise InvalidState("Cannot refund payment that hasn't succeeded")
            self._check_refund_amount(payment, amount)

            refund_id = self.processor.refund(
                payment.stripe_payment_intent_id,
                to_minor_units(amount),
                reason or "",
            )

            with transaction.atomic():
                payment = self._lock(payment.pk)
                if payment.status != Payment.SUCCEEDED:
                    raise InvalidState("Payment changed state while the refund was in flight")
                self._apply_refund(payment, amount, reason)
                payment.stripe_refund_id = refund_id
                payment.refund_error_message = ""
                payment.refund_failed_at = None
                payment.save()

        logger.info(
            "Payment %s %s: %s refunded (%s)",
            payment.pk,
            payment.status.lower(),
            amount,
            refund_id,
        )
        return payment

    def record_refund_failure(self, payment_id, amount, reason: str, message: str) -> Payment:
        """
        Book a refund the processor rejected.

        The payment moves to REFUNDED/PARTIALLY_REFUNDED as though the refund
        went through, with the processor error kept on the record so
        ``retry_failed_refunds`` can settle it later.
        """

        amount = to_decimal(amount)
        with keyed_lock(PAYMENT, payment_id), transaction.atomic():
            payment = self._lock(payment_id)
            if payment.status != Payment.SUCCEEDED:
                raise InvalidState("Cannot refund payment that hasn't succeeded")
            self._check_refund_amount(payment, amount)

            now = self.clock()
            self._apply_refund(payment, amount, reason)
            payment.refund_error_message = message
            payment.refund_failed_at = now
            payment.save()

        logger.warning(
            "Payment %s marked %s without a processor refund: %s",
            payment.pk,
            payment.status.lower(),
            message,
        )
        return payment

    def retry_failed_refunds(self) -> List[Payment]:
        settled = []
        for payment_id in list(Payment.objects.awaiting_refund().values_list("pk", flat=True)):
            with keyed_lock(PAYMENT, payment_id):
                payment = self.get(payment_id)
                if not payment.refund_pending_at_processor:
                    continue
                try:
                    refund_id = self.processor.refund(
                        payment.stripe_payment_intent_id,
                        to_minor_units(payment.refund_amount),
                        payment.refund_reason,
                    )
                except ProcessorError as exc:
                    logger.warning("Refund retry for payment %s failed: %s", payment.pk, exc)
                    payment.refund_error_message = str(exc)
                    payment.refund_failed_at = self.clock()
                    payment.updated_at = payment.refund_failed_at
                    payment.save(update_fields=["refund_error_message", "refund_failed_at", "updated_at"])
                    continue

                payment.stripe_refund_id = refund_id
                payment.refund_error_message = ""
                payment.refund_failed_at = None
                payment.updated_at = self.clock()
                payment.save(
                    update_fields=["stripe_refund_id", "refund_error_message", "refund_failed_at", "updated_at"]
                )
                logger.info("Refund retry for payment %s settled (%s)", payment.pk, refund_id)
                settled.append(payment)
        return settled

    # -- processor events ------------------------------------------------

    def handle_event(self, event) -> Optional[Payment]:
        """
        Apply a Stripe ``payment_intent.*`` event.

        Events for intents this system did not create, and event types it does
        not care about, are logged and ignored.
        """

        event_type = event["type"]
        data_object = event["data"]["object"]
        intent_id = data_object.get("id")

        if event_type not in (INTENT_SUCCEEDED, INTENT_FAILED):
            logger.info("Unhandled Stripe event type: %s", event_type)
            return None
        if not Payment.objects.filter(stripe_payment_intent_id=intent_id).exists():
            logger.warning("Stripe event %s for unknown intent %s", event_type, intent_id)
            return None

        if event_type == INTENT_SUCCEEDED:
            return self.confirm(intent_id, charge_id=data_object.get("latest_charge") or "")

        error = data_object.get("last_payment_error") or {}
        return self.fail(intent_id, error.get("message") or "Payment failed")

    # -- helpers ---------------------------------------------------------

    def _apply_refund(self, payment: Payment, amount: Decimal, reason: str) -> None:
        now = self.clock()
        payment.refund_amount = amount
        payment.refund_reason = reason or ""
        payment.refunded_at = now
        payment.updated_at = now
        payment.status = Payment.REFUNDED if amount >= payment.amount else Payment.PARTIALLY_REFUNDED

    @staticmethod
    def _check_payable(reservation: Reservation) -> None:
        if reservation.status in (Reservation.CANCELLED, Reservation.CHECKED_OUT):
            raise InvalidState(f"Cannot take payment for a {reservation.status.lower()} reservation")
        if Payment.objects.for_reservation(reservation.pk).active().exists():
            raise InvalidState("Reservation already has a payment in progress")

    @staticmethod
    def _check_refund_amount(payment: Payment, amount: Decimal) -> None:
        if amount <= 0:
            raise InvalidAmount("Refund amount must be positive")
        if amount > payment.amount:
            raise InvalidAmount(f"Refund amount {amount} exceeds payment amount {payment.amount}")

    def _lock(self, payment_id) -> Payment:
        try:
            return Payment.objects.select_for_update().get(pk=payment_id)
        except (Payment.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"Payment not found with id: {payment_id}") from None

    def _lock_by_intent(self, intent_id: str) -> Payment:
        try:
            return Payment.objects.select_for_update().get(stripe_payment_intent_id=intent_id)
        except Payment.DoesNotExist:
            raise NotFound(f"Payment not found for intent: {intent_id}") from None
