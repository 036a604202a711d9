from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol
from uuid import uuid4

import stripe
from django.conf import settings

from core.exceptions import ProcessorError

logger = logging.getLogger(__name__)


@dataclass
class IntentResult:
    intent_id: str
    client_secret: str


class PaymentProcessor(Protocol):
    def create_intent(self, amount_minor: int, currency: str, metadata: Dict[str, Any]) -> IntentResult:
        ...

    def refund(self, intent_id: str, amount_minor: int, reason: str) -> str:
        ...


@dataclass
class StubProcessor:
    """
    Stand-in for Stripe when running locally or under test.

    Returns predictable identifiers so the payment flow behaves as if Stripe
    responded. Set ``fail_with`` to make every call raise ``ProcessorError``;
    each call is appended to ``calls`` for assertions.
    """

    fail_with: Optional[str] = None
    calls: List[tuple] = field(default_factory=list)

    def create_intent(self, amount_minor: int, currency: str, metadata: Dict[str, Any]) -> IntentResult:
        self.calls.append(("create_intent", amount_minor, currency, dict(metadata)))
        self._maybe_fail()
        intent_id = f"pi_test_{uuid4().hex}"
        return IntentResult(intent_id=intent_id, client_secret=f"{intent_id}_secret_{uuid4().hex[:12]}")

    def refund(self, intent_id: str, amount_minor: int, reason: str) -> str:
        self.calls.append(("refund", intent_id, amount_minor, reason))
        self._maybe_fail()
        return f"re_test_{uuid4().hex}"

    def _maybe_fail(self) -> None:
        if self.fail_with:
            raise ProcessorError(self.fail_with)


class StripeProcessor:
    """Talks to Stripe with a bounded timeout and no client-side retries."""

    def __init__(self, api_key: str, timeout: float = 10.0):
        if not api_key:
            raise RuntimeError("Stripe secret key is not configured.")
        stripe.api_key = api_key
        stripe.max_network_retries = 0
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout)

    def create_intent(self, amount_minor: int, currency: str, metadata: Dict[str, Any]) -> IntentResult:
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount_minor,
                currency=currency,
                metadata={key: str(value) for key, value in metadata.items()},
                automatic_payment_methods={"enabled": True},
            )
        except stripe.StripeError as exc:
            logger.exception("Failed to create Stripe payment intent: %s", exc)
            raise ProcessorError(f"Payment processor error: {exc.user_message or exc}") from exc
        return IntentResult(intent_id=intent.id, client_secret=intent.client_secret)

    def refund(self, intent_id: str, amount_minor: int, reason: str) -> str:
        try:
            refund = stripe.Refund.create(
                payment_intent=intent_id,
                amount=amount_minor,
                reason="requested_by_customer",
                metadata={"reason": reason[:500]},
            )
        except stripe.StripeError as exc:
            logger.warning("Stripe refund failed for %s: %s", intent_id, exc)
            raise ProcessorError(f"Payment processor error: {exc.user_message or exc}") from exc
        return refund.id


def _get_stripe_api_key() -> Optional[str]:
    key = getattr(settings, "STRIPE_SECRET_KEY", "")
    return key or None


def _should_use_stub() -> bool:
    if getattr(settings, "STRIPE_USE_STUB", False):
        return True
    return _get_stripe_api_key() is None


def get_processor() -> PaymentProcessor:
    if _should_use_stub():
        return StubProcessor()
    return StripeProcessor(
        _get_stripe_api_key(),
        timeout=getattr(settings, "STRIPE_TIMEOUT_SECONDS", 10.0),
    )


def parse_webhook_event(payload: bytes, signature: str):
    """
    Verify a Stripe webhook payload and return the event.

    Raises ``ValueError`` for a malformed payload or bad signature, and
    ``RuntimeError`` when no webhook secret is configured.
    """

    secret = getattr(settings, "STRIPE_WEBHOOK_SECRET", "")
    if not secret:
        logger.error("Stripe webhook secret not configured.")
        raise RuntimeError("STRIPE_WEBHOOK_SECRET is not configured.")
    try:
        return stripe.Webhook.construct_event(payload, signature, secret)
    except ValueError:
        logger.warning("Invalid payload received on Stripe webhook.")
        raise
    except stripe.SignatureVerificationError as exc:
        logger.warning("Invalid Stripe signature.")
        raise ValueError("Invalid Stripe signature.") from exc
