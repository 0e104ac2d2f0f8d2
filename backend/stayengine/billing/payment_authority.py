"""Payment authority contract and the Stripe-backed implementation.

The engine decides *how much* money moves; the payment authority moves it.
Failures are wrapped in ``PaymentAuthorityError`` and surfaced to the caller,
never retried here.
"""

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

import stripe

from stayengine.billing.stripe_client import (
    cancel_payment_intent,
    capture_payment_intent,
    create_payment_intent,
    create_refund,
    get_payment_intent,
)
from stayengine.errors import PaymentAuthorityError
from stayengine.pricing.money import to_minor_units

logger = logging.getLogger(__name__)

AUTHORIZED_INTENT_STATUSES = frozenset({"requires_capture", "succeeded"})


@dataclass(frozen=True)
class PaymentAuthorization:
    """Handle the guest uses to complete payment for a booking."""

    payment_reference: str
    client_secret: str | None
    amount: Decimal
    currency: str


class PaymentAuthority(Protocol):
    async def authorize_payment(
        self, booking_id: uuid.UUID, amount: Decimal, currency: str
    ) -> PaymentAuthorization: ...

    async def is_authorized(self, payment_reference: str, amount: Decimal, currency: str) -> bool: ...

    async def request_refund(
        self,
        booking_id: uuid.UUID,
        amount: Decimal,
        currency: str,
        payment_reference: str,
    ) -> str:
        """Return the payment authority's transaction id for the refund."""
        ...


class StripePaymentAuthority:
    """``PaymentAuthority`` using manual-capture Stripe PaymentIntents."""

    async def authorize_payment(
        self, booking_id: uuid.UUID, amount: Decimal, currency: str
    ) -> PaymentAuthorization:
        try:
            intent = await create_payment_intent(to_minor_units(amount, currency), currency, str(booking_id))
        except stripe.StripeError as exc:
            logger.exception("Stripe authorization failed for booking %s", booking_id)
            raise PaymentAuthorityError(f"Payment authorization failed: {exc.user_message or exc}") from exc
        return PaymentAuthorization(
            payment_reference=intent.id,
            client_secret=intent.client_secret,
            amount=amount,
            currency=currency,
        )

    async def is_authorized(self, payment_reference: str, amount: Decimal, currency: str) -> bool:
        try:
            intent = await get_payment_intent(payment_reference)
        except stripe.InvalidRequestError:
            logger.warning("Unknown payment intent %s", payment_reference)
            return False
        except stripe.StripeError as exc:
            logger.exception("Stripe lookup failed for payment intent %s", payment_reference)
            raise PaymentAuthorityError(f"Payment lookup failed: {exc.user_message or exc}") from exc

        return (
            intent.status in AUTHORIZED_INTENT_STATUSES
            and intent.currency == currency.lower()
            and intent.amount >= to_minor_units(amount, currency)
        )

    async def request_refund(
        self,
        booking_id: uuid.UUID,
        amount: Decimal,
        currency: str,
        payment_reference: str,
    ) -> str:
        """Return ``amount`` to the guest.

        Uncaptured authorizations are settled by capturing only what is kept
        (or cancelling outright for a full refund); captured payments get a
        Stripe Refund.
        """
        refund_minor = to_minor_units(amount, currency)
        try:
            intent = await get_payment_intent(payment_reference)
            if intent.status == "requires_capture":
                retained = intent.amount - refund_minor
                if retained <= 0:
                    await cancel_payment_intent(intent.id)
                else:
                    await capture_payment_intent(intent.id, retained)
                return intent.id

            refund = await create_refund(intent.id, refund_minor, str(booking_id))
            return refund.id
        except stripe.StripeError as exc:
            logger.exception("Stripe refund failed for booking %s", booking_id)
            raise PaymentAuthorityError(f"Refund failed: {exc.user_message or exc}") from exc
