"""Async Stripe API wrapper for booking payments."""

import logging

import stripe
from stripe import StripeClient

from stayengine.config import settings

logger = logging.getLogger(__name__)


def get_stripe_client() -> StripeClient:
    """Create a StripeClient instance with async HTTP support."""
    return StripeClient(
        settings.stripe_secret_key,
        http_client=stripe.HTTPXClient(),
    )


async def create_payment_intent(
    amount: int,
    currency: str,
    booking_id: str,
) -> stripe.PaymentIntent:
    """Create a manual-capture PaymentIntent holding funds for a booking.

    ``amount`` is in minor units (paise, cents).
    """
    client = get_stripe_client()
    logger.info("Creating payment intent for booking %s (%d %s)", booking_id, amount, currency)
    intent = await client.v1.payment_intents.create_async(
        params={
            "amount": amount,
            "currency": currency.lower(),
            "capture_method": "manual",
            "metadata": {"booking_id": booking_id},
        },
        options={"idempotency_key": f"booking-{booking_id}-authorize-{amount}"},
    )
    logger.info("Created payment intent %s for booking %s", intent.id, booking_id)
    return intent


async def get_payment_intent(payment_intent_id: str) -> stripe.PaymentIntent:
    """Retrieve a Stripe PaymentIntent by ID."""
    client = get_stripe_client()
    return await client.v1.payment_intents.retrieve_async(payment_intent_id)


async def capture_payment_intent(payment_intent_id: str, amount_to_capture: int) -> stripe.PaymentIntent:
    """Capture part of an authorized PaymentIntent, releasing the remainder."""
    client = get_stripe_client()
    logger.info("Capturing %d on payment intent %s", amount_to_capture, payment_intent_id)
    return await client.v1.payment_intents.capture_async(
        payment_intent_id,
        params={"amount_to_capture": amount_to_capture},
    )


async def cancel_payment_intent(payment_intent_id: str) -> stripe.PaymentIntent:
    """Release an uncaptured authorization in full."""
    client = get_stripe_client()
    logger.info("Cancelling payment intent %s", payment_intent_id)
    return await client.v1.payment_intents.cancel_async(payment_intent_id)


async def create_refund(payment_intent_id: str, amount: int, booking_id: str) -> stripe.Refund:
    """Refund ``amount`` minor units of a captured PaymentIntent."""
    client = get_stripe_client()
    logger.info("Refunding %d on payment intent %s (booking %s)", amount, payment_intent_id, booking_id)
    return await client.v1.refunds.create_async(
        params={
            "payment_intent": payment_intent_id,
            "amount": amount,
            "metadata": {"booking_id": booking_id},
        },
        options={"idempotency_key": f"booking-{booking_id}-refund-{amount}"},
    )


def construct_webhook_event(payload: bytes, sig_header: str) -> stripe.Event:
    """Verify and construct a Stripe webhook event (synchronous)."""
    client = get_stripe_client()
    return client.construct_event(payload, sig_header, settings.stripe_webhook_secret)
