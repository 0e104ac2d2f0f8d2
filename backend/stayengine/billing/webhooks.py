"""Stripe webhook event handlers: confirm bookings once funds are held."""

import logging
import uuid

import stripe

from stayengine.billing.payment_authority import PaymentAuthority
from stayengine.errors import InvalidTransition
from stayengine.models.booking import BookingStatus
from stayengine.services.booking_service import confirm_booking
from stayengine.services.booking_store import BookingStore

logger = logging.getLogger(__name__)


def _booking_id_from_intent(intent: stripe.PaymentIntent) -> uuid.UUID | None:
    metadata = intent.metadata or {}
    raw = metadata.get("booking_id")
    if not raw:
        return None
    try:
        return uuid.UUID(raw)
    except ValueError:
        logger.warning("Payment intent %s carries a malformed booking_id %r", intent.id, raw)
        return None


async def handle_payment_authorized(
    store: BookingStore, payments: PaymentAuthority, event: stripe.Event
) -> None:
    """Handle ``payment_intent.amount_capturable_updated`` and ``payment_intent.succeeded``.

    Confirms the pending booking named in the intent metadata. Redelivered
    events for an already confirmed booking are ignored.
    """
    intent = event.data.object
    booking_id = _booking_id_from_intent(intent)
    if booking_id is None:
        logger.info("Payment intent %s is not linked to a booking, skipping", intent.id)
        return

    booking = await store.get_booking(booking_id)
    if booking is None:
        logger.warning("No booking %s for payment intent %s", booking_id, intent.id)
        return
    if booking.status != BookingStatus.PENDING.value:
        logger.info(
            "Booking %s already %s, ignoring %s for intent %s",
            booking_id,
            booking.status,
            event.type,
            intent.id,
        )
        return

    try:
        await confirm_booking(store, payments, booking_id, intent.id)
    except InvalidTransition:
        logger.info("Booking %s changed state before intent %s was applied", booking_id, intent.id)


async def handle_payment_failed(
    store: BookingStore, payments: PaymentAuthority, event: stripe.Event
) -> None:
    """Handle ``payment_intent.payment_failed``: the booking stays pending."""
    intent = event.data.object
    error = getattr(intent, "last_payment_error", None)
    logger.warning(
        "Payment intent %s failed for booking %s: %s",
        intent.id,
        _booking_id_from_intent(intent),
        getattr(error, "message", None),
    )
