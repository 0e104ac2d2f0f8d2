"""Booking lifecycle: create, confirm, reschedule, check in, complete, cancel.

State machine::

    pending -> confirmed -> checked_in -> completed
       \\           \\            \\
        +-----------+------------+--> cancelled

``completed`` and ``cancelled`` are terminal. Every date-changing operation
locks the homestay's calendar, re-runs the availability check and reprices
before writing, all inside the caller's unit of work.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from stayengine.billing.payment_authority import PaymentAuthority, PaymentAuthorization
from stayengine.clock import check_in_moment, resource_now
from stayengine.config import settings
from stayengine.date_range import DateRange
from stayengine.errors import BookingNotFound, ConflictError, InvalidRange, InvalidTransition, PaymentNotAuthorized
from stayengine.models.availability import AvailabilityRecord
from stayengine.models.booking import Booking, BookingStatus
from stayengine.pricing.money import round_money
from stayengine.services.availability_service import check_availability
from stayengine.services.booking_store import BookingStore
from stayengine.services.pricing_service import get_homestay_or_raise, price_stay, validate_guest_count

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    BookingStatus.PENDING.value: frozenset({BookingStatus.CONFIRMED.value, BookingStatus.CANCELLED.value}),
    BookingStatus.CONFIRMED.value: frozenset({BookingStatus.CHECKED_IN.value, BookingStatus.CANCELLED.value}),
    BookingStatus.CHECKED_IN.value: frozenset({BookingStatus.COMPLETED.value, BookingStatus.CANCELLED.value}),
    BookingStatus.COMPLETED.value: frozenset(),
    BookingStatus.CANCELLED.value: frozenset(),
}
RESCHEDULABLE_STATUSES = frozenset({BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value})

# (minimum days before check-in, refund percent), most generous first
REFUND_TIERS: tuple[tuple[int, int], ...] = (
    (7, 100),
    (3, 50),
    (1, 25),
)


@dataclass(frozen=True)
class RescheduleResult:
    booking: Booking
    previous_total: Decimal
    price_difference: Decimal  # positive: guest owes more


@dataclass(frozen=True)
class CancellationResult:
    booking: Booking
    refund_percentage: int
    refund_amount: Decimal


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def refund_percentage(time_until_check_in: timedelta) -> int:
    """Refund tier for a cancellation made ``time_until_check_in`` ahead.

    7+ days: 100%, 3-6 days: 50%, 1-2 days: 25%, under 24 hours: nothing.
    """
    days = time_until_check_in / timedelta(days=1)
    for min_days, percent in REFUND_TIERS:
        if days >= min_days:
            return percent
    return 0


def ensure_transition(booking: Booking, target: str) -> None:
    if target not in ALLOWED_TRANSITIONS.get(booking.status, frozenset()):
        raise InvalidTransition(
            f"Cannot move booking {booking.id} from {booking.status} to {target}",
            current_status=booking.status,
        )


def validate_stay(date_range: DateRange, today: date, overrides: list[AvailabilityRecord]) -> None:
    """Booking-window rules on top of the ``DateRange`` invariant."""
    if date_range.check_in < today:
        raise InvalidRange("Check-in date cannot be in the past")
    if date_range.check_in > today + timedelta(days=settings.max_advance_days):
        raise InvalidRange(f"Cannot book more than {settings.max_advance_days} days in advance")
    if date_range.nights > settings.max_stay_nights:
        raise InvalidRange(f"Stay of {date_range.nights} nights exceeds the maximum of {settings.max_stay_nights}")

    for record in overrides:
        if record.date == date_range.check_in and record.minimum_stay and date_range.nights < record.minimum_stay:
            raise InvalidRange(
                f"Stays starting {record.date.isoformat()} require at least {record.minimum_stay} nights"
            )


async def get_booking_or_raise(store: BookingStore, booking_id: uuid.UUID) -> Booking:
    booking = await store.get_booking(booking_id)
    if booking is None:
        raise BookingNotFound(f"Booking {booking_id} not found")
    return booking


def _utc_naive(moment: datetime) -> datetime:
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


async def create_booking(
    store: BookingStore,
    homestay_id: uuid.UUID,
    guest_id: uuid.UUID,
    date_range: DateRange,
    guest_count: int,
    *,
    occupancy_ratio: Decimal | None = None,
    now: datetime | None = None,
) -> Booking:
    """Hold ``date_range`` for a guest as a pending booking with frozen pricing.

    Raises:
        InvalidRange, GuestLimitExceeded: request fails local validation.
        ConflictError: dates overlap an active booking or a closed date, either
            at check time or when the store rejects the write.
    """
    today = (now or resource_now()).date()
    homestay = await get_homestay_or_raise(store, homestay_id)
    validate_guest_count(homestay, guest_count)

    await store.lock_homestay(homestay_id)
    overrides = await store.find_availability_overrides(homestay_id, date_range)
    validate_stay(date_range, today, overrides)

    availability = await check_availability(store, homestay_id, date_range, guest_count=guest_count)
    availability.raise_for_conflict()

    pricing = await price_stay(store, homestay, date_range, guest_count, occupancy_ratio, today, overrides)
    booking = Booking(
        id=uuid.uuid4(),
        homestay_id=homestay_id,
        guest_id=guest_id,
        check_in=date_range.check_in,
        check_out=date_range.check_out,
        guest_count=guest_count,
        status=BookingStatus.PENDING.value,
    )
    booking.set_pricing(pricing)
    booking = await store.save_booking(booking)

    logger.info(
        "Created booking %s on homestay %s for %s (%s %s)",
        booking.id,
        homestay_id,
        date_range,
        pricing.total,
        pricing.currency,
    )
    return booking


async def start_payment(
    store: BookingStore,
    payments: PaymentAuthority,
    booking_id: uuid.UUID,
) -> PaymentAuthorization:
    """Ask the payment authority to hold the booking total."""
    booking = await get_booking_or_raise(store, booking_id)
    ensure_transition(booking, BookingStatus.CONFIRMED.value)
    return await payments.authorize_payment(booking.id, booking.total_price, booking.currency)


async def confirm_booking(
    store: BookingStore,
    payments: PaymentAuthority,
    booking_id: uuid.UUID,
    payment_reference: str,
) -> Booking:
    """Confirm a pending booking once its payment is authorized. No repricing."""
    booking = await get_booking_or_raise(store, booking_id)
    ensure_transition(booking, BookingStatus.CONFIRMED.value)

    if not await payments.is_authorized(payment_reference, booking.total_price, booking.currency):
        logger.warning("Payment %s not authorized for booking %s", payment_reference, booking_id)
        raise PaymentNotAuthorized(f"Payment {payment_reference} is not authorized for booking {booking_id}")

    booking.payment_reference = payment_reference
    booking.status = BookingStatus.CONFIRMED.value
    booking = await store.save_booking(booking)
    logger.info("Confirmed booking %s with payment %s", booking.id, payment_reference)
    return booking


async def reschedule_booking(
    store: BookingStore,
    booking_id: uuid.UUID,
    new_range: DateRange,
    *,
    occupancy_ratio: Decimal | None = None,
    now: datetime | None = None,
) -> RescheduleResult:
    """Move a pending or confirmed booking to new dates and reprice it.

    The booking's own stay is excluded from the conflict check. The pricing
    snapshot is replaced wholesale; status is unchanged. When no occupancy
    ratio is given the one captured in the original quote is reused.
    """
    today = (now or resource_now()).date()
    booking = await get_booking_or_raise(store, booking_id)
    if booking.status not in RESCHEDULABLE_STATUSES:
        raise InvalidTransition(
            f"Cannot reschedule booking {booking.id} with status {booking.status}",
            current_status=booking.status,
        )

    homestay = await get_homestay_or_raise(store, booking.homestay_id)
    await store.lock_homestay(booking.homestay_id)
    overrides = await store.find_availability_overrides(booking.homestay_id, new_range)
    validate_stay(new_range, today, overrides)

    availability = await check_availability(
        store,
        booking.homestay_id,
        new_range,
        exclude_booking_id=booking.id,
        guest_count=booking.guest_count,
    )
    availability.raise_for_conflict()

    previous = booking.pricing_breakdown
    if occupancy_ratio is None:
        occupancy_ratio = previous.occupancy_ratio
    pricing = await price_stay(store, homestay, new_range, booking.guest_count, occupancy_ratio, today, overrides)
    price_difference = pricing.total - previous.total

    old_range = booking.date_range
    booking.check_in = new_range.check_in
    booking.check_out = new_range.check_out
    booking.set_pricing(pricing)
    booking = await store.save_booking(booking)

    logger.info(
        "Rescheduled booking %s from %s to %s (total %s -> %s, difference %s)",
        booking.id,
        old_range,
        new_range,
        previous.total,
        pricing.total,
        price_difference,
    )
    return RescheduleResult(booking=booking, previous_total=previous.total, price_difference=price_difference)


async def check_in_booking(
    store: BookingStore,
    booking_id: uuid.UUID,
    *,
    now: datetime | None = None,
) -> Booking:
    booking = await get_booking_or_raise(store, booking_id)
    ensure_transition(booking, BookingStatus.CHECKED_IN.value)
    today = (now or resource_now()).date()
    if today < booking.check_in:
        raise InvalidTransition(
            f"Booking {booking.id} cannot check in before {booking.check_in.isoformat()}",
            current_status=booking.status,
        )

    booking.status = BookingStatus.CHECKED_IN.value
    booking = await store.save_booking(booking)
    logger.info("Checked in booking %s", booking.id)
    return booking


async def complete_booking(store: BookingStore, booking_id: uuid.UUID) -> Booking:
    booking = await get_booking_or_raise(store, booking_id)
    ensure_transition(booking, BookingStatus.COMPLETED.value)

    booking.status = BookingStatus.COMPLETED.value
    booking = await store.save_booking(booking)
    logger.info("Completed booking %s", booking.id)
    return booking


async def cancel_booking(
    store: BookingStore,
    payments: PaymentAuthority,
    booking_id: uuid.UUID,
    *,
    reason: str | None = None,
    now: datetime | None = None,
) -> CancellationResult:
    """Cancel a booking and refund according to how close check-in is.

    The refund percentage applies to the current ``pricing.total`` whether or
    not a payment was captured, and the amount is recorded on the booking.
    A refund instruction is only sent to the payment authority when there is
    a payment reference to send it against and the amount is above zero.

    The refund is requested before the cancellation is written, so a payment
    authority failure leaves the booking untouched. Before that request the
    booking is re-read and held; if another writer changed it since it was
    loaded, ``ConflictError`` is raised and no money moves.
    """
    now = now or resource_now()
    booking = await get_booking_or_raise(store, booking_id)
    ensure_transition(booking, BookingStatus.CANCELLED.value)

    loaded_version = booking.version
    current = await store.lock_booking(booking.id)
    if current is None or current.version != loaded_version:
        logger.warning("Cancellation of booking %s aborted: modified concurrently", booking_id)
        raise ConflictError("Booking was modified concurrently; re-read and retry")
    booking = current

    percentage = refund_percentage(check_in_moment(booking.check_in) - now)
    refund_amount = round_money(booking.total_price * percentage / 100, booking.currency)
    refund_reference = None
    if booking.payment_reference is not None and refund_amount > 0:
        refund_reference = await payments.request_refund(
            booking.id,
            refund_amount,
            booking.currency,
            booking.payment_reference,
        )

    booking.status = BookingStatus.CANCELLED.value
    booking.cancelled_at = _utc_naive(now)
    booking.cancellation_reason = reason
    booking.refund_amount = refund_amount
    booking.refund_reference = refund_reference
    booking = await store.save_booking(booking)

    logger.info(
        "Cancelled booking %s: refund %s%% = %s %s (ref=%s)",
        booking.id,
        percentage,
        refund_amount,
        booking.currency,
        refund_reference,
    )
    return CancellationResult(booking=booking, refund_percentage=percentage, refund_amount=refund_amount)
