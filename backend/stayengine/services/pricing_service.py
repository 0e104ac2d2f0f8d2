"""Quote service: price a prospective stay without touching the calendar."""

import logging
import uuid
from datetime import date
from decimal import Decimal

from stayengine.clock import resource_today
from stayengine.config import settings
from stayengine.date_range import DateRange
from stayengine.errors import GuestLimitExceeded, HomestayNotFound
from stayengine.models.availability import AvailabilityRecord
from stayengine.models.homestay import Homestay
from stayengine.pricing.stay import calculate_stay_price
from stayengine.schemas.pricing import PricingBreakdown
from stayengine.services.booking_store import BookingStore

logger = logging.getLogger(__name__)


def validate_guest_count(homestay: Homestay, guest_count: int) -> None:
    if guest_count < 1:
        raise GuestLimitExceeded("At least 1 guest is required")
    if homestay.max_guests is not None and guest_count > homestay.max_guests:
        raise GuestLimitExceeded(f"Maximum {homestay.max_guests} guests allowed for this homestay")


def price_overrides(records: list[AvailabilityRecord]) -> dict[date, Decimal]:
    return {record.date: record.price_override for record in records if record.price_override is not None}


async def get_homestay_or_raise(store: BookingStore, homestay_id: uuid.UUID) -> Homestay:
    homestay = await store.get_homestay(homestay_id)
    if homestay is None:
        raise HomestayNotFound(f"Homestay {homestay_id} not found")
    return homestay


async def price_stay(
    store: BookingStore,
    homestay: Homestay,
    date_range: DateRange,
    guest_count: int,
    occupancy_ratio: Decimal | None = None,
    today: date | None = None,
    overrides: list[AvailabilityRecord] | None = None,
) -> PricingBreakdown:
    """Price ``date_range`` for an already-loaded homestay."""
    policy = await store.get_pricing_policy(homestay.id)
    if overrides is None:
        overrides = await store.find_availability_overrides(homestay.id, date_range)
    return calculate_stay_price(
        date_range,
        guest_count,
        policy,
        settings.default_occupancy_ratio if occupancy_ratio is None else occupancy_ratio,
        today=today or resource_today(),
        price_overrides=price_overrides(overrides),
    )


async def quote(
    store: BookingStore,
    homestay_id: uuid.UUID,
    date_range: DateRange,
    guest_count: int,
    occupancy_ratio: Decimal | None = None,
    today: date | None = None,
) -> PricingBreakdown:
    """Read-only price quote for a stay.

    Raises:
        HomestayNotFound: unknown homestay.
        GuestLimitExceeded: more guests than the homestay takes.
        InvalidRange: stay longer than the configured maximum.
    """
    homestay = await get_homestay_or_raise(store, homestay_id)
    validate_guest_count(homestay, guest_count)
    breakdown = await price_stay(store, homestay, date_range, guest_count, occupancy_ratio, today)
    logger.info(
        "Quoted homestay %s for %s: %s %s",
        homestay_id,
        date_range,
        breakdown.total,
        breakdown.currency,
    )
    return breakdown
