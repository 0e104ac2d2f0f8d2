"""Availability conflict detector.

The single place that decides whether a homestay is free for a date range.
Booking creation, rescheduling and the availability API all go through
``check_availability``; none of them repeat the overlap test.
"""

import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date

from stayengine.date_range import DateRange, intervals_overlap
from stayengine.errors import ConflictError
from stayengine.models.availability import AvailabilityRecord
from stayengine.models.booking import ACTIVE_STATUSES, Booking
from stayengine.services.booking_store import BookingStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AvailabilityCheck:
    """Outcome of an availability check."""

    date_range: DateRange
    conflicting_booking_ids: list[uuid.UUID] = field(default_factory=list)
    blocked_dates: list[date] = field(default_factory=list)

    @property
    def is_available(self) -> bool:
        return not self.conflicting_booking_ids and not self.blocked_dates

    def raise_for_conflict(self) -> None:
        if self.is_available:
            return
        if self.conflicting_booking_ids:
            message = "Dates conflict with an existing booking"
        else:
            message = "Homestay is closed on " + ", ".join(day.isoformat() for day in self.blocked_dates)
        raise ConflictError(
            message,
            conflicting_booking_ids=list(self.conflicting_booking_ids),
            blocked_dates=list(self.blocked_dates),
        )


def conflicting_bookings(
    bookings: Iterable[Booking],
    date_range: DateRange,
    exclude_booking_id: uuid.UUID | None = None,
) -> list[Booking]:
    """Active bookings whose stay overlaps ``date_range``.

    Cancelled and completed bookings never conflict.
    """
    return [
        booking
        for booking in bookings
        if booking.id != exclude_booking_id
        and booking.status in ACTIVE_STATUSES
        and intervals_overlap(booking.check_in, booking.check_out, date_range.check_in, date_range.check_out)
    ]


def blocked_dates(
    overrides: Iterable[AvailabilityRecord],
    date_range: DateRange,
    guest_count: int = 1,
) -> list[date]:
    return sorted(
        record.date for record in overrides if date_range.contains(record.date) and record.blocks(guest_count)
    )


async def check_availability(
    store: BookingStore,
    homestay_id: uuid.UUID,
    date_range: DateRange,
    *,
    exclude_booking_id: uuid.UUID | None = None,
    guest_count: int = 1,
) -> AvailabilityCheck:
    """Check ``date_range`` against active bookings and closed dates."""
    candidates = await store.find_overlapping(homestay_id, date_range, exclude_booking_id)
    overrides = await store.find_availability_overrides(homestay_id, date_range)

    conflicts = conflicting_bookings(candidates, date_range, exclude_booking_id)
    check = AvailabilityCheck(
        date_range=date_range,
        conflicting_booking_ids=[booking.id for booking in conflicts],
        blocked_dates=blocked_dates(overrides, date_range, guest_count),
    )
    if not check.is_available:
        logger.info(
            "Homestay %s unavailable for %s: bookings=%s blocked=%s",
            homestay_id,
            date_range,
            check.conflicting_booking_ids,
            check.blocked_dates,
        )
    return check
