"""Availability routes: calendar overrides and range checks for one homestay."""

import logging
import uuid
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status

from stayengine.api.deps import get_booking_store
from stayengine.date_range import DateRange
from stayengine.errors import InvalidRange
from stayengine.models.availability import AvailabilityRecord
from stayengine.schemas.availability import (
    AvailabilityOverride,
    AvailabilityRecordResponse,
    AvailabilityResponse,
)
from stayengine.services.availability_service import check_availability
from stayengine.services.booking_store import BookingStore
from stayengine.services.pricing_service import get_homestay_or_raise

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/homestays/{homestay_id}/availability", tags=["availability"])

MAX_OVERRIDE_DAYS = 366


@router.get(
    "/check",
    response_model=AvailabilityResponse,
    summary="Check whether a stay can be booked",
)
async def check_range(
    homestay_id: uuid.UUID,
    check_in: date = Query(...),
    check_out: date = Query(...),
    guest_count: int = Query(1, ge=1),
    exclude_booking_id: uuid.UUID | None = Query(None, description="Ignore this booking (for reschedules)"),
    store: BookingStore = Depends(get_booking_store),
) -> AvailabilityResponse:
    await get_homestay_or_raise(store, homestay_id)
    result = await check_availability(
        store,
        homestay_id,
        DateRange(check_in, check_out),
        exclude_booking_id=exclude_booking_id,
        guest_count=guest_count,
    )
    return AvailabilityResponse(
        homestay_id=homestay_id,
        check_in=check_in,
        check_out=check_out,
        guest_count=guest_count,
        is_available=result.is_available,
        conflicting_booking_ids=result.conflicting_booking_ids,
        blocked_dates=result.blocked_dates,
    )


@router.get(
    "",
    response_model=list[AvailabilityRecordResponse],
    summary="List calendar overrides in a date range",
)
async def list_overrides(
    homestay_id: uuid.UUID,
    start_date: date = Query(...),
    end_date: date = Query(..., description="Exclusive"),
    store: BookingStore = Depends(get_booking_store),
) -> list[AvailabilityRecordResponse]:
    await get_homestay_or_raise(store, homestay_id)
    records = await store.find_availability_overrides(homestay_id, DateRange(start_date, end_date))
    return [AvailabilityRecordResponse.model_validate(record) for record in records]


@router.put(
    "",
    response_model=list[AvailabilityRecordResponse],
    summary="Set calendar overrides for a date or range",
)
async def set_overrides(
    homestay_id: uuid.UUID,
    body: AvailabilityOverride,
    store: BookingStore = Depends(get_booking_store),
) -> list[AvailabilityRecordResponse]:
    """Write the same override to every date in the range, replacing existing ones.

    Closing dates does not cancel bookings already holding them.
    """
    await get_homestay_or_raise(store, homestay_id)
    date_range = body.date_range
    if date_range.nights > MAX_OVERRIDE_DAYS:
        raise InvalidRange(f"Overrides can cover at most {MAX_OVERRIDE_DAYS} days per request")

    fields = body.model_dump(exclude={"start_date", "end_date"})
    saved = []
    for day in date_range.nightly_dates():
        record = await store.save_availability(AvailabilityRecord(homestay_id=homestay_id, date=day, **fields))
        saved.append(AvailabilityRecordResponse.model_validate(record))

    logger.info("Set %d availability overrides on homestay %s for %s", len(saved), homestay_id, date_range)
    return saved


@router.delete(
    "/{day}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove the override for one date",
)
async def delete_override(
    homestay_id: uuid.UUID,
    day: date,
    store: BookingStore = Depends(get_booking_store),
) -> None:
    if not await store.delete_availability(homestay_id, day):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No override for that date",
        )
