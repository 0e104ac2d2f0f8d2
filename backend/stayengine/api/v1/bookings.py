"""Booking routes: thin wrappers over the lifecycle manager.

Engine errors propagate to the handlers in ``stayengine.api.errors``; the
request's transaction rolls back on any of them.
"""

import uuid

from fastapi import APIRouter, Depends, Query, status

from stayengine.api.deps import get_booking_store, get_payment_authority
from stayengine.billing.payment_authority import PaymentAuthority
from stayengine.schemas.booking import (
    BookingCancel,
    BookingConfirm,
    BookingCreate,
    BookingListResponse,
    BookingReschedule,
    BookingResponse,
    CancellationResponse,
    PaymentAuthorizationResponse,
    RescheduleResponse,
)
from stayengine.services import booking_service
from stayengine.services.booking_store import BookingStore

router = APIRouter(prefix="/api/v1/bookings", tags=["bookings"])


@router.post(
    "",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Hold dates as a pending booking",
)
async def create_booking(
    body: BookingCreate,
    store: BookingStore = Depends(get_booking_store),
) -> BookingResponse:
    booking = await booking_service.create_booking(
        store,
        body.homestay_id,
        body.guest_id,
        body.date_range,
        body.guest_count,
        occupancy_ratio=body.occupancy_ratio,
    )
    return BookingResponse.model_validate(booking)


@router.get(
    "",
    response_model=BookingListResponse,
    summary="List bookings",
)
async def list_bookings(
    homestay_id: uuid.UUID | None = Query(None, description="Filter by homestay"),
    guest_id: uuid.UUID | None = Query(None, description="Filter by guest"),
    status_filter: str | None = Query(None, alias="status", description="Filter by booking status"),
    store: BookingStore = Depends(get_booking_store),
) -> BookingListResponse:
    bookings = await store.list_bookings(homestay_id=homestay_id, guest_id=guest_id, status=status_filter)
    return BookingListResponse(
        items=[BookingResponse.model_validate(booking) for booking in bookings],
        total=len(bookings),
    )


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Get a booking",
)
async def get_booking(
    booking_id: uuid.UUID,
    store: BookingStore = Depends(get_booking_store),
) -> BookingResponse:
    booking = await booking_service.get_booking_or_raise(store, booking_id)
    return BookingResponse.model_validate(booking)


@router.post(
    "/{booking_id}/payment",
    response_model=PaymentAuthorizationResponse,
    summary="Start payment for a pending booking",
)
async def start_payment(
    booking_id: uuid.UUID,
    store: BookingStore = Depends(get_booking_store),
    payments: PaymentAuthority = Depends(get_payment_authority),
) -> PaymentAuthorizationResponse:
    authorization = await booking_service.start_payment(store, payments, booking_id)
    return PaymentAuthorizationResponse(
        booking_id=booking_id,
        payment_reference=authorization.payment_reference,
        client_secret=authorization.client_secret,
        amount=authorization.amount,
        currency=authorization.currency,
    )


@router.post(
    "/{booking_id}/confirm",
    response_model=BookingResponse,
    summary="Confirm a booking with an authorized payment",
)
async def confirm_booking(
    booking_id: uuid.UUID,
    body: BookingConfirm,
    store: BookingStore = Depends(get_booking_store),
    payments: PaymentAuthority = Depends(get_payment_authority),
) -> BookingResponse:
    booking = await booking_service.confirm_booking(store, payments, booking_id, body.payment_reference)
    return BookingResponse.model_validate(booking)


@router.post(
    "/{booking_id}/reschedule",
    response_model=RescheduleResponse,
    summary="Move a booking to new dates",
)
async def reschedule_booking(
    booking_id: uuid.UUID,
    body: BookingReschedule,
    store: BookingStore = Depends(get_booking_store),
) -> RescheduleResponse:
    """Reprice for the new dates; ``price_difference`` is new total minus old total."""
    result = await booking_service.reschedule_booking(
        store,
        booking_id,
        body.date_range,
        occupancy_ratio=body.occupancy_ratio,
    )
    return RescheduleResponse(
        booking=BookingResponse.model_validate(result.booking),
        previous_total=result.previous_total,
        price_difference=result.price_difference,
    )


@router.post(
    "/{booking_id}/check-in",
    response_model=BookingResponse,
    summary="Mark a confirmed booking as checked in",
)
async def check_in_booking(
    booking_id: uuid.UUID,
    store: BookingStore = Depends(get_booking_store),
) -> BookingResponse:
    booking = await booking_service.check_in_booking(store, booking_id)
    return BookingResponse.model_validate(booking)


@router.post(
    "/{booking_id}/complete",
    response_model=BookingResponse,
    summary="Mark a checked-in booking as completed",
)
async def complete_booking(
    booking_id: uuid.UUID,
    store: BookingStore = Depends(get_booking_store),
) -> BookingResponse:
    booking = await booking_service.complete_booking(store, booking_id)
    return BookingResponse.model_validate(booking)


@router.post(
    "/{booking_id}/cancel",
    response_model=CancellationResponse,
    summary="Cancel a booking and refund by notice period",
)
async def cancel_booking(
    booking_id: uuid.UUID,
    body: BookingCancel | None = None,
    store: BookingStore = Depends(get_booking_store),
    payments: PaymentAuthority = Depends(get_payment_authority),
) -> CancellationResponse:
    result = await booking_service.cancel_booking(
        store,
        payments,
        booking_id,
        reason=body.reason if body is not None else None,
    )
    return CancellationResponse(
        booking=BookingResponse.model_validate(result.booking),
        refund_percentage=result.refund_percentage,
        refund_amount=result.refund_amount,
    )
