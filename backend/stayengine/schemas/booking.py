"""Pydantic v2 request/response schemas for booking endpoints."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from stayengine.date_range import DateRange
from stayengine.schemas.pricing import PricingBreakdown

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class _StayDates(BaseModel):
    check_in: date
    check_out: date

    @model_validator(mode="after")
    def check_dates(self) -> "_StayDates":
        """Validate that check_out is strictly after check_in."""
        if self.check_out <= self.check_in:
            raise ValueError("check_out must be after check_in")
        return self

    @property
    def date_range(self) -> DateRange:
        return DateRange(self.check_in, self.check_out)


class BookingCreate(_StayDates):
    """Schema for holding dates as a new pending booking."""

    homestay_id: uuid.UUID
    guest_id: uuid.UUID
    guest_count: int = Field(1, ge=1)
    occupancy_ratio: Decimal | None = Field(None, ge=0, le=1)


class BookingReschedule(_StayDates):
    occupancy_ratio: Decimal | None = Field(None, ge=0, le=1)


class BookingConfirm(BaseModel):
    payment_reference: str = Field(..., min_length=1, max_length=255)


class BookingCancel(BaseModel):
    reason: str | None = Field(None, max_length=1000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BookingResponse(BaseModel):
    """Booking with its frozen pricing snapshot."""

    id: uuid.UUID
    homestay_id: uuid.UUID
    guest_id: uuid.UUID
    check_in: date
    check_out: date
    guest_count: int
    status: str
    pricing: PricingBreakdown
    total_price: Decimal
    currency: str
    payment_reference: str | None = None
    refund_amount: Decimal | None = None
    cancellation_reason: str | None = None
    cancelled_at: datetime | None = None
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BookingListResponse(BaseModel):
    items: list[BookingResponse]
    total: int


class PaymentAuthorizationResponse(BaseModel):
    """Client-side handle for completing payment of a pending booking."""

    booking_id: uuid.UUID
    payment_reference: str
    client_secret: str | None = None
    amount: Decimal
    currency: str


class RescheduleResponse(BaseModel):
    booking: BookingResponse
    previous_total: Decimal
    price_difference: Decimal


class CancellationResponse(BaseModel):
    booking: BookingResponse
    refund_percentage: int
    refund_amount: Decimal
