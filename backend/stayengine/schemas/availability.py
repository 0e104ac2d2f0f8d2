"""Pydantic v2 schemas for calendar overrides and availability checks."""

import uuid
import datetime
from datetime import date, timedelta
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from stayengine.date_range import DateRange


class AvailabilityOverride(BaseModel):
    """Override applied to every date in ``[start_date, end_date)``.

    ``end_date`` defaults to the day after ``start_date`` (a single date).
    """

    start_date: date
    end_date: date | None = None
    is_available: bool = True
    capacity_override: int | None = Field(None, ge=0)
    price_override: Decimal | None = Field(None, gt=0)
    minimum_stay: int | None = Field(None, ge=1)
    note: str | None = None

    @model_validator(mode="after")
    def check_dates(self) -> "AvailabilityOverride":
        if self.end_date is not None and self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self

    @property
    def date_range(self) -> DateRange:
        return DateRange(self.start_date, self.end_date or self.start_date + timedelta(days=1))


class AvailabilityRecordResponse(BaseModel):
    homestay_id: uuid.UUID
    date: datetime.date
    is_available: bool
    capacity_override: int | None = None
    price_override: Decimal | None = None
    minimum_stay: int | None = None
    note: str | None = None

    model_config = ConfigDict(from_attributes=True)


class AvailabilityResponse(BaseModel):
    """Result of checking a date range for one homestay."""

    homestay_id: uuid.UUID
    check_in: date
    check_out: date
    guest_count: int
    is_available: bool
    conflicting_booking_ids: list[uuid.UUID] = Field(default_factory=list)
    blocked_dates: list[date] = Field(default_factory=list)
