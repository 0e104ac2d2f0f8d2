"""Pydantic v2 request/response schemas for homestay endpoints."""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from stayengine.schemas.pricing import CurrencyCode

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class HomestayCreate(BaseModel):
    """Schema for registering a bookable homestay."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    location: str | None = Field(None, max_length=255)
    max_guests: int | None = Field(None, ge=1)
    base_price_per_night: Decimal = Field(..., gt=0)
    currency: CurrencyCode = "INR"
    status: str = Field("active", pattern="^(active|maintenance|inactive)$")


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class HomestayResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: str | None = None
    location: str | None = None
    max_guests: int | None = None
    base_price_per_night: Decimal
    currency: str
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
