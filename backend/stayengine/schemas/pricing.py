"""Pydantic v2 schemas for pricing policies, quotes and price breakdowns."""

import uuid
from datetime import date
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from stayengine.date_range import DateRange

CurrencyCode = Literal["INR", "USD"]

# ---------------------------------------------------------------------------
# Pricing policy
# ---------------------------------------------------------------------------


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class SeasonalMultipliers(_FrozenModel):
    peak: Decimal = Field(Decimal("1.5"), gt=0)
    off_peak: Decimal = Field(Decimal("0.8"), gt=0)
    festival: Decimal = Field(Decimal("2.0"), gt=0)


class OccupancyMultipliers(_FrozenModel):
    high: Decimal = Field(Decimal("1.3"), gt=0)  # occupancy > 80%
    medium: Decimal = Field(Decimal("1.0"), gt=0)  # occupancy > 50%
    low: Decimal = Field(Decimal("0.9"), gt=0)


class WeatherMultipliers(_FrozenModel):
    excellent: Decimal = Field(Decimal("1.1"), gt=0)
    good: Decimal = Field(Decimal("1.0"), gt=0)
    poor: Decimal = Field(Decimal("0.9"), gt=0)


class LengthOfStayDiscounts(_FrozenModel):
    weekly: Decimal = Field(Decimal("0.10"), ge=0, le=1)  # 7+ nights
    monthly: Decimal = Field(Decimal("0.20"), ge=0, le=1)  # 30+ nights


class EarlyBookingDiscount(_FrozenModel):
    days: int = Field(30, ge=0)
    discount: Decimal = Field(Decimal("0.05"), ge=0, le=1)


class PricingPolicy(_FrozenModel):
    """Per-homestay pricing configuration. Read-only to the engine."""

    base_price: Decimal = Field(..., gt=0)
    currency: CurrencyCode = "INR"
    seasonal_multipliers: SeasonalMultipliers = SeasonalMultipliers()
    weekend_multiplier: Decimal = Field(Decimal("1.2"), gt=0)
    occupancy_multipliers: OccupancyMultipliers = OccupancyMultipliers()
    weather_multipliers: WeatherMultipliers = WeatherMultipliers()
    length_of_stay_discounts: LengthOfStayDiscounts = LengthOfStayDiscounts()
    early_booking_discount: EarlyBookingDiscount = EarlyBookingDiscount()


def default_pricing_policy(base_price: Decimal, currency: CurrencyCode = "INR") -> PricingPolicy:
    """House policy used for homestays without a configured one."""
    return PricingPolicy(base_price=base_price, currency=currency)


class PricingPolicyResponse(PricingPolicy):
    model_config = ConfigDict(frozen=True, extra="ignore")

    homestay_id: uuid.UUID


# ---------------------------------------------------------------------------
# Breakdown
# ---------------------------------------------------------------------------


class DailyRate(_FrozenModel):
    """Price of a single night and the factors that moved it."""

    night: date
    base_price: Decimal
    adjusted_price: Decimal
    applied_factors: list[str] = Field(default_factory=list)


class PricingBreakdown(_FrozenModel):
    """Full price of a stay. Stored on a booking as its frozen snapshot."""

    currency: CurrencyCode
    nights: int
    guest_count: int
    occupancy_ratio: Decimal
    quoted_on: date
    subtotal: Decimal
    length_of_stay_discount: Decimal
    early_booking_discount: Decimal
    taxes: Decimal
    service_fee: Decimal
    total: Decimal
    daily_breakdown: list[DailyRate]

    @property
    def total_discount(self) -> Decimal:
        return self.length_of_stay_discount + self.early_booking_discount


# ---------------------------------------------------------------------------
# Quote request
# ---------------------------------------------------------------------------


class QuoteRequest(BaseModel):
    """Body of ``POST /api/v1/quotes``."""

    homestay_id: uuid.UUID
    check_in: date
    check_out: date
    guest_count: int = Field(1, ge=1)
    occupancy_ratio: Decimal | None = Field(None, ge=0, le=1)

    @model_validator(mode="after")
    def check_dates(self) -> "QuoteRequest":
        """Validate that check_out is strictly after check_in."""
        if self.check_out <= self.check_in:
            raise ValueError("check_out must be after check_in")
        return self

    @property
    def date_range(self) -> DateRange:
        return DateRange(self.check_in, self.check_out)
