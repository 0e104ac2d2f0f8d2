"""Stay pricing aggregator: nightly rates, discounts, taxes and fees."""

import logging
from collections.abc import Mapping
from datetime import date
from decimal import Decimal

from stayengine.clock import resource_today
from stayengine.config import settings
from stayengine.date_range import DateRange
from stayengine.errors import InvalidRange
from stayengine.pricing.money import round_money
from stayengine.pricing.rates import calculate_daily_rate
from stayengine.schemas.pricing import PricingBreakdown, PricingPolicy

logger = logging.getLogger(__name__)

WEEKLY_STAY_NIGHTS = 7
MONTHLY_STAY_NIGHTS = 30


def length_of_stay_discount(nights: int, subtotal: Decimal, policy: PricingPolicy) -> Decimal:
    """Monthly and weekly tiers are exclusive; monthly takes precedence."""
    tiers = policy.length_of_stay_discounts
    if nights >= MONTHLY_STAY_NIGHTS:
        return round_money(subtotal * tiers.monthly, policy.currency)
    if nights >= WEEKLY_STAY_NIGHTS:
        return round_money(subtotal * tiers.weekly, policy.currency)
    return round_money(Decimal("0"), policy.currency)


def early_booking_discount(check_in: date, today: date, subtotal: Decimal, policy: PricingPolicy) -> Decimal:
    rule = policy.early_booking_discount
    if (check_in - today).days >= rule.days:
        return round_money(subtotal * rule.discount, policy.currency)
    return round_money(Decimal("0"), policy.currency)


def calculate_stay_price(
    date_range: DateRange,
    guest_count: int,
    policy: PricingPolicy,
    occupancy_ratio: Decimal,
    *,
    today: date | None = None,
    price_overrides: Mapping[date, Decimal] | None = None,
    tax_rate: Decimal | None = None,
    service_fee_rate: Decimal | None = None,
    max_stay_nights: int | None = None,
) -> PricingBreakdown:
    """Price a whole stay night by night.

    Both discounts are taken off the raw subtotal independently and summed.
    Every money field is rounded half-up exactly once, so
    ``total == subtotal - discounts + taxes + service_fee`` holds to the
    minor unit.

    Raises:
        InvalidRange: the stay is longer than ``max_stay_nights``.
    """
    today = today or resource_today()
    price_overrides = price_overrides or {}
    tax_rate = settings.tax_rate if tax_rate is None else tax_rate
    service_fee_rate = settings.service_fee_rate if service_fee_rate is None else service_fee_rate
    max_stay_nights = settings.max_stay_nights if max_stay_nights is None else max_stay_nights

    nights = date_range.nights
    if nights > max_stay_nights:
        raise InvalidRange(f"Stay of {nights} nights exceeds the maximum of {max_stay_nights}")

    daily = [
        calculate_daily_rate(day, policy, occupancy_ratio, price_overrides.get(day))
        for day in date_range.nightly_dates()
    ]
    subtotal = sum((rate.adjusted_price for rate in daily), Decimal("0"))

    los_discount = length_of_stay_discount(nights, subtotal, policy)
    # Capped so combined discounts never exceed the subtotal.
    early_discount = min(
        early_booking_discount(date_range.check_in, today, subtotal, policy),
        subtotal - los_discount,
    )
    discounted = subtotal - los_discount - early_discount

    taxes = round_money(discounted * tax_rate, policy.currency)
    service_fee = round_money(discounted * service_fee_rate, policy.currency)
    total = discounted + taxes + service_fee

    logger.debug(
        "Priced %s (%d nights) at %s %s (subtotal=%s, discounts=%s)",
        date_range,
        nights,
        total,
        policy.currency,
        subtotal,
        los_discount + early_discount,
    )
    return PricingBreakdown(
        currency=policy.currency,
        nights=nights,
        guest_count=guest_count,
        occupancy_ratio=occupancy_ratio,
        quoted_on=today,
        subtotal=subtotal,
        length_of_stay_discount=los_discount,
        early_booking_discount=early_discount,
        taxes=taxes,
        service_fee=service_fee,
        total=total,
        daily_breakdown=daily,
    )
