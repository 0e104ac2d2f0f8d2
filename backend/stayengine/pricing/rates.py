"""Daily rate calculator: the price of one night under a pricing policy.

Factors are evaluated in a fixed order (season, weekend, occupancy, weather).
Each multiplies the running price and adds its label only when the multiplier
is not exactly 1. The running price stays exact and is rounded once.
"""

from datetime import date
from decimal import Decimal

from stayengine.pricing.money import round_money
from stayengine.schemas.pricing import DailyRate, PricingPolicy

PEAK_MONTHS = frozenset({10, 11, 12, 1, 2, 3})

# (month, first day, last day), inclusive
FESTIVAL_WINDOWS: tuple[tuple[int, int, int], ...] = (
    (11, 15, 25),  # Diwali
    (3, 1, 15),  # Holi
    (8, 15, 31),  # Janmashtami
)

EXCELLENT_WEATHER_MONTHS = frozenset({10, 11, 2, 3})
POOR_WEATHER_MONTHS = frozenset({6, 7, 8, 9})  # monsoon

HIGH_OCCUPANCY_THRESHOLD = Decimal("0.8")
MEDIUM_OCCUPANCY_THRESHOLD = Decimal("0.5")

MANUAL_OVERRIDE_LABEL = "Manual Override"


def is_festival_day(day: date) -> bool:
    return any(day.month == month and first <= day.day <= last for month, first, last in FESTIVAL_WINDOWS)


def season_factor(day: date, policy: PricingPolicy) -> tuple[Decimal, str]:
    """Exactly one season applies; peak months win over festival windows."""
    seasons = policy.seasonal_multipliers
    if day.month in PEAK_MONTHS:
        return seasons.peak, "Peak Season"
    if is_festival_day(day):
        return seasons.festival, "Festival Season"
    return seasons.off_peak, "Off Peak"


def weekend_factor(day: date, policy: PricingPolicy) -> tuple[Decimal, str]:
    if day.weekday() >= 5:  # Saturday, Sunday
        return policy.weekend_multiplier, "Weekend"
    return Decimal("1"), "Weekend"


def occupancy_factor(occupancy_ratio: Decimal, policy: PricingPolicy) -> tuple[Decimal, str]:
    tiers = policy.occupancy_multipliers
    if occupancy_ratio > HIGH_OCCUPANCY_THRESHOLD:
        return tiers.high, "High Demand"
    if occupancy_ratio > MEDIUM_OCCUPANCY_THRESHOLD:
        return tiers.medium, "Moderate Demand"
    return tiers.low, "Low Demand"


def weather_factor(day: date, policy: PricingPolicy) -> tuple[Decimal, str]:
    """Seasonal weather proxy, not live data."""
    weather = policy.weather_multipliers
    if day.month in EXCELLENT_WEATHER_MONTHS:
        return weather.excellent, "Perfect Weather"
    if day.month in POOR_WEATHER_MONTHS:
        return weather.poor, "Weather Advisory"
    return weather.good, "Fair Weather"


def calculate_daily_rate(
    day: date,
    policy: PricingPolicy,
    occupancy_ratio: Decimal,
    price_override: Decimal | None = None,
) -> DailyRate:
    """Return the adjusted price for one night.

    A per-date ``price_override`` (from an availability record) replaces the
    computed price outright.
    """
    if price_override is not None:
        return DailyRate(
            night=day,
            base_price=policy.base_price,
            adjusted_price=round_money(price_override, policy.currency),
            applied_factors=[MANUAL_OVERRIDE_LABEL],
        )

    price = policy.base_price
    factors: list[str] = []
    for multiplier, label in (
        season_factor(day, policy),
        weekend_factor(day, policy),
        occupancy_factor(occupancy_ratio, policy),
        weather_factor(day, policy),
    ):
        if multiplier != 1:
            price *= multiplier
            factors.append(label)

    return DailyRate(
        night=day,
        base_price=policy.base_price,
        adjusted_price=round_money(price, policy.currency),
        applied_factors=factors,
    )
