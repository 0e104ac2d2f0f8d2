"""Pricing engine: daily rates and whole-stay breakdowns."""

from stayengine.pricing.rates import calculate_daily_rate
from stayengine.pricing.stay import calculate_stay_price

__all__ = [
    "calculate_daily_rate",
    "calculate_stay_price",
]
