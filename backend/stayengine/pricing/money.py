"""Currency rounding helpers."""

from decimal import ROUND_HALF_UP, Decimal

# Smallest unit per currency (paise, cents).
MINOR_UNITS: dict[str, Decimal] = {
    "INR": Decimal("0.01"),
    "USD": Decimal("0.01"),
}


def round_money(amount: Decimal, currency: str) -> Decimal:
    """Round half-up to the currency's minor unit."""
    return amount.quantize(MINOR_UNITS[currency], rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal, currency: str) -> int:
    """Convert a major-unit amount to an integer count of minor units."""
    return int(round_money(amount, currency) / MINOR_UNITS[currency])


def is_whole_minor_units(amount: Decimal, currency: str) -> bool:
    return amount == round_money(amount, currency)
