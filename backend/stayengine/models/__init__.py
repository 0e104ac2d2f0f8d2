"""SQLAlchemy models for the stay engine.

All models are imported here so that Alembic's autogenerate can discover
them via Base.metadata. If you add a new model, import it in this file.
"""

from stayengine.models.availability import AvailabilityRecord
from stayengine.models.booking import ACTIVE_STATUSES, Booking, BookingStatus
from stayengine.models.homestay import Homestay
from stayengine.models.pricing_policy import HomestayPricingPolicy

__all__ = [
    "ACTIVE_STATUSES",
    "AvailabilityRecord",
    "Booking",
    "BookingStatus",
    "Homestay",
    "HomestayPricingPolicy",
]
