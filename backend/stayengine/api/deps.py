"""Shared API dependencies, imported by every router::

    from stayengine.api.deps import get_booking_store, get_db, get_payment_authority
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from stayengine.billing.payment_authority import PaymentAuthority, StripePaymentAuthority
from stayengine.database import get_db
from stayengine.services.booking_store import BookingStore, SqlBookingStore


async def get_booking_store(db: AsyncSession = Depends(get_db)) -> BookingStore:
    """Store bound to the request's transaction."""
    return SqlBookingStore(db)


def get_payment_authority() -> PaymentAuthority:
    return StripePaymentAuthority()


__all__ = [
    "get_db",
    "get_booking_store",
    "get_payment_authority",
]
