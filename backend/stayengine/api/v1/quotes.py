"""Quote route: price a stay without holding dates."""

from fastapi import APIRouter, Depends

from stayengine.api.deps import get_booking_store
from stayengine.schemas.pricing import PricingBreakdown, QuoteRequest
from stayengine.services.booking_store import BookingStore
from stayengine.services.pricing_service import quote

router = APIRouter(prefix="/api/v1/quotes", tags=["quotes"])


@router.post(
    "",
    response_model=PricingBreakdown,
    summary="Quote the price of a stay",
)
async def create_quote(
    body: QuoteRequest,
    store: BookingStore = Depends(get_booking_store),
) -> PricingBreakdown:
    """Read-only: availability is not checked and nothing is reserved."""
    return await quote(
        store,
        body.homestay_id,
        body.date_range,
        body.guest_count,
        occupancy_ratio=body.occupancy_ratio,
    )
