"""Homestay catalog routes: register homestays and manage their pricing policy."""

import uuid

from fastapi import APIRouter, Depends, status

from stayengine.api.deps import get_booking_store
from stayengine.models.homestay import Homestay
from stayengine.schemas.homestay import HomestayCreate, HomestayResponse
from stayengine.schemas.pricing import PricingPolicy, PricingPolicyResponse
from stayengine.services.booking_store import BookingStore
from stayengine.services.pricing_service import get_homestay_or_raise

router = APIRouter(prefix="/api/v1/homestays", tags=["homestays"])


@router.post(
    "",
    response_model=HomestayResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a homestay",
)
async def create_homestay(
    body: HomestayCreate,
    store: BookingStore = Depends(get_booking_store),
) -> HomestayResponse:
    homestay = await store.save_homestay(Homestay(**body.model_dump()))
    return HomestayResponse.model_validate(homestay)


@router.get(
    "/{homestay_id}",
    response_model=HomestayResponse,
    summary="Get a homestay",
)
async def get_homestay(
    homestay_id: uuid.UUID,
    store: BookingStore = Depends(get_booking_store),
) -> HomestayResponse:
    homestay = await get_homestay_or_raise(store, homestay_id)
    return HomestayResponse.model_validate(homestay)


@router.get(
    "/{homestay_id}/pricing-policy",
    response_model=PricingPolicyResponse,
    summary="Get the effective pricing policy",
)
async def get_pricing_policy(
    homestay_id: uuid.UUID,
    store: BookingStore = Depends(get_booking_store),
) -> PricingPolicyResponse:
    """Stored policy, or the default policy at the homestay's base price."""
    await get_homestay_or_raise(store, homestay_id)
    policy = await store.get_pricing_policy(homestay_id)
    return PricingPolicyResponse(homestay_id=homestay_id, **policy.model_dump())


@router.put(
    "/{homestay_id}/pricing-policy",
    response_model=PricingPolicyResponse,
    summary="Replace the pricing policy",
)
async def put_pricing_policy(
    homestay_id: uuid.UUID,
    body: PricingPolicy,
    store: BookingStore = Depends(get_booking_store),
) -> PricingPolicyResponse:
    """Replace the policy. Existing bookings keep the pricing they were created with."""
    await get_homestay_or_raise(store, homestay_id)
    policy = await store.save_pricing_policy(homestay_id, body)
    return PricingPolicyResponse(homestay_id=homestay_id, **policy.model_dump())
