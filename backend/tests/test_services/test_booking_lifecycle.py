"""Tests for the booking lifecycle manager on the in-memory store."""

import asyncio
import itertools
import uuid
from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from stayengine.clock import check_in_moment, resource_tz
from stayengine.date_range import DateRange, intervals_overlap
from stayengine.errors import (
    BookingNotFound,
    ConflictError,
    GuestLimitExceeded,
    HomestayNotFound,
    InvalidRange,
    InvalidTransition,
    PaymentAuthorityError,
    PaymentNotAuthorized,
)
from stayengine.models.booking import BookingStatus
from stayengine.pricing.money import round_money
from stayengine.schemas.pricing import default_pricing_policy
from stayengine.services.booking_service import (
    cancel_booking,
    check_in_booking,
    complete_booking,
    confirm_booking,
    create_booking,
    refund_percentage,
    reschedule_booking,
    start_payment,
)
from stayengine.services.memory_store import InMemoryBookingStore
from stayengine.services.pricing_service import quote

MARCH_1_5 = DateRange(date(2027, 3, 1), date(2027, 3, 5))
MARCH_3_7 = DateRange(date(2027, 3, 3), date(2027, 3, 7))
MARCH_10_14 = DateRange(date(2027, 3, 10), date(2027, 3, 14))

# Well before the March 2027 stays.
NOW = datetime(2027, 1, 10, 10, 0, tzinfo=resource_tz())


async def _create(store, homestay, date_range=MARCH_1_5, now=NOW, guest_count=2, occupancy_ratio=None):
    return await create_booking(
        store,
        homestay.id,
        uuid.uuid4(),
        date_range,
        guest_count,
        occupancy_ratio=occupancy_ratio,
        now=now,
    )


async def _confirmed(store, payments, homestay, date_range=MARCH_1_5):
    booking = await _create(store, homestay, date_range)
    authorization = await start_payment(store, payments, booking.id)
    return await confirm_booking(store, payments, booking.id, authorization.payment_reference)


class TestCreate:
    async def test_create_holds_dates_as_pending(self, store, homestay):
        booking = await _create(store, homestay, now=NOW)

        assert booking.status == BookingStatus.PENDING.value
        assert booking.version == 1
        assert booking.date_range == MARCH_1_5
        assert booking.pricing_breakdown.nights == 4
        assert booking.total_price == booking.pricing_breakdown.total
        assert booking.currency == "INR"
        assert len(store.bookings) == 1

    async def test_snapshot_matches_quote(self, store, homestay):
        expected = await quote(store, homestay.id, MARCH_1_5, 2, today=NOW.date())
        booking = await _create(store, homestay, now=NOW)
        assert booking.pricing_breakdown == expected

    async def test_overlapping_create_conflicts(self, store, homestay):
        first = await _create(store, homestay, MARCH_1_5, now=NOW)

        with pytest.raises(ConflictError) as exc_info:
            await _create(store, homestay, MARCH_3_7, now=NOW)

        assert exc_info.value.conflicting_booking_ids == [first.id]
        assert exc_info.value.retryable
        assert len(store.bookings) == 1

    async def test_back_to_back_create_is_allowed(self, store, homestay):
        await _create(store, homestay, MARCH_1_5, now=NOW)
        second = await _create(store, homestay, DateRange(date(2027, 3, 5), date(2027, 3, 8)), now=NOW)
        assert second.status == BookingStatus.PENDING.value

    async def test_cancelled_booking_frees_dates(self, store, homestay, payments):
        first = await _create(store, homestay, MARCH_1_5, now=NOW)
        await cancel_booking(store, payments, first.id, now=NOW)
        second = await _create(store, homestay, MARCH_3_7, now=NOW)
        assert second.is_active

    async def test_closed_date_conflicts(self, store, homestay):
        store.set_availability(homestay.id, date(2027, 3, 2), is_available=False)
        with pytest.raises(ConflictError):
            await _create(store, homestay, now=NOW)
        assert store.bookings == []

    async def test_price_override_is_frozen_into_snapshot(self, store, homestay):
        store.set_availability(homestay.id, date(2027, 3, 2), price_override=Decimal("6000"))
        booking = await _create(store, homestay, now=NOW)
        night = booking.pricing_breakdown.daily_breakdown[1]
        assert night.adjusted_price == Decimal("6000.00")
        assert night.applied_factors == ["Manual Override"]

    @pytest.mark.parametrize(
        "date_range",
        [
            DateRange(date(2027, 1, 5), date(2027, 1, 8)),  # check-in in the past
            DateRange(date(2028, 3, 1), date(2028, 3, 3)),  # beyond the booking window
            DateRange(date(2027, 3, 1), date(2027, 6, 1)),  # longer than 90 nights
        ],
    )
    async def test_outside_booking_window(self, store, homestay, date_range):
        with pytest.raises(InvalidRange):
            await _create(store, homestay, date_range, now=NOW)

    async def test_minimum_stay_on_check_in_date(self, store, homestay):
        store.set_availability(homestay.id, date(2027, 3, 1), minimum_stay=5)
        with pytest.raises(InvalidRange):
            await _create(store, homestay, MARCH_1_5, now=NOW)
        booking = await _create(store, homestay, DateRange(date(2027, 3, 1), date(2027, 3, 6)), now=NOW)
        assert booking.pricing_breakdown.nights == 5

    async def test_too_many_guests(self, store, homestay):
        with pytest.raises(GuestLimitExceeded):
            await _create(store, homestay, now=NOW, guest_count=5)

    async def test_unknown_homestay(self, store):
        with pytest.raises(HomestayNotFound):
            await create_booking(store, uuid.uuid4(), uuid.uuid4(), MARCH_1_5, 1, now=NOW)

    async def test_policy_change_does_not_touch_existing_booking(self, store, homestay):
        booking = await _create(store, homestay, now=NOW)
        store.policies[homestay.id] = default_pricing_policy(Decimal("9999.00"))

        reloaded = await store.get_booking(booking.id)
        assert reloaded.total_price == booking.total_price
        assert reloaded.pricing_breakdown == booking.pricing_breakdown


class TestConfirm:
    async def test_confirm_with_authorized_payment(self, store, homestay, payments):
        booking = await _confirmed(store, payments, homestay)
        assert booking.status == BookingStatus.CONFIRMED.value
        assert booking.payment_reference == "pi_fake_1"
        assert payments.authorizations == [(booking.id, booking.total_price, "INR")]

    async def test_unauthorized_payment_leaves_booking_pending(self, store, homestay, payments):
        booking = await _create(store, homestay)
        with pytest.raises(PaymentNotAuthorized):
            await confirm_booking(store, payments, booking.id, "pi_unknown")
        assert (await store.get_booking(booking.id)).status == BookingStatus.PENDING.value

    async def test_confirm_twice_is_invalid(self, store, homestay, payments):
        booking = await _confirmed(store, payments, homestay)
        with pytest.raises(InvalidTransition) as exc_info:
            await confirm_booking(store, payments, booking.id, booking.payment_reference)
        assert exc_info.value.current_status == BookingStatus.CONFIRMED.value

    async def test_confirm_does_not_reprice(self, store, homestay, payments):
        pending = await _create(store, homestay)
        store.policies[homestay.id] = default_pricing_policy(Decimal("100.00"))
        authorization = await start_payment(store, payments, pending.id)
        confirmed = await confirm_booking(store, payments, pending.id, authorization.payment_reference)
        assert confirmed.total_price == pending.total_price

    async def test_unknown_booking(self, store, payments):
        with pytest.raises(BookingNotFound):
            await confirm_booking(store, payments, uuid.uuid4(), "pi_fake_1")


class TestReschedule:
    async def test_reschedule_reprices_and_keeps_status(self, store, homestay, payments):
        booking = await _confirmed(store, payments, homestay)
        old_total = booking.total_price

        result = await reschedule_booking(store, booking.id, MARCH_10_14, now=NOW)

        expected = await quote(store, homestay.id, MARCH_10_14, 2, today=NOW.date())
        assert result.booking.status == BookingStatus.CONFIRMED.value
        assert result.booking.date_range == MARCH_10_14
        assert result.booking.pricing_breakdown == expected
        assert result.previous_total == old_total
        assert result.price_difference == expected.total - old_total
        assert result.booking.version == booking.version + 1

    async def test_reschedule_may_overlap_its_own_dates(self, store, homestay):
        booking = await _create(store, homestay, MARCH_1_5, now=NOW)
        result = await reschedule_booking(store, booking.id, MARCH_3_7, now=NOW)
        assert result.booking.date_range == MARCH_3_7

    async def test_reschedule_onto_another_booking_conflicts(self, store, homestay):
        first = await _create(store, homestay, MARCH_1_5, now=NOW)
        second = await _create(store, homestay, MARCH_10_14, now=NOW)

        with pytest.raises(ConflictError) as exc_info:
            await reschedule_booking(store, second.id, MARCH_3_7, now=NOW)

        assert exc_info.value.conflicting_booking_ids == [first.id]
        unchanged = await store.get_booking(second.id)
        assert unchanged.date_range == MARCH_10_14
        assert unchanged.total_price == second.total_price

    async def test_reschedule_reuses_quoted_occupancy(self, store, homestay):
        booking = await _create(store, homestay, now=NOW, occupancy_ratio=Decimal("0.9"))
        result = await reschedule_booking(store, booking.id, MARCH_10_14, now=NOW)
        assert result.booking.pricing_breakdown.occupancy_ratio == Decimal("0.9")
        assert "High Demand" in result.booking.pricing_breakdown.daily_breakdown[0].applied_factors

    async def test_reschedule_checked_in_booking_is_invalid(self, store, homestay, payments):
        booking = await _confirmed(store, payments, homestay)
        arrival = check_in_moment(MARCH_1_5.check_in) + timedelta(hours=1)
        checked_in = await check_in_booking(store, booking.id, now=arrival)
        before = await store.get_booking(booking.id)

        with pytest.raises(InvalidTransition):
            await reschedule_booking(store, booking.id, MARCH_10_14, now=arrival)

        after = await store.get_booking(booking.id)
        assert after.status == BookingStatus.CHECKED_IN.value
        assert after.date_range == MARCH_1_5
        assert after.pricing == before.pricing
        assert after.version == checked_in.version

    @pytest.mark.parametrize("terminal", ["cancel", "complete"])
    async def test_reschedule_terminal_booking_is_invalid(self, store, homestay, payments, terminal):
        booking = await _confirmed(store, payments, homestay)
        if terminal == "cancel":
            await cancel_booking(store, payments, booking.id, now=check_in_moment(date(2027, 2, 1)))
        else:
            arrival = check_in_moment(MARCH_1_5.check_in)
            await check_in_booking(store, booking.id, now=arrival)
            await complete_booking(store, booking.id)

        with pytest.raises(InvalidTransition):
            await reschedule_booking(store, booking.id, MARCH_10_14, now=check_in_moment(date(2027, 2, 1)))

    async def test_no_double_booking_across_sequences(self, store, homestay):
        ranges = [
            MARCH_1_5,
            DateRange(date(2027, 3, 5), date(2027, 3, 8)),
            DateRange(date(2027, 3, 8), date(2027, 3, 10)),
        ]
        bookings = [await _create(store, homestay, r, now=NOW) for r in ranges]

        moves = [
            (bookings[1].id, DateRange(date(2027, 3, 4), date(2027, 3, 8))),
            (bookings[2].id, DateRange(date(2027, 3, 9), date(2027, 3, 12))),
            (bookings[0].id, DateRange(date(2027, 3, 2), date(2027, 3, 6))),
            (bookings[1].id, DateRange(date(2027, 3, 12), date(2027, 3, 15))),
            (bookings[0].id, DateRange(date(2027, 3, 2), date(2027, 3, 9))),
        ]
        for booking_id, new_range in moves:
            try:
                await reschedule_booking(store, booking_id, new_range, now=NOW)
            except ConflictError:
                pass

        active = [booking for booking in store.bookings if booking.is_active]
        for a, b in itertools.combinations(active, 2):
            assert not a.date_range.overlaps(b.date_range)


class TestCheckInAndComplete:
    async def test_full_happy_path(self, store, homestay, payments):
        booking = await _confirmed(store, payments, homestay)
        arrival = check_in_moment(MARCH_1_5.check_in)

        booking = await check_in_booking(store, booking.id, now=arrival)
        assert booking.status == BookingStatus.CHECKED_IN.value

        booking = await complete_booking(store, booking.id)
        assert booking.status == BookingStatus.COMPLETED.value
        assert not booking.is_active

    async def test_check_in_before_arrival_date(self, store, homestay, payments):
        booking = await _confirmed(store, payments, homestay)
        with pytest.raises(InvalidTransition):
            await check_in_booking(store, booking.id, now=check_in_moment(date(2027, 2, 28)))

    async def test_pending_booking_cannot_check_in(self, store, homestay):
        booking = await _create(store, homestay)
        with pytest.raises(InvalidTransition):
            await check_in_booking(store, booking.id, now=check_in_moment(MARCH_1_5.check_in))

    async def test_complete_requires_check_in(self, store, homestay, payments):
        booking = await _confirmed(store, payments, homestay)
        with pytest.raises(InvalidTransition):
            await complete_booking(store, booking.id)


class TestCancel:
    async def test_five_days_out_refunds_half(self, store, homestay, payments):
        booking = await _confirmed(store, payments, homestay)
        now = check_in_moment(MARCH_1_5.check_in) - timedelta(days=5)

        result = await cancel_booking(store, payments, booking.id, reason="Flight cancelled", now=now)

        expected = round_money(booking.total_price * Decimal("0.5"), "INR")
        assert result.refund_percentage == 50
        assert result.refund_amount == expected
        assert result.booking.status == BookingStatus.CANCELLED.value
        assert result.booking.refund_amount == expected
        assert result.booking.refund_reference == "re_fake_1"
        assert result.booking.cancellation_reason == "Flight cancelled"
        assert result.booking.cancelled_at is not None
        assert payments.refunds == [(booking.id, expected, "INR", booking.payment_reference)]

    async def test_week_ahead_refunds_everything(self, store, homestay, payments):
        booking = await _confirmed(store, payments, homestay)
        now = check_in_moment(MARCH_1_5.check_in) - timedelta(days=8)
        result = await cancel_booking(store, payments, booking.id, now=now)
        assert result.refund_amount == booking.total_price

    async def test_same_day_refunds_nothing(self, store, homestay, payments):
        booking = await _confirmed(store, payments, homestay)
        now = check_in_moment(MARCH_1_5.check_in) - timedelta(hours=3)
        result = await cancel_booking(store, payments, booking.id, now=now)
        assert result.refund_percentage == 0
        assert result.refund_amount == Decimal("0.00")
        assert payments.refunds == []
        assert result.booking.status == BookingStatus.CANCELLED.value

    async def test_unpaid_booking_reports_tier_amount_without_refund_instruction(self, store, homestay, payments):
        booking = await _create(store, homestay, now=NOW)
        now = check_in_moment(MARCH_1_5.check_in) - timedelta(days=5)

        result = await cancel_booking(store, payments, booking.id, now=now)

        expected = round_money(booking.total_price * Decimal("0.5"), "INR")
        assert result.refund_percentage == 50
        assert result.refund_amount == expected
        assert result.booking.refund_amount == expected
        assert result.booking.refund_reference is None
        assert payments.refunds == []

    async def test_concurrent_write_before_refund_moves_no_money(self, store, homestay, payments, monkeypatch):
        booking = await _confirmed(store, payments, homestay)
        lock_booking = store.lock_booking

        async def lock_after_another_writer(booking_id):
            other = await store.get_booking(booking_id)
            other.cancellation_reason = "changed elsewhere"
            await store.save_booking(other)
            return await lock_booking(booking_id)

        monkeypatch.setattr(store, "lock_booking", lock_after_another_writer)

        with pytest.raises(ConflictError):
            await cancel_booking(store, payments, booking.id, now=NOW)

        assert payments.refunds == []
        stored = await store.get_booking(booking.id)
        assert stored.status == BookingStatus.CONFIRMED.value
        assert stored.refund_amount is None

    async def test_checked_in_booking_can_be_cancelled(self, store, homestay, payments):
        booking = await _confirmed(store, payments, homestay)
        arrival = check_in_moment(MARCH_1_5.check_in)
        await check_in_booking(store, booking.id, now=arrival)
        result = await cancel_booking(store, payments, booking.id, now=arrival + timedelta(days=1))
        assert result.refund_percentage == 0
        assert result.booking.status == BookingStatus.CANCELLED.value

    async def test_cancel_twice_is_invalid(self, store, homestay, payments):
        booking = await _create(store, homestay, now=NOW)
        await cancel_booking(store, payments, booking.id, now=NOW)
        with pytest.raises(InvalidTransition):
            await cancel_booking(store, payments, booking.id, now=NOW)

    async def test_payment_failure_leaves_booking_confirmed(self, store, homestay, payments):
        booking = await _confirmed(store, payments, homestay)
        payments.fail_refunds = PaymentAuthorityError("Refund failed: card_declined")

        with pytest.raises(PaymentAuthorityError):
            await cancel_booking(
                store, payments, booking.id, now=check_in_moment(MARCH_1_5.check_in) - timedelta(days=10)
            )

        assert (await store.get_booking(booking.id)).status == BookingStatus.CONFIRMED.value


class TestRefundTiers:
    @pytest.mark.parametrize(
        ("time_until", "percent"),
        [
            (timedelta(days=30), 100),
            (timedelta(days=7), 100),
            (timedelta(days=6, hours=23), 50),
            (timedelta(days=3), 50),
            (timedelta(days=2, hours=12), 25),
            (timedelta(days=1), 25),
            (timedelta(hours=23, minutes=59), 0),
            (timedelta(hours=-5), 0),
        ],
    )
    def test_tiers(self, time_until, percent):
        assert refund_percentage(time_until) == percent

    def test_refund_never_grows_as_check_in_approaches(self):
        hours = range(24 * 10, -24, -1)
        percents = [refund_percentage(timedelta(hours=h)) for h in hours]
        assert percents == sorted(percents, reverse=True)


class InterleavingStore(InMemoryBookingStore):
    """Yields to the event loop around the conflict read and the write."""

    async def find_overlapping(self, *args, **kwargs):
        await asyncio.sleep(0)
        return await super().find_overlapping(*args, **kwargs)

    async def save_booking(self, booking):
        await asyncio.sleep(0)
        return await super().save_booking(booking)


class TestConcurrentRequests:
    async def test_overlapping_requests_leave_one_winner(self):
        store = InterleavingStore()
        homestay = store.add_homestay(name="Misty Hills Cottage")
        mover = await _create(store, homestay, MARCH_10_14)

        # Every request below wants the night of March 3.
        results = await asyncio.gather(
            _create(store, homestay, MARCH_1_5),
            _create(store, homestay, MARCH_3_7),
            _create(store, homestay, DateRange(date(2027, 3, 2), date(2027, 3, 4))),
            _create(store, homestay, DateRange(date(2027, 3, 3), date(2027, 3, 6))),
            reschedule_booking(store, mover.id, DateRange(date(2027, 3, 2), date(2027, 3, 6)), now=NOW),
            return_exceptions=True,
        )

        failures = [result for result in results if isinstance(result, BaseException)]
        assert len(failures) == len(results) - 1
        assert all(isinstance(failure, ConflictError) for failure in failures)

        active = [booking for booking in store.bookings if booking.is_active]
        for a, b in itertools.combinations(active, 2):
            assert a.homestay_id == b.homestay_id
            assert not intervals_overlap(a.check_in, a.check_out, b.check_in, b.check_out)

    async def test_concurrent_reschedules_onto_shared_dates(self):
        store = InterleavingStore()
        homestay = store.add_homestay()
        first = await _create(store, homestay, MARCH_1_5)
        second = await _create(store, homestay, MARCH_10_14)

        results = await asyncio.gather(
            reschedule_booking(store, first.id, DateRange(date(2027, 3, 20), date(2027, 3, 23)), now=NOW),
            reschedule_booking(store, second.id, DateRange(date(2027, 3, 21), date(2027, 3, 24)), now=NOW),
            return_exceptions=True,
        )

        assert sum(isinstance(result, ConflictError) for result in results) == 1
        active = [booking for booking in store.bookings if booking.is_active]
        assert len(active) == 2
        assert not active[0].date_range.overlaps(active[1].date_range)


class TestStoreConcurrency:
    async def test_stale_write_is_rejected(self, store, homestay):
        booking = await _create(store, homestay, now=NOW)
        first = await store.get_booking(booking.id)
        second = await store.get_booking(booking.id)

        first.cancellation_reason = "first writer"
        await store.save_booking(first)

        second.cancellation_reason = "second writer"
        with pytest.raises(ConflictError):
            await store.save_booking(second)
        assert (await store.get_booking(booking.id)).cancellation_reason == "first writer"
