"""Tests for the Stripe-backed payment authority with mocked Stripe calls."""

import uuid
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
import stripe

from stayengine.billing.payment_authority import StripePaymentAuthority
from stayengine.errors import PaymentAuthorityError

MODULE = "stayengine.billing.payment_authority"


def _intent(status: str = "requires_capture", amount: int = 1650578, currency: str = "inr") -> SimpleNamespace:
    return SimpleNamespace(id="pi_test_123", status=status, amount=amount, currency=currency)


@pytest.fixture
def authority() -> StripePaymentAuthority:
    return StripePaymentAuthority()


class TestAuthorize:
    async def test_amount_is_sent_in_minor_units(self, authority):
        booking_id = uuid.uuid4()
        created = SimpleNamespace(id="pi_test_123", client_secret="pi_test_123_secret")
        with patch(f"{MODULE}.create_payment_intent", new_callable=AsyncMock, return_value=created) as mock_create:
            authorization = await authority.authorize_payment(booking_id, Decimal("16505.78"), "INR")

        mock_create.assert_awaited_once_with(1650578, "INR", str(booking_id))
        assert authorization.payment_reference == "pi_test_123"
        assert authorization.client_secret == "pi_test_123_secret"
        assert authorization.amount == Decimal("16505.78")

    async def test_stripe_failure_is_wrapped(self, authority):
        with patch(
            f"{MODULE}.create_payment_intent",
            new_callable=AsyncMock,
            side_effect=stripe.APIConnectionError("Network unreachable"),
        ):
            with pytest.raises(PaymentAuthorityError) as exc_info:
                await authority.authorize_payment(uuid.uuid4(), Decimal("100.00"), "USD")
        assert exc_info.value.retryable


class TestIsAuthorized:
    @pytest.mark.parametrize(
        ("intent", "expected"),
        [
            (_intent(), True),
            (_intent(status="succeeded"), True),
            (_intent(status="requires_payment_method"), False),
            (_intent(amount=1000), False),
            (_intent(currency="usd"), False),
        ],
    )
    async def test_intent_status_amount_and_currency(self, authority, intent, expected):
        with patch(f"{MODULE}.get_payment_intent", new_callable=AsyncMock, return_value=intent):
            assert await authority.is_authorized("pi_test_123", Decimal("16505.78"), "INR") is expected

    async def test_unknown_intent_is_not_authorized(self, authority):
        with patch(
            f"{MODULE}.get_payment_intent",
            new_callable=AsyncMock,
            side_effect=stripe.InvalidRequestError("No such payment_intent: 'pi_missing'", "id"),
        ):
            assert await authority.is_authorized("pi_missing", Decimal("10.00"), "INR") is False

    async def test_lookup_failure_is_wrapped(self, authority):
        with patch(
            f"{MODULE}.get_payment_intent",
            new_callable=AsyncMock,
            side_effect=stripe.APIConnectionError("Network unreachable"),
        ):
            with pytest.raises(PaymentAuthorityError):
                await authority.is_authorized("pi_test_123", Decimal("10.00"), "INR")


class TestRequestRefund:
    async def test_partial_refund_of_uncaptured_payment_captures_the_rest(self, authority):
        with (
            patch(f"{MODULE}.get_payment_intent", new_callable=AsyncMock, return_value=_intent(amount=10000)),
            patch(f"{MODULE}.capture_payment_intent", new_callable=AsyncMock) as mock_capture,
            patch(f"{MODULE}.cancel_payment_intent", new_callable=AsyncMock) as mock_cancel,
        ):
            reference = await authority.request_refund(uuid.uuid4(), Decimal("25.00"), "INR", "pi_test_123")

        mock_capture.assert_awaited_once_with("pi_test_123", 7500)
        mock_cancel.assert_not_awaited()
        assert reference == "pi_test_123"

    async def test_full_refund_of_uncaptured_payment_cancels_it(self, authority):
        with (
            patch(f"{MODULE}.get_payment_intent", new_callable=AsyncMock, return_value=_intent(amount=10000)),
            patch(f"{MODULE}.capture_payment_intent", new_callable=AsyncMock) as mock_capture,
            patch(f"{MODULE}.cancel_payment_intent", new_callable=AsyncMock) as mock_cancel,
        ):
            await authority.request_refund(uuid.uuid4(), Decimal("100.00"), "INR", "pi_test_123")

        mock_cancel.assert_awaited_once_with("pi_test_123")
        mock_capture.assert_not_awaited()

    async def test_captured_payment_gets_a_refund(self, authority):
        booking_id = uuid.uuid4()
        with (
            patch(
                f"{MODULE}.get_payment_intent",
                new_callable=AsyncMock,
                return_value=_intent(status="succeeded", amount=10000),
            ),
            patch(
                f"{MODULE}.create_refund",
                new_callable=AsyncMock,
                return_value=SimpleNamespace(id="re_test_456"),
            ) as mock_refund,
        ):
            reference = await authority.request_refund(booking_id, Decimal("50.00"), "INR", "pi_test_123")

        mock_refund.assert_awaited_once_with("pi_test_123", 5000, str(booking_id))
        assert reference == "re_test_456"

    async def test_refund_failure_is_wrapped(self, authority):
        with (
            patch(
                f"{MODULE}.get_payment_intent",
                new_callable=AsyncMock,
                return_value=_intent(status="succeeded"),
            ),
            patch(
                f"{MODULE}.create_refund",
                new_callable=AsyncMock,
                side_effect=stripe.APIConnectionError("Network unreachable"),
            ),
        ):
            with pytest.raises(PaymentAuthorityError):
                await authority.request_refund(uuid.uuid4(), Decimal("50.00"), "INR", "pi_test_123")
