"""Shared test configuration and fixtures.

Engine and API tests run against ``InMemoryBookingStore``. SQL store tests
use a PostgreSQL test database (``stayengine_test`` on the configured server,
or ``TEST_DATABASE_URL``) and are skipped when it cannot be reached. Each SQL
test runs in a transaction that is rolled back afterwards.
"""

import os
import uuid
from collections.abc import AsyncGenerator
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from stayengine.api.deps import get_booking_store, get_payment_authority
from stayengine.billing.payment_authority import PaymentAuthorization
from stayengine.config import settings
from stayengine.database import Base, build_engine
from stayengine.main import app
from stayengine.services.booking_store import SqlBookingStore
from stayengine.services.memory_store import InMemoryBookingStore

# ---------------------------------------------------------------------------
# Payment authority double
# ---------------------------------------------------------------------------


class FakePaymentAuthority:
    """Records calls; references in ``authorized`` count as authorized."""

    def __init__(self) -> None:
        self.authorized: set[str] = set()
        self.authorizations: list[tuple[uuid.UUID, Decimal, str]] = []
        self.refunds: list[tuple[uuid.UUID, Decimal, str, str]] = []
        self.fail_refunds: Exception | None = None

    async def authorize_payment(self, booking_id: uuid.UUID, amount: Decimal, currency: str) -> PaymentAuthorization:
        reference = f"pi_fake_{len(self.authorizations) + 1}"
        self.authorizations.append((booking_id, amount, currency))
        self.authorized.add(reference)
        return PaymentAuthorization(
            payment_reference=reference,
            client_secret=f"{reference}_secret",
            amount=amount,
            currency=currency,
        )

    async def is_authorized(self, payment_reference: str, amount: Decimal, currency: str) -> bool:
        return payment_reference in self.authorized

    async def request_refund(
        self,
        booking_id: uuid.UUID,
        amount: Decimal,
        currency: str,
        payment_reference: str,
    ) -> str:
        if self.fail_refunds is not None:
            raise self.fail_refunds
        self.refunds.append((booking_id, amount, currency, payment_reference))
        return f"re_fake_{len(self.refunds)}"


# ---------------------------------------------------------------------------
# In-memory engine fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> InMemoryBookingStore:
    return InMemoryBookingStore()


@pytest.fixture
def payments() -> FakePaymentAuthority:
    return FakePaymentAuthority()


@pytest.fixture
def homestay(store: InMemoryBookingStore):
    """A 4-guest homestay at 2500 INR/night on the default policy."""
    return store.add_homestay(name="Misty Hills Cottage", base_price=Decimal("2500.00"))


@pytest_asyncio.fixture
async def client(
    store: InMemoryBookingStore, payments: FakePaymentAuthority
) -> AsyncGenerator[AsyncClient, None]:
    """httpx AsyncClient wired to the in-memory store and fake payments."""
    app.dependency_overrides[get_booking_store] = lambda: store
    app.dependency_overrides[get_payment_authority] = lambda: payments

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# PostgreSQL fixtures
# ---------------------------------------------------------------------------

_test_db_url = os.getenv("TEST_DATABASE_URL") or settings.async_database_url.rsplit("/", 1)[0] + "/stayengine_test"


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def test_engine():
    engine = build_engine(_test_db_url, echo=False)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def setup_test_db(test_engine):
    """Create the schema once per session; skip SQL tests without a server."""
    try:
        async with test_engine.begin() as conn:
            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS btree_gist"))
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
    except Exception as exc:  # noqa: BLE001
        pytest.skip(f"PostgreSQL test database unavailable: {exc}")
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session(test_engine, setup_test_db) -> AsyncGenerator[AsyncSession, None]:
    """Session inside an outer transaction that always rolls back.

    The session works in a savepoint, so a test can recover from an
    ``IntegrityError`` with ``await db_session.rollback()``.
    """
    async with test_engine.connect() as connection:
        transaction = await connection.begin()
        session = AsyncSession(
            bind=connection,
            expire_on_commit=False,
            join_transaction_mode="create_savepoint",
        )
        try:
            yield session
        finally:
            await session.close()
            await transaction.rollback()


@pytest.fixture
def sql_store(db_session: AsyncSession) -> SqlBookingStore:
    return SqlBookingStore(db_session)
