import os

# Settings() is built at import time; credentials have no defaults
os.environ.setdefault("PAYPAL_CLIENT_ID", "test-client-id")
os.environ.setdefault("PAYPAL_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("OWNER_TOKEN_SECRET", "test-owner-secret")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("TELEMETRY_ENABLED", "false")

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from market.api.deps import get_feedback_store, get_gateway, get_store, get_sweeper
from market.core.security import sign_owner_token
from market.main import app
from market.models import Base
from market.services.feedback import FeedbackStore
from market.services.lifecycle import ListingLifecycle
from market.services.listing_store import ListingStore

from fixtures_seed import FIXED_NOW, OTHER_OWNER_ID, OWNER_ID, FakeGateway, FakeSweeper


@pytest.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    await engine.dispose()


@pytest.fixture
def store(session_factory) -> ListingStore:
    return ListingStore(session_factory)


@pytest.fixture
def feedback_store(session_factory) -> FeedbackStore:
    return FeedbackStore(session_factory)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def sweeper() -> FakeSweeper:
    return FakeSweeper()


@pytest.fixture
def clock():
    """Settable clock; tests move time with clock.now = ..."""

    class _Clock:
        now = FIXED_NOW

        def __call__(self) -> int:
            return self.now

    return _Clock()


@pytest.fixture
def lifecycle(store, gateway, sweeper, clock) -> ListingLifecycle:
    return ListingLifecycle(store=store, gateway=gateway, sweeper=sweeper, currency="EUR", clock=clock)


@pytest.fixture
def owner_headers() -> dict[str, str]:
    return {"X-Owner-Token": sign_owner_token(OWNER_ID)}


@pytest.fixture
def other_owner_headers() -> dict[str, str]:
    return {"X-Owner-Token": sign_owner_token(OTHER_OWNER_ID)}


@pytest.fixture
async def client(store, feedback_store, gateway, sweeper):
    """
    HTTP client against the app with the stores, gateway and sweeper swapped
    for test doubles via dependency overrides.
    """
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_sweeper] = lambda: sweeper
    app.dependency_overrides[get_feedback_store] = lambda: feedback_store

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()

