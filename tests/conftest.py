"""
Shared pytest Fixtures & Configuration

Provides common fixtures for all test modules:
- In-memory credential store (aiosqlite)
- Fake Playwright page / element doubles
- Session broker wired to a mock store and browser factory
- Async test support via pytest-asyncio
"""

from __future__ import annotations

from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.credentials import Credential
from src.models.base import Base
from src.session.broker import SessionBroker
from tests.fakes import NOW_MS, FakePage


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio backend for anyio tests."""
    return "asyncio"


# ---------------------------------------------------------------------------
# Fake Playwright page
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_page() -> FakePage:
    return FakePage()


# ---------------------------------------------------------------------------
# Broker fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def credential() -> Credential:
    return Credential(username="seller@example.com", password="hunter2")


@pytest.fixture
def mock_store(credential: Credential) -> AsyncMock:
    """CredentialStore double returning `credential` for any key."""
    store = AsyncMock()
    store.get = AsyncMock(return_value=credential)
    store.upsert = AsyncMock()
    store.update_token = AsyncMock()
    store.list_keys = AsyncMock(return_value=["bsc-main", "sportlots-main"])
    return store


@pytest.fixture
def browser_handle(fake_page: FakePage) -> MagicMock:
    handle = MagicMock()
    handle.page = fake_page
    handle.close = AsyncMock()
    return handle


@pytest.fixture
def browser_factory(browser_handle: MagicMock) -> MagicMock:
    factory = MagicMock()
    factory.open_page = AsyncMock(return_value=browser_handle)
    return factory


@pytest.fixture
def broker(mock_store: AsyncMock, browser_factory: MagicMock) -> SessionBroker:
    return SessionBroker(mock_store, browser_factory=browser_factory, clock=lambda: NOW_MS)


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """
    Session factory over an in-memory SQLite database.

    StaticPool keeps one connection so every session sees the same database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()
