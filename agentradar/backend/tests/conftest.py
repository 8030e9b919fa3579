# tests/conftest.py
from __future__ import annotations

from typing import Any

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from mlshub.adapters.cache import InMemoryCache
from mlshub.adapters.clients.rate_limit import FixedWindowRateLimiter
from mlshub.models import Base

from helpers import FakeClock, FakeSleep, custom_config_copy


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_sleep(clock) -> FakeSleep:
    return FakeSleep(clock)


@pytest.fixture
def limiter(clock, fake_sleep) -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter(clock=clock, sleep=fake_sleep)


@pytest.fixture
def cache(clock) -> InMemoryCache:
    return InMemoryCache(clock=clock)


@pytest.fixture
def custom_config() -> dict[str, Any]:
    return custom_config_copy()


@pytest.fixture
async def engine():
    """
    Fresh in-memory DB per test. StaticPool makes all connections share the same
    in-memory database for the lifetime of this engine fixture.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def async_session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=True)
