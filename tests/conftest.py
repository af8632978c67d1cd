# tests/conftest.py
from __future__ import annotations

import os
from datetime import datetime
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

# the module-level app in staybook.main must not point at a developer database
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./.pytest-staybook.db")

from staybook.container import Container, build_container  # noqa: E402
from staybook.core.clock import UTC  # noqa: E402
from staybook.core.config import AppSettings  # noqa: E402
from staybook.db.base import Base, init_models  # noqa: E402
from staybook.db.session import create_engine_for, make_session_maker  # noqa: E402
from staybook.main import create_app  # noqa: E402
from tests.helpers.clock import ManualClock  # noqa: E402
from tests.helpers.gateways import (  # noqa: E402
    AuthorizeOnlyGateway,
    DecliningGateway,
    FailingRefundGateway,
    RecordingGateway,
)
from tests.helpers.seed import seed_baseline  # noqa: E402

T0 = datetime(2025, 5, 1, 12, 0, tzinfo=UTC)


# =========================================
# per-test SQLite file database
# =========================================
@pytest_asyncio.fixture(scope="function")
async def async_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'staybook.db'}")
    init_models()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture(scope="function")
def async_session_maker(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return make_session_maker(async_engine)


@pytest_asyncio.fixture(autouse=True, scope="function")
async def _seed(async_session_maker) -> None:
    async with async_session_maker() as sess:
        await seed_baseline(sess, at=T0)


@pytest_asyncio.fixture(scope="function")
async def session(async_session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Plain session; services open and commit their own transactions."""
    async with async_session_maker() as sess:
        yield sess


# =========================================
# wiring
# =========================================
@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(T0)


@pytest.fixture
def settings(tmp_path) -> AppSettings:
    return AppSettings(DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'staybook.db'}", LOG_LEVEL="WARNING")


@pytest.fixture
def recording_gateway() -> RecordingGateway:
    return RecordingGateway()


@pytest.fixture
def container(settings, clock, async_session_maker, recording_gateway) -> Container:
    return build_container(
        settings,
        clock=clock,
        session_maker=async_session_maker,
        gateways=[
            recording_gateway,
            DecliningGateway(),
            FailingRefundGateway(),
            AuthorizeOnlyGateway(),
        ],
    )


@pytest_asyncio.fixture
async def client(container) -> AsyncGenerator[httpx.AsyncClient, None]:
    app = create_app(container)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
