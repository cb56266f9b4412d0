"""Pytest configuration and fixtures for stockdb testing."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("METRICS_REDIS_ENABLED", "false")

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import stockdb.models  # noqa: F401
from stockdb.api.main import app
from stockdb.core.database import Base, get_db
from stockdb.core.metrics import metrics
from stockdb.services.stock_record_store import StockRecordStore

HEADER = (
    "Date,Symbol,Series,PrevClose,Open,High,Low,Last,Close,VWAP,"
    "Volume,Turnover,Trades,Deliverable,%Deliverable"
)
TCS_ROW = (
    "2023-01-02,TCS,EQ,3400.0,3410.0,3450.0,3390.0,3430.0,3425.0,3420.50,"
    "1000000,3420500000,5000,600000,60.0"
)


def make_csv(*rows: str, header: str = HEADER) -> bytes:
    """Build CSV bytes from a header and data lines."""
    return ("\n".join([header, *rows]) + "\n").encode("utf-8")


def make_row(
    date: str = "2023-01-02",
    symbol: str = "TCS",
    close: str = "3425.0",
    vwap: str = "3420.50",
    volume: str = "1000000",
    open_: str = "3410.0",
) -> str:
    """A valid data line with the commonly varied fields overridable."""
    return (
        f"{date},{symbol},EQ,3400.0,{open_},3450.0,3390.0,3430.0,{close},{vwap},"
        f"{volume},3420500000,5000,600000,60.0"
    )


@pytest.fixture(autouse=True)
def reset_metrics():
    """Start every test with an empty, enabled metrics buffer."""
    metrics.enable()
    metrics.set_redis(None)
    metrics.clear_buffer()
    yield
    metrics.clear_buffer()


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite database with the schema created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(session: AsyncSession) -> StockRecordStore:
    return StockRecordStore(session=session)


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app, with requests using the test database."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
