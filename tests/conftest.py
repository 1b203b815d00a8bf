"""
Shared fixtures: an in-memory SQLite store per test and an HTTP client
bound to it.
"""
import os
import sys
from pathlib import Path
# Add parent folder (project root) to sys.path so local modules can be imported
PROJECT_ROOT = Path(__file__).resolve().parents[1]
proj_root_str = str(PROJECT_ROOT)
if proj_root_str not in sys.path:
    sys.path.insert(0, proj_root_str)

# Settings are read once at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["TRACING_ENABLED"] = "false"
os.environ["KAFKA_ENABLED"] = "false"
os.environ["REDIS_URL"] = ""

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from donation_ledger.core.circuit_breaker import CircuitBreaker, db_circuit_breaker
from donation_ledger.database.database import get_db
from donation_ledger.models import Base
from donation_ledger.services.store import DonationStoreGateway


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture(autouse=True)
def reset_circuit_breaker():
    """The global breaker must not leak an open circuit between tests"""
    db_circuit_breaker.reset()
    yield
    db_circuit_breaker.reset()


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Fresh in-memory database with all tables"""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine):
    """Get database session for tests"""
    session_factory = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(db_session):
    """Store gateway with its own breaker so tests never share failure counts"""
    return DonationStoreGateway(db_session, breaker=CircuitBreaker(name="test-store"))


@pytest_asyncio.fixture(scope="function")
async def client(db_session):
    """Create test client with database override"""
    from donation_ledger.main import app

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
