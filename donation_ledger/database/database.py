from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool
import asyncio
import structlog

from donation_ledger.core.config import get_settings
from donation_ledger.models import Base

settings = get_settings()
logger = structlog.get_logger(__name__)


def _engine_options(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        # Single shared connection so an in-memory database survives between sessions
        return {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    return {
        "pool_size": 20,
        "max_overflow": 30,
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }


engine = create_async_engine(
    settings.database_url,
    echo=False,  # Disable SQLAlchemy query logging
    **_engine_options(settings.database_url),
)

# Objects stay readable after commit; the ledger never relies on lazy refresh
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def wait_for_db(max_retries=30, delay=2):
    """Wait for database to be available with retries"""
    for attempt in range(max_retries):
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            logger.info("Database connection established")
            return True
        except Exception as e:
            logger.warning(
                "Database connection attempt failed",
                attempt=attempt + 1,
                max_retries=max_retries,
                error=str(e)
            )
            if attempt < max_retries - 1:
                await asyncio.sleep(delay)
            else:
                logger.error("Failed to connect to database after all retries")
                raise
    return False


async def init_db():
    """Initialize database tables"""
    try:
        await wait_for_db()

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error("Failed to create database tables", error=str(e))
        raise


async def get_db():
    """Dependency to get database session"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception as e:
            await session.rollback()
            logger.error("Database session error", error=str(e))
            raise


async def close_db():
    """Close database connection"""
    await engine.dispose()
    logger.info("Database connection closed")
