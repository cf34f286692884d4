import asyncio
import logging
from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import get_settings
from app.models.base import Base

logger = logging.getLogger(__name__)
settings = get_settings()


def get_async_database_url(url: str) -> str:
    """Convert database URL to async-compatible format."""
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+psycopg://", 1)
    elif url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+psycopg://", 1)
    elif url.startswith("sqlite:///"):
        url = url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    return url


def _engine_kwargs(url: str) -> dict:
    # SQLite pools reject the QueuePool sizing options
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,  # Verify connections before using
        "pool_recycle": 3600,   # Recycle connections after 1 hour
        "pool_timeout": 10,     # Wait up to 10 seconds for a connection from pool
        "max_overflow": 10,     # Allow extra connections beyond pool_size
        "connect_args": {"connect_timeout": 10},
    }


database_url = get_async_database_url(settings.database_url)

logger.info("Creating database engine with URL: %s@***", database_url.split("@")[0])
engine: AsyncEngine = create_async_engine(
    database_url,
    future=True,
    echo=settings.debug,
    **_engine_kwargs(database_url),
)

AsyncSessionFactory = async_sessionmaker(
    bind=engine,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionFactory() as session:
        yield session


async def init_database() -> None:
    """Create all tables. In production use Alembic migrations instead."""
    import app.models  # noqa: F401 register every table on Base.metadata

    logger.info("Initializing database tables...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialized")


async def test_database_connection(timeout: float = 10.0) -> bool:
    """Test database connection with timeout."""

    async def _test_connection():
        async with engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            result.fetchone()

    try:
        await asyncio.wait_for(_test_connection(), timeout=timeout)
        return True
    except asyncio.TimeoutError:
        logger.error("Database connection test timed out after %s seconds", timeout)
        return False
    except Exception:
        logger.exception("Database connection test failed")
        return False
