"""Database setup with async SQLAlchemy for the shared room/subscriber store."""
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker, AsyncEngine
from sqlalchemy.orm import DeclarativeBase
from roomsync.core.config import settings
import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)


def mask_db_url(url: str) -> str:
    """Mask password in database URL for safe logging."""
    return re.sub(r'://([^:]+):([^@]+)@', r'://\1:****@', url)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


def create_engine_for(url: str) -> AsyncEngine:
    """Create an async engine, pooling only for server databases."""
    engine_args = {
        "echo": settings.log_level == "DEBUG",  # Log all SQL if DEBUG
        "pool_pre_ping": True,  # Verify connections before using
    }
    if not url.startswith("sqlite"):
        engine_args.update({
            "pool_size": 5,
            "max_overflow": 10,
            "pool_timeout": 30,
            "pool_recycle": 3600,
        })
    return create_async_engine(url, **engine_args)


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory bound to an engine."""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False
    )


engine: Optional[AsyncEngine] = None
AsyncSessionLocal: Optional[async_sessionmaker[AsyncSession]] = None

if settings.database_url:
    logger.info(f"Connecting to database: {mask_db_url(settings.database_url)}")
    engine = create_engine_for(settings.database_url)
    AsyncSessionLocal = create_session_factory(engine)
    logger.info("Async session factory created")
else:
    logger.info("DATABASE_URL not set, durable room storage disabled")


def get_async_session():
    """Context manager for getting database sessions outside of request handlers."""
    if AsyncSessionLocal is None:
        raise RuntimeError("Database is not configured (DATABASE_URL unset)")
    logger.debug("Creating standalone async session context manager")
    return AsyncSessionLocal()


async def init_db(bind: Optional[AsyncEngine] = None):
    """Initialize database tables."""
    bind = bind or engine
    if bind is None:
        logger.info("Skipping table initialization, no database configured")
        return

    # Register models on Base.metadata
    import roomsync.models  # noqa: F401

    logger.info("Initializing database tables...")
    try:
        async with bind.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database tables: {str(e)}", exc_info=True)
        raise
