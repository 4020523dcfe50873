"""
Database base configuration for SQLAlchemy models.

All request handlers and the session reconciler use the async engine; the
sync URL from settings is mapped onto its async driver by prefix.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import AsyncAdaptedQueuePool

from app.core.config import settings

DATABASE_URL = settings.DATABASE_URL

# Build the async URL by string-prefix replacement on the raw DATABASE_URL.
# make_url() -> set(drivername) -> str() mangles some hostnames, so avoid it.
_SYNC_PREFIX_MAP = {
    "postgresql+psycopg2://": "postgresql+asyncpg://",
    "postgresql://": "postgresql+asyncpg://",
    "sqlite://": "sqlite+aiosqlite://",
}


def to_async_url(database_url: str) -> str:
    """Map a sync database URL onto its async driver.

    Raises:
        ValueError: If the URL prefix has no async driver mapping
    """
    for sync_prefix, async_prefix in _SYNC_PREFIX_MAP.items():
        if database_url.startswith(sync_prefix):
            return async_prefix + database_url[len(sync_prefix) :]
    raise ValueError(
        f"No async driver mapping for DATABASE_URL prefix. "
        f"Supported prefixes: {list(_SYNC_PREFIX_MAP.keys())}"
    )


async_engine = create_async_engine(
    to_async_url(DATABASE_URL),
    echo=settings.DEBUG and settings.ENV == "development",
    poolclass=AsyncAdaptedQueuePool,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_POOL_MAX_OVERFLOW,
    pool_timeout=settings.DB_POOL_TIMEOUT,
    pool_recycle=settings.DB_POOL_RECYCLE,
    pool_pre_ping=settings.DB_POOL_PRE_PING,
)

AsyncSessionLocal = async_sessionmaker(
    async_engine, class_=AsyncSession, expire_on_commit=False
)


class Base(DeclarativeBase):
    """
    SQLAlchemy 2.0 declarative base class with type annotation support.
    """

    pass


async def init_db(engine: AsyncEngine = async_engine) -> None:
    """Create any missing tables. Used when DB_AUTO_CREATE is enabled."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
