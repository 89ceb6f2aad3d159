"""Async SQLAlchemy engine and session factory for the ISPyB database."""

from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from shared.errors import ConfigurationError
from shared.logging import get_logger

logger = get_logger("sessions.persistence.database")

ASYNC_DRIVERS = {
    "mysql": "mysql+aiomysql",
    "mariadb": "mariadb+aiomysql",
    "sqlite": "sqlite+aiosqlite",
}


def to_async_url(database_url: str) -> str:
    """Map a plain database URL (``mysql://...``) onto its async driver."""
    try:
        url = make_url(database_url)
    except ArgumentError as e:
        raise ConfigurationError("Invalid database URL", details={"error": str(e)}) from e

    if url.drivername in ASYNC_DRIVERS:
        url = url.set(drivername=ASYNC_DRIVERS[url.drivername])
    return url.render_as_string(hide_password=False)


def create_engine(database_url: str, pool_size: int = 5) -> AsyncEngine:
    """Create the shared connection pool. No connection is opened yet."""
    async_url = to_async_url(database_url)
    options = {"pool_pre_ping": True}
    if not async_url.startswith("sqlite"):
        options.update(pool_size=pool_size, pool_recycle=3600)

    engine = create_async_engine(async_url, **options)
    logger.info("Database engine created", url=make_url(async_url).render_as_string(hide_password=True))
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory handing out read-only, non-expiring sessions."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
