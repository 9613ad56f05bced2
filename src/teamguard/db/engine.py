"""Async SQLAlchemy engine and session factory.

Learn: SQLAlchemy 2.0 async mode — create_async_engine for connection pooling,
AsyncSession for per-request database access. The core never touches this
module: routes and the CLI wrap a session in SqlIdentityStore and inject
that store into the components.

There are no migrations; create_schema() builds the tables straight from
the ORM metadata (`teamguard init-db`).
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from teamguard.config import settings
from teamguard.db.models import Base

# Connection pool: min 5, max 20 connections. SQL echo follows TEAMGUARD_DEBUG.
engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=5,
    max_overflow=15,
    pool_pre_ping=True,
)

# One session per request (or per CLI command)
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def create_schema(bind: AsyncEngine = engine) -> list[str]:
    """Create any missing identity/resource tables. Returns the table names."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return sorted(Base.metadata.tables)


async def get_db() -> AsyncSession:
    """FastAPI dependency — one session per request, wrapped by get_store()."""
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
