"""
Trip store engine and sessions.

One async engine per process. Requests get a session through ``get_db``;
the background reconciliation job opens its own from ``AsyncSessionLocal``.
"""

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from tickto.app.core.config import settings


def build_engine(database_url: str) -> AsyncEngine:
    """
    Create the async engine for ``database_url``.

    Pool sizing only applies to server databases; SQLite (used for local runs)
    gets the driver's default pool. Waiting for a pooled connection is bounded
    by the store timeout so a saturated pool surfaces as a timeout, not a hang.
    """
    options = {"echo": settings.db_echo, "pool_pre_ping": True}
    if make_url(database_url).get_backend_name() != "sqlite":
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.store_timeout_seconds,
        )
    return create_async_engine(database_url, **options)


engine = build_engine(settings.database_url)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db():
    """
    FastAPI dependency yielding one session per request.

    Work left uncommitted by a failed request is rolled back before the
    session is returned to the pool.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
