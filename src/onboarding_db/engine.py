"""Async SQLAlchemy engine and session factory.

One engine (and connection pool) per process, created on first use from
:class:`DatabaseSettings`.  Call ``dispose_engine()`` during graceful
shutdown; the next ``get_engine()`` call will build a fresh one.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from onboarding_db.config import DatabaseSettings

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine(settings: DatabaseSettings | None = None) -> AsyncEngine:
    """Return the process-wide async engine, creating it on first call.

    *settings* only matters for the call that creates the engine; it
    defaults to :meth:`DatabaseSettings.from_env`.
    """
    global _engine
    if _engine is None:
        settings = settings or DatabaseSettings.from_env()
        _engine = create_async_engine(
            settings.async_url,
            echo=False,
            pool_size=settings.pool_size,
            max_overflow=settings.max_overflow,
        )
    return _engine


def get_session_factory(settings: DatabaseSettings | None = None) -> async_sessionmaker[AsyncSession]:
    """Return the async session factory bound to :func:`get_engine`."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            bind=get_engine(settings),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


async def dispose_engine() -> None:
    """Close the connection pool and forget the engine."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
