"""Database configuration — connection parameters read from the environment.

Two ways to point at PostgreSQL:
1. A single ``DATABASE_URL`` env var (takes precedence).
2. Individual ``PG_HOST``, ``PG_PORT``, ``PG_USER``, ``PG_PASSWORD``,
   ``PG_DATABASE`` env vars (convenient for docker-compose).

``DatabaseSettings.sync_url`` is what Alembic uses (migrations run
synchronously); ``async_url`` drives the asyncpg engine at runtime.
"""

import os
from dataclasses import dataclass

_ASYNC_PREFIX = "postgresql+asyncpg://"
_SYNC_PREFIX = "postgresql://"


@dataclass(frozen=True)
class DatabaseSettings:
    """Immutable connection settings.  Build with :meth:`from_env`."""

    url: str
    pool_size: int = 5
    max_overflow: int = 10

    @classmethod
    def from_env(cls) -> "DatabaseSettings":
        url = os.getenv("DATABASE_URL")
        if not url:
            host = os.getenv("PG_HOST", "localhost")
            port = os.getenv("PG_PORT", "5432")
            user = os.getenv("PG_USER", "onboarding")
            password = os.getenv("PG_PASSWORD", "onboarding")
            database = os.getenv("PG_DATABASE", "onboarding")
            url = f"{_SYNC_PREFIX}{user}:{password}@{host}:{port}/{database}"
        return cls(
            url=url,
            pool_size=int(os.getenv("PG_POOL_SIZE", "5")),
            max_overflow=int(os.getenv("PG_MAX_OVERFLOW", "10")),
        )

    @property
    def sync_url(self) -> str:
        """psycopg2 / libpq URL (asyncpg driver prefix stripped)."""
        return self.url.replace(_ASYNC_PREFIX, _SYNC_PREFIX, 1)

    @property
    def async_url(self) -> str:
        """asyncpg URL (driver prefix added when missing)."""
        if self.url.startswith(_SYNC_PREFIX):
            return self.url.replace(_SYNC_PREFIX, _ASYNC_PREFIX, 1)
        return self.url


def get_sync_url() -> str:
    """Synchronous URL from the current environment."""
    return DatabaseSettings.from_env().sync_url


def get_async_url() -> str:
    """Async URL from the current environment."""
    return DatabaseSettings.from_env().async_url
