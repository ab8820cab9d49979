"""onboarding_db — persistence layer for onboarding progress.

This package provides the ORM model, async engine factory, repository, and
two implementations of the engine's ``PersistenceAdapter``:

    SqlPersistence       — PostgreSQL via async SQLAlchemy + asyncpg
    InMemoryPersistence  — JSON text in a dict (development and tests)
"""

from onboarding_db.adapter import SqlPersistence
from onboarding_db.config import DatabaseSettings
from onboarding_db.engine import dispose_engine, get_engine, get_session_factory
from onboarding_db.memory import InMemoryPersistence
from onboarding_db.models.progress import OnboardingProgress
from onboarding_db.repository import ProgressRepository

__all__ = [
    "DatabaseSettings",
    "InMemoryPersistence",
    "OnboardingProgress",
    "ProgressRepository",
    "SqlPersistence",
    "dispose_engine",
    "get_engine",
    "get_session_factory",
]
