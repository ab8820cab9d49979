"""SqlPersistence — PostgreSQL implementation of the engine's persistence boundary.

Each call opens its own session from the async session factory and commits
before returning, so background saves from the controller never share a
transaction.  Database errors surface as
:class:`~onboarding_flow.errors.PersistenceFailure`; rows whose JSONB does
not hold an object surface as
:class:`~onboarding_flow.errors.MalformedStoredState`.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from onboarding_db.engine import get_session_factory
from onboarding_db.repository import ProgressRepository
from onboarding_flow.errors import MalformedStoredState, PersistenceFailure
from onboarding_flow.interfaces import PersistenceAdapter
from onboarding_flow.models.state import FlowState

logger = logging.getLogger(__name__)


class SqlPersistence(PersistenceAdapter):
    """Stores onboarding progress in the ``onboarding_progress`` table.

    Args:
        session_factory: async session factory; defaults to the process-wide
            one from :func:`onboarding_db.engine.get_session_factory`,
            resolved on first use.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_factory = session_factory
        self._repo = ProgressRepository()

    def _sessions(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            self._session_factory = get_session_factory()
        return self._session_factory

    async def load(self, user_id: str) -> dict[str, Any] | None:
        try:
            async with self._sessions()() as db:
                row = await self._repo.get_by_user(db, user_id)
        except SQLAlchemyError as exc:
            raise PersistenceFailure(f"load failed for {user_id}") from exc
        if row is None or not row.profile:
            return None
        if not isinstance(row.profile, dict):
            raise MalformedStoredState(f"stored profile for {user_id} is not an object")
        return row.profile

    async def load_app_profile(self, user_id: str) -> dict[str, Any] | None:
        try:
            async with self._sessions()() as db:
                row = await self._repo.get_by_user(db, user_id)
        except SQLAlchemyError as exc:
            raise PersistenceFailure(f"load failed for {user_id}") from exc
        if row is None or row.app_profile is None:
            return None
        if not isinstance(row.app_profile, dict):
            raise MalformedStoredState(f"stored app profile for {user_id} is not an object")
        return row.app_profile

    async def save(self, user_id: str, profile: dict[str, Any], state: FlowState) -> None:
        try:
            async with self._sessions()() as db:
                await self._repo.upsert_progress(
                    db,
                    user_id,
                    profile=profile,
                    flow_state=state.model_dump(mode="json"),
                )
                await db.commit()
        except SQLAlchemyError as exc:
            raise PersistenceFailure(f"save failed for {user_id}") from exc
        logger.debug("Saved onboarding progress for %s", user_id)

    async def save_app_profile(self, user_id: str, app_profile: dict[str, Any]) -> None:
        try:
            async with self._sessions()() as db:
                await self._repo.save_app_profile(db, user_id, app_profile)
                await db.commit()
        except SQLAlchemyError as exc:
            raise PersistenceFailure(f"saving app profile failed for {user_id}") from exc
        logger.info("Stored application profile for %s", user_id)

    async def clear(self, user_id: str) -> None:
        try:
            async with self._sessions()() as db:
                removed = await self._repo.delete_by_user(db, user_id)
                await db.commit()
        except SQLAlchemyError as exc:
            raise PersistenceFailure(f"clear failed for {user_id}") from exc
        logger.info("Cleared onboarding progress for %s (%d rows)", user_id, removed)
