"""Async CRUD repository for OnboardingProgress.

All public methods accept an ``AsyncSession`` so the caller controls
transaction boundaries.  Methods flush but never commit.

The repository does no validation of profile contents; merging stored data
onto flow defaults is the engine's job.
"""

from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding_db.models.base import utcnow
from onboarding_db.models.progress import OnboardingProgress


class ProgressRepository:
    """Async read/write operations on the ``onboarding_progress`` table."""

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_by_user(
        self, db: AsyncSession, user_id: str
    ) -> OnboardingProgress | None:
        """Fetch the progress row for *user_id*, if any."""
        stmt = select(OnboardingProgress).where(OnboardingProgress.user_id == user_id)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    async def get_or_create(self, db: AsyncSession, user_id: str) -> OnboardingProgress:
        """Return the user's row, inserting an empty one if missing."""
        row = await self.get_by_user(db, user_id)
        if row is None:
            row = OnboardingProgress(user_id=user_id, profile={}, flow_state={})
            db.add(row)
            await db.flush()  # Populate defaults (id, timestamps)
        return row

    async def upsert_progress(
        self,
        db: AsyncSession,
        user_id: str,
        *,
        profile: dict[str, Any],
        flow_state: dict[str, Any],
    ) -> OnboardingProgress:
        """Replace the stored profile and position for *user_id*."""
        row = await self.get_or_create(db, user_id)
        # Fresh dicts so SQLAlchemy detects the mutation
        row.profile = dict(profile)
        row.flow_state = dict(flow_state)
        row.updated_at = utcnow()
        await db.flush()
        return row

    async def save_app_profile(
        self,
        db: AsyncSession,
        user_id: str,
        app_profile: dict[str, Any],
    ) -> OnboardingProgress:
        """Store the finished application profile and mark onboarding complete.

        The CHECK constraint ``ck_complete_has_app_profile`` enforces that a
        completed row always carries its application profile.
        """
        row = await self.get_or_create(db, user_id)
        now = utcnow()
        row.app_profile = dict(app_profile)
        row.onboarding_complete = True
        row.completed_at = now
        row.updated_at = now
        await db.flush()
        return row

    async def delete_by_user(self, db: AsyncSession, user_id: str) -> int:
        """Delete the user's row.  Returns the number of rows removed."""
        stmt = delete(OnboardingProgress).where(OnboardingProgress.user_id == user_id)
        result = await db.execute(stmt)
        await db.flush()
        return result.rowcount or 0
