"""OnboardingProgress ORM model — one row per user.

The whole onboarding state lives in JSONB columns so a run can be resumed
(profile data) or inspected from a single row without JOINs.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Index, Text, text
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from onboarding_db.models.base import Base, TimestampMixin


class OnboardingProgress(TimestampMixin, Base):
    """Stored onboarding progress for one user."""

    __tablename__ = "onboarding_progress"

    # --- Primary key ---
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # --- Identity ---
    # External user ID (auth UID); one progress row per user
    user_id: Mapped[str] = mapped_column(Text, nullable=False, unique=True)

    # --- Onboarding profile ---
    # {category: {field: value}} as collected by the flow
    profile: Mapped[dict] = mapped_column(
        JSONB,
        nullable=False,
        server_default=text("'{}'::jsonb"),
    )

    # --- Position ---
    # {current_section_index, current_question_index, completed_section_ids}
    # Saved for inspection; runs always restart at the first section.
    flow_state: Mapped[dict] = mapped_column(
        JSONB,
        nullable=False,
        server_default=text("'{}'::jsonb"),
    )

    # --- Application profile ---
    # Written once the outro is reached; null until then
    app_profile: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    onboarding_complete: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )

    # --- Timestamps (created_at / updated_at from TimestampMixin) ---
    completed_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    __table_args__ = (
        # Completed rows must carry the application profile
        CheckConstraint(
            "NOT onboarding_complete OR app_profile IS NOT NULL",
            name="ck_complete_has_app_profile",
        ),
        # Partial index for reporting on finished onboardings
        Index(
            "ix_onboarding_complete",
            "onboarding_complete",
            postgresql_where=text("onboarding_complete"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<OnboardingProgress(id={self.id!s}, user={self.user_id!r}, "
            f"complete={self.onboarding_complete!r})>"
        )
