"""Create onboarding_progress table.

One row per user holding the collected profile, the last saved position,
and the application profile written on completion.

Revision ID: 20261017_progress
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID

# revision identifiers, used by Alembic.
revision = "20261017_progress"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "onboarding_progress",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", sa.Text, nullable=False),
        # Collected profile and position
        sa.Column(
            "profile",
            JSONB,
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "flow_state",
            JSONB,
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        # Completion
        sa.Column("app_profile", JSONB, nullable=True),
        sa.Column(
            "onboarding_complete",
            sa.Boolean,
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", TIMESTAMP(timezone=True), nullable=False),
        sa.Column("completed_at", TIMESTAMP(timezone=True), nullable=True),
        sa.UniqueConstraint("user_id", name="uq_onboarding_progress_user_id"),
        sa.CheckConstraint(
            "NOT onboarding_complete OR app_profile IS NOT NULL",
            name="ck_complete_has_app_profile",
        ),
    )

    op.create_index(
        "ix_onboarding_complete",
        "onboarding_progress",
        ["onboarding_complete"],
        postgresql_where=sa.text("onboarding_complete"),
    )


def downgrade() -> None:
    op.drop_index("ix_onboarding_complete", table_name="onboarding_progress")
    op.drop_table("onboarding_progress")
