"""Initial schema: questionnaire sessions and user profiles.

Creates ``questionnaire_sessions`` (anonymous drafts, later attached to an
account) and ``user_profiles`` (normalised answers per user).

Revision ID: 20261001_initial
Revises:
Create Date: 2026-10-01
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID

# revision identifiers, used by Alembic.
revision = "20261001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "questionnaire_sessions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("session_uuid", sa.Text(), nullable=False, unique=True),
        sa.Column("user_id", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("payload", JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", TIMESTAMP(timezone=True), nullable=False),
        sa.Column("attached_at", TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status != 'attached' OR user_id IS NOT NULL",
            name="ck_attached_has_user",
        ),
    )
    op.create_index("ix_questionnaire_sessions_user_id", "questionnaire_sessions", ["user_id"])
    op.create_index("ix_questionnaire_sessions_status", "questionnaire_sessions", ["status"])
    # Orphan cleanup scans anonymous sessions by age
    op.create_index(
        "ix_anonymous_updated_at",
        "questionnaire_sessions",
        ["updated_at"],
        postgresql_where=sa.text("status = 'anonymous'"),
    )

    op.create_table(
        "user_profiles",
        sa.Column("user_id", sa.Text(), primary_key=True),
        sa.Column("data", JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column(
            "questionnaire_completed",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", TIMESTAMP(timezone=True), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("user_profiles")
    op.drop_index("ix_anonymous_updated_at", table_name="questionnaire_sessions")
    op.drop_index("ix_questionnaire_sessions_status", table_name="questionnaire_sessions")
    op.drop_index("ix_questionnaire_sessions_user_id", table_name="questionnaire_sessions")
    op.drop_table("questionnaire_sessions")
