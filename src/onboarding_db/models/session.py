"""QuestionnaireSession ORM model — one row per anonymous questionnaire run.

A session is created anonymously as soon as the first answers are synced and
is later bound to an account by the attach endpoint.  The whole answer set
lives in a single JSONB column and is replaced on every push (last write
wins), so a row is always a complete snapshot of the client's draft.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Index, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from onboarding_db.models.base import Base
from onboarding_db.models.enums import SessionStatus


class QuestionnaireSession(Base):
    """One row per questionnaire session (anonymous or attached)."""

    __tablename__ = "questionnaire_sessions"

    # --- Primary key ---
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # --- Identity ---
    # Opaque handle returned to the client; the only way to address a session
    session_uuid: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    # External user ID, set once on attach
    user_id: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)

    # --- Lifecycle ---
    status: Mapped[SessionStatus] = mapped_column(
        String(20),
        nullable=False,
        default=SessionStatus.ANONYMOUS,
        index=True,
    )
    completed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )

    # --- Answers ---
    # Flat dict keyed by step key: {"email": "...", "primary_goal": "...", ...}
    payload: Mapped[dict] = mapped_column(
        JSONB,
        nullable=False,
        server_default=text("'{}'::jsonb"),
    )

    # --- Timestamps ---
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    attached_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    __table_args__ = (
        # Attached sessions must record their owner
        CheckConstraint(
            "status != 'attached' OR user_id IS NOT NULL",
            name="ck_attached_has_user",
        ),
        # Orphan cleanup scans anonymous sessions by age
        Index(
            "ix_anonymous_updated_at",
            "updated_at",
            postgresql_where=text("status = 'anonymous'"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<QuestionnaireSession(uuid={self.session_uuid!r}, "
            f"user={self.user_id!r}, status={self.status!r}, "
            f"completed={self.completed})>"
        )
