"""Async CRUD repositories for questionnaire sessions and user profiles.

All public methods accept an ``AsyncSession`` so the caller controls
transaction boundaries (the attach endpoint writes a profile and binds a
session in one transaction).

The repositories avoid business-logic validation; completeness checks and
payload normalisation belong in ``onboarding_server.service``.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding_db.models.enums import SessionStatus
from onboarding_db.models.profile import UserProfile
from onboarding_db.models.session import QuestionnaireSession


class SessionRepository:
    """Async read/write operations on the ``questionnaire_sessions`` table."""

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create(
        self,
        db: AsyncSession,
        *,
        payload: dict[str, Any] | None = None,
        session_uuid: str | None = None,
    ) -> QuestionnaireSession:
        """Insert a new anonymous session and return it.

        The caller must ``await db.commit()`` to persist.
        """
        session = QuestionnaireSession(
            session_uuid=session_uuid or str(uuid.uuid4()),
            payload=dict(payload or {}),
            status=SessionStatus.ANONYMOUS,
            completed=False,
        )
        db.add(session)
        await db.flush()
        return session

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_by_uuid(
        self, db: AsyncSession, session_uuid: str
    ) -> QuestionnaireSession | None:
        """Fetch a session by its client-facing handle."""
        stmt = select(QuestionnaireSession).where(
            QuestionnaireSession.session_uuid == session_uuid
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    async def replace_payload(
        self,
        db: AsyncSession,
        session: QuestionnaireSession,
        payload: dict[str, Any],
        *,
        completed: bool | None = None,
    ) -> QuestionnaireSession:
        """Replace the stored answer set wholesale (last write wins)."""
        session.payload = dict(payload)
        if completed is not None:
            session.completed = completed
        session.updated_at = datetime.now(timezone.utc)
        await db.flush()
        return session

    async def attach(
        self,
        db: AsyncSession,
        session: QuestionnaireSession,
        user_id: str,
    ) -> QuestionnaireSession:
        """Bind the session to ``user_id``.

        The CHECK constraint ``ck_attached_has_user`` enforces that attached
        rows carry an owner.
        """
        now = datetime.now(timezone.utc)
        session.user_id = user_id
        session.status = SessionStatus.ATTACHED
        session.attached_at = now
        session.updated_at = now
        await db.flush()
        return session

    # ------------------------------------------------------------------
    # Bulk maintenance
    # ------------------------------------------------------------------

    async def purge_orphans(self, db: AsyncSession, *, older_than_days: int) -> int:
        """Delete anonymous sessions not updated for ``older_than_days`` days.

        ``older_than_days=0`` deletes every anonymous session.  Returns the
        number of deleted rows.
        """
        stmt = delete(QuestionnaireSession).where(
            QuestionnaireSession.status == SessionStatus.ANONYMOUS
        )
        if older_than_days > 0:
            cutoff = datetime.now(timezone.utc) - timedelta(days=older_than_days)
            stmt = stmt.where(QuestionnaireSession.updated_at < cutoff)
        result = await db.execute(stmt)
        return result.rowcount or 0


class ProfileRepository:
    """Async read/write operations on the ``user_profiles`` table."""

    async def get_by_user(self, db: AsyncSession, user_id: str) -> UserProfile | None:
        return await db.get(UserProfile, user_id)

    async def upsert(
        self,
        db: AsyncSession,
        user_id: str,
        data: dict[str, Any],
        *,
        questionnaire_completed: bool,
    ) -> UserProfile:
        """Create or overwrite the profile for ``user_id``."""
        profile = await self.get_by_user(db, user_id)
        if profile is None:
            profile = UserProfile(user_id=user_id)
            db.add(profile)
        profile.data = dict(data)
        profile.questionnaire_completed = questionnaire_completed
        profile.updated_at = datetime.now(timezone.utc)
        await db.flush()
        return profile
