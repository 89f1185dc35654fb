"""SessionService — business logic behind the questionnaire session endpoints.

Routes stay thin: they parse the request, call one service method and
return its result.  Domain failures are raised as ``ValueError`` with a
descriptive message; ``onboarding_server.errors`` maps the message to an
HTTP status code.

Every stored payload is pruned with the same :class:`StepGraph` the client
uses, so answers to steps that fell off the path never persist server side.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding_db.models.session import QuestionnaireSession
from onboarding_db.repository import ProfileRepository, SessionRepository
from onboarding_flow.graph import StepGraph
from onboarding_flow.models.draft import Profile

from onboarding_server.payload import normalize_payload, prepare_for_attach

logger = logging.getLogger(__name__)


class SessionView(BaseModel):
    """Public view of a questionnaire session."""

    session_uuid: str
    payload: dict[str, Any] = Field(default_factory=dict)
    completed: bool = False
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: QuestionnaireSession) -> SessionView:
        return cls(
            session_uuid=row.session_uuid,
            payload=dict(row.payload or {}),
            completed=bool(row.completed),
            updated_at=row.updated_at,
        )


class SessionService:
    """Create, update, attach and read questionnaire sessions.

    Args:
        graph: step graph used to prune payloads and check completeness
        sessions: session repository (injectable for tests)
        profiles: profile repository (injectable for tests)
    """

    def __init__(
        self,
        graph: StepGraph,
        sessions: SessionRepository | None = None,
        profiles: ProfileRepository | None = None,
    ) -> None:
        self._graph = graph
        self._sessions = sessions or SessionRepository()
        self._profiles = profiles or ProfileRepository()

    # ------------------------------------------------------------------
    # Anonymous session lifecycle
    # ------------------------------------------------------------------

    async def create_session(self, db: AsyncSession, payload: dict[str, Any]) -> SessionView:
        row = await self._sessions.create(db, payload=self._graph.prune(payload))
        logger.info("Created session %s (%d answers)", row.session_uuid, len(row.payload))
        return SessionView.from_row(row)

    async def get_session(self, db: AsyncSession, session_uuid: str) -> SessionView:
        return SessionView.from_row(await self._require(db, session_uuid))

    async def update_session(
        self,
        db: AsyncSession,
        session_uuid: str,
        payload: dict[str, Any],
        *,
        completed: bool | None = None,
    ) -> SessionView:
        """Replace the stored answers (last write wins)."""
        row = await self._require(db, session_uuid)
        if row.user_id is not None:
            raise ValueError(f"Session already attached, updates are not allowed: {session_uuid}")
        row = await self._sessions.replace_payload(
            db, row, self._graph.prune(payload), completed=completed,
        )
        return SessionView.from_row(row)

    # ------------------------------------------------------------------
    # Attach
    # ------------------------------------------------------------------

    async def attach_session(self, db: AsyncSession, session_uuid: str, user_id: str) -> Profile:
        """Copy a complete session into ``user_id``'s profile and bind it."""
        row = await self._require(db, session_uuid)
        if row.user_id == user_id:
            raise ValueError(f"Session attached to this account: {session_uuid}")
        if row.user_id is not None:
            raise ValueError(f"Session attached to another account: {session_uuid}")

        answers = self._graph.prune(normalize_payload(row.payload or {}))
        missing = self._graph.first_unanswered(answers)
        if not self._graph.is_complete(answers):
            raise ValueError(f"Questionnaire incomplete: step {missing} has no answer")

        data = prepare_for_attach(answers)
        profile = await self._profiles.upsert(db, user_id, data, questionnaire_completed=True)
        await self._sessions.replace_payload(db, row, answers, completed=True)
        await self._sessions.attach(db, row, user_id)
        logger.info("Attached session %s to user %s", session_uuid, user_id)
        return Profile(
            questionnaire_completed=profile.questionnaire_completed,
            data=dict(profile.data),
        )

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    async def get_profile(self, db: AsyncSession, user_id: str) -> Profile:
        profile = await self._profiles.get_by_user(db, user_id)
        if profile is None:
            raise ValueError(f"Profile not found: {user_id}")
        return Profile(
            questionnaire_completed=profile.questionnaire_completed,
            data=dict(profile.data or {}),
        )

    async def _require(self, db: AsyncSession, session_uuid: str) -> QuestionnaireSession:
        row = await self._sessions.get_by_uuid(db, session_uuid)
        if row is None:
            raise ValueError(f"Session not found: {session_uuid}")
        return row
