"""HydrationResolver — picks the answer set a run starts from.

Precedence:
  1. the authenticated user's completed server-side profile (ground truth)
  2. the local draft, when present, non-empty and not completed
  3. an empty answer set

Date-shaped values are normalised to ``YYYY-MM-DD`` so date pickers can
consume them directly.  Profile and storage failures are logged and fall
through to the next source.
"""

from __future__ import annotations

import enum
import logging
from datetime import date, datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from onboarding_flow.constants import DATE_INPUT_TYPES
from onboarding_flow.draft_store import DraftStore
from onboarding_flow.errors import SessionSyncError, StorageFailure
from onboarding_flow.graph import StepGraph
from onboarding_flow.interfaces import AuthStateProvider
from onboarding_flow.models.draft import Profile

logger = logging.getLogger(__name__)


class HydrationSource(str, enum.Enum):
    PROFILE = "profile"
    DRAFT = "draft"
    EMPTY = "empty"


class HydrationResult(BaseModel):
    answers: dict[str, Any] = Field(default_factory=dict)
    source: HydrationSource = HydrationSource.EMPTY
    session_uuid: str | None = None


def to_date_string(value: Any) -> Any:
    """Return ``value`` as ``YYYY-MM-DD`` if it is date-shaped, else unchanged.

    Aware datetimes are converted to UTC before the date is taken.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return value


def _parse_iso(value: str) -> datetime | None:
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


class HydrationResolver:
    """Resolves the starting answer set for a questionnaire run."""

    def __init__(self, graph: StepGraph, store: DraftStore, auth: AuthStateProvider) -> None:
        self._graph = graph
        self._store = store
        self._auth = auth
        self._date_keys = graph.definition.keys_of_type(*DATE_INPUT_TYPES)

    async def resolve(self) -> HydrationResult:
        profile = await self._completed_profile()
        if profile is not None:
            logger.info("Hydrating from completed profile")
            return HydrationResult(
                answers=self.normalize(profile.data),
                source=HydrationSource.PROFILE,
            )

        try:
            record = await self._store.load()
        except StorageFailure as exc:
            logger.warning("Local draft unreadable, starting empty: %s", exc)
            record = None

        if record is not None and record.answers and not record.completed:
            logger.info("Hydrating from local draft (%d answers)", len(record.answers))
            return HydrationResult(
                answers=self.normalize(record.answers),
                source=HydrationSource.DRAFT,
                session_uuid=record.session_uuid,
            )
        return HydrationResult()

    def normalize(self, answers: dict[str, Any]) -> dict[str, Any]:
        """Normalise date-shaped values and drop answers off the current path."""
        result: dict[str, Any] = {}
        for key, value in answers.items():
            if isinstance(value, list):
                value = [to_date_string(v) for v in value]
            elif isinstance(value, str) and key in self._date_keys:
                parsed = _parse_iso(value)
                if parsed is not None:
                    value = to_date_string(parsed)
            else:
                value = to_date_string(value)
            result[key] = value
        return self._graph.prune(result)

    async def _completed_profile(self) -> Profile | None:
        try:
            if not await self._auth.is_authenticated():
                return None
            profile = await self._auth.get_profile()
        except SessionSyncError as exc:
            logger.warning("Profile unavailable, falling back to local draft: %s", exc)
            return None
        if profile is None or not profile.questionnaire_completed:
            return None
        return profile
