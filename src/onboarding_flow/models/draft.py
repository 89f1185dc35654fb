"""Draft, profile, and sync-status models.

These models are the contract between the persistence/sync layers and the
run context.  They are intentionally decoupled from the ORM models in
``onboarding_db`` so that SDK callers never see database internals.

All models ignore unknown fields on input: the local store has no schema
version, so older or newer payloads must still decode.
"""

import enum
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DraftRecord(BaseModel):
    """In-progress answer set, local or remote.

    ``session_uuid`` is absent for drafts that were never synced.
    """

    model_config = ConfigDict(extra="ignore")

    session_uuid: str | None = None
    answers: dict[str, Any] = Field(default_factory=dict)
    updated_at: datetime = Field(default_factory=_utcnow)
    completed: bool = False


class Profile(BaseModel):
    """Authenticated user's server-side questionnaire profile."""

    model_config = ConfigDict(extra="ignore")

    questionnaire_completed: bool = False
    data: dict[str, Any] = Field(default_factory=dict)


class SyncState(str, enum.Enum):
    """Autosave coordinator states.

    Transitions:
        idle -> debouncing        (field edit)
        error -> debouncing       (field edit)
        debouncing -> debouncing  (field edit, window restarted)
        debouncing -> syncing     (window expired)
        syncing -> idle           (push succeeded, no buffered edit)
        syncing -> error          (push or session creation failed)
        syncing -> debouncing     (an edit arrived while syncing)
    """

    IDLE = "idle"
    DEBOUNCING = "debouncing"
    SYNCING = "syncing"
    ERROR = "error"


class SyncStatus(BaseModel):
    """Observable sync status for the UI (never a blocking error)."""

    state: SyncState = SyncState.IDLE
    # No remote session yet: answers accumulate locally only
    local_only: bool = True
    # Last local write failed; answers are held in memory until the next save
    storage_degraded: bool = False
    consecutive_failures: int = 0
    last_error: str | None = None
    last_synced_at: datetime | None = None
    # Retries exhausted: the UI may show a soft, dismissible notice
    notice: bool = False
