"""DraftStore — local durable persistence of the in-progress questionnaire.

Holds three values under fixed keys (see ``constants``): the session handle,
the serialized draft, and the attach-pending flag.  Writes are last-write-
wins: ``save`` replaces the stored answer set with the full set it is given,
no field-level merge is attempted.

Decoding is tolerant because the keys carry no schema version:

  - unknown fields are ignored, missing fields take their defaults
  - a bare answers object (older drafts) is accepted as the answer set
  - undecodable values are logged and treated as absent

Every backend failure is re-raised as :class:`StorageFailure` so callers can
retry or continue memory-only without crashing the flow.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from onboarding_flow.constants import ATTACH_PENDING_KEY, DRAFT_KEY, SESSION_UUID_KEY
from onboarding_flow.errors import StorageFailure
from onboarding_flow.interfaces import KeyValueBackend
from onboarding_flow.models.draft import DraftRecord

logger = logging.getLogger(__name__)

# Fields that identify a wrapped DraftRecord rather than a bare answers dict.
_RECORD_FIELDS = {"answers", "updated_at", "completed"}


class MemoryBackend(KeyValueBackend):
    """Process-local backend (memory-only mode and tests)."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value

    async def delete(self, key: str) -> None:
        self.data.pop(key, None)


class DraftStore:
    """Typed access to the locally persisted draft, handle, and attach flag.

    Args:
        backend: any :class:`KeyValueBackend` implementation
    """

    def __init__(self, backend: KeyValueBackend) -> None:
        self._backend = backend

    # ------------------------------------------------------------------
    # Draft
    # ------------------------------------------------------------------

    async def load(self) -> DraftRecord | None:
        """Return the stored draft, or None when there is none."""
        raw = await self._get(DRAFT_KEY)
        handle = await self.get_session_handle()
        if raw is None:
            return None

        record = self._decode_draft(raw)
        if record is None:
            return None
        if handle is not None:
            record.session_uuid = handle
        return record

    async def save(self, answers: dict[str, Any], *, completed: bool = False) -> DraftRecord:
        """Replace the stored answer set with ``answers`` (last write wins)."""
        record = DraftRecord(
            answers=dict(answers),
            updated_at=datetime.now(timezone.utc),
            completed=completed,
        )
        # Handle is stored under its own key; keep it out of the draft blob
        await self._set(DRAFT_KEY, record.model_dump_json(exclude={"session_uuid"}))
        record.session_uuid = await self.get_session_handle()
        return record

    async def mark_completed(self) -> None:
        """Flag the stored draft as completed so hydration ignores it."""
        record = await self.load()
        if record is None:
            return
        await self.save(record.answers, completed=True)

    # ------------------------------------------------------------------
    # Session handle
    # ------------------------------------------------------------------

    async def get_session_handle(self) -> str | None:
        raw = await self._get(SESSION_UUID_KEY)
        if raw is None or not raw.strip():
            return None
        return raw.strip()

    async def set_session_handle(self, handle: str | None) -> None:
        """Persist the session handle; ``None`` forgets it."""
        if handle is None:
            await self._delete(SESSION_UUID_KEY)
        else:
            await self._set(SESSION_UUID_KEY, handle)

    # ------------------------------------------------------------------
    # Attach status
    # ------------------------------------------------------------------

    async def is_attach_pending(self) -> bool:
        raw = await self._get(ATTACH_PENDING_KEY)
        if raw is None:
            return False
        return raw.strip().lower() in ("true", "1", "yes")

    async def set_attach_pending(self, pending: bool) -> None:
        if pending:
            await self._set(ATTACH_PENDING_KEY, "true")
        else:
            await self._delete(ATTACH_PENDING_KEY)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _decode_draft(raw: str) -> DraftRecord | None:
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Ignoring undecodable local draft (%d bytes)", len(raw))
            return None

        if not isinstance(payload, dict):
            logger.warning("Ignoring local draft of type %s", type(payload).__name__)
            return None

        # Older drafts stored the bare answers object
        if not _RECORD_FIELDS & payload.keys():
            return DraftRecord(answers=payload)

        try:
            record = DraftRecord.model_validate(payload)
        except ValidationError as exc:
            logger.warning("Local draft failed validation, keeping answers only: %s", exc)
            answers = payload.get("answers")
            if not isinstance(answers, dict):
                return None
            return DraftRecord(answers=answers)
        return record

    async def _get(self, key: str) -> str | None:
        try:
            return await self._backend.get(key)
        except Exception as exc:
            raise StorageFailure(f"Failed to read {key}: {exc}") from exc

    async def _set(self, key: str, value: str) -> None:
        try:
            await self._backend.set(key, value)
        except Exception as exc:
            raise StorageFailure(f"Failed to write {key}: {exc}") from exc

    async def _delete(self, key: str) -> None:
        try:
            await self._backend.delete(key)
        except Exception as exc:
            raise StorageFailure(f"Failed to delete {key}: {exc}") from exc
