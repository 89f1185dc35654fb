"""AttachOrchestrator — binds the anonymous session to a newly signed-in account.

Call :meth:`AttachOrchestrator.on_authenticated` once per login or
registration.  Outcomes:

  | Situation                                   | Outcome           | Pending flag |
  |---------------------------------------------|-------------------|--------------|
  | no handle, or attach not pending            | SKIPPED           | unchanged    |
  | attach succeeded                            | ATTACHED          | cleared      |
  | server says already attached (409)          | ALREADY_ATTACHED  | cleared      |
  | session unknown remotely (404)              | EXPIRED           | cleared      |
  | network / rejection / local storage failure | FAILED            | kept         |

The session handle is left in place after a successful attach.  Failures are
logged and reported as an outcome, never raised; the next authentication
event retries.
"""

from __future__ import annotations

import enum
import logging

from onboarding_flow.client import SessionClient
from onboarding_flow.draft_store import DraftStore
from onboarding_flow.errors import (
    AlreadyAttached,
    NotFound,
    SessionSyncError,
    StorageFailure,
)
from onboarding_flow.models.draft import Profile

logger = logging.getLogger(__name__)


class AttachOutcome(str, enum.Enum):
    SKIPPED = "skipped"
    ATTACHED = "attached"
    ALREADY_ATTACHED = "already_attached"
    EXPIRED = "expired"
    FAILED = "failed"


class AttachOrchestrator:
    """One attach attempt per authentication event."""

    def __init__(self, store: DraftStore, client: SessionClient) -> None:
        self._store = store
        self._client = client
        self._seen_events: set[str] = set()
        self._running = False
        # Profile returned by the last successful attach
        self.profile: Profile | None = None

    async def on_authenticated(self, event_id: str | None = None) -> AttachOutcome:
        """Attach the stored session if one is pending.

        Args:
            event_id: identifier of the authentication event; a repeated id
                      is a no-op
        """
        if event_id is not None and event_id in self._seen_events:
            logger.debug("Authentication event %s already handled", event_id)
            return AttachOutcome.SKIPPED
        if self._running:
            logger.debug("Attach already in progress; ignoring concurrent event")
            return AttachOutcome.SKIPPED

        if event_id is not None:
            self._seen_events.add(event_id)
        self._running = True
        try:
            return await self._attach()
        finally:
            self._running = False

    async def _attach(self) -> AttachOutcome:
        try:
            handle = await self._store.get_session_handle()
            pending = await self._store.is_attach_pending()
        except StorageFailure as exc:
            logger.warning("Cannot read attach state: %s", exc)
            return AttachOutcome.FAILED

        if handle is None or not pending:
            return AttachOutcome.SKIPPED

        try:
            self.profile = await self._client.attach(handle)
            outcome = AttachOutcome.ATTACHED
        except AlreadyAttached:
            logger.info("Session %s was already attached", handle)
            outcome = AttachOutcome.ALREADY_ATTACHED
        except NotFound:
            logger.info("Session %s no longer exists remotely; nothing to attach", handle)
            outcome = AttachOutcome.EXPIRED
        except SessionSyncError as exc:
            logger.warning("Attach of session %s failed, will retry on next login: %s", handle, exc)
            return AttachOutcome.FAILED

        try:
            await self._store.set_attach_pending(False)
        except StorageFailure as exc:
            logger.warning("Attached session %s but could not clear pending flag: %s", handle, exc)
            return AttachOutcome.FAILED

        if outcome is AttachOutcome.ATTACHED:
            logger.info("Attached session %s", handle)
        return outcome
