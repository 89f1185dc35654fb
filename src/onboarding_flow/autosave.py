"""AutosaveCoordinator — debounced remote sync on top of write-through local saves.

Every edit is written to the Draft Store immediately; only the remote push is
debounced.  The coordinator is a small state machine (see
:class:`~onboarding_flow.models.draft.SyncState`)::

    IDLE/ERROR --edit--> DEBOUNCING --window expires--> SYNCING
    SYNCING --ok--> IDLE            SYNCING --failure--> ERROR
    SYNCING --edit arrived meanwhile--> DEBOUNCING

At most one sync is in flight.  A new edit replaces the pending debounce (or
retry) timer but never cancels an in-flight sync; it is buffered and
re-triggers the window once the sync resolves.

Failure handling per sync:

  - NetworkFailure:  ERROR, bounded retry with exponential backoff; once the
                     retry budget is spent ``status.notice`` is raised
  - ServerRejected:  ERROR, no automatic retry (next edit tries again)
  - NotFound:        the remote session expired; forget the handle and
                     recreate it from the full local answer set in the same
                     cycle
  - StorageFailure:  ``status.storage_degraded``; answers stay in memory and
                     the local save is retried at the next sync
  - anything else:   logged with traceback, ERROR without automatic retry

No session is created while every answer is still empty; the run stays
local-only until the first real answer so blank edits leave no orphans.

The local save is never rolled back.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from onboarding_flow.client import SessionClient
from onboarding_flow.constants import (
    DEFAULT_DEBOUNCE_SECONDS,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_BASE_DELAY,
    DEFAULT_RETRY_MAX_DELAY,
)
from onboarding_flow.draft_store import DraftStore
from onboarding_flow.errors import (
    NetworkFailure,
    NotFound,
    SessionSyncError,
    StorageFailure,
)
from onboarding_flow.evaluator import is_empty
from onboarding_flow.models.draft import SyncState, SyncStatus
from onboarding_flow.scheduler import AsyncioScheduler, Scheduler, TimerHandle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry with exponential backoff for failed pushes."""

    attempts: int = DEFAULT_RETRY_ATTEMPTS
    base_delay: float = DEFAULT_RETRY_BASE_DELAY
    max_delay: float = DEFAULT_RETRY_MAX_DELAY
    multiplier: float = 2.0

    def delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-indexed)."""
        return min(self.base_delay * (self.multiplier ** (attempt - 1)), self.max_delay)


class AutosaveCoordinator:
    """Coalesces answer edits into remote pushes.

    Args:
        store: local Draft Store (write-through target)
        client: remote Session Client
        scheduler: timer/task seam; defaults to the running event loop
        debounce_seconds: quiet period before a push
        retry: bounded retry policy for network failures
    """

    def __init__(
        self,
        store: DraftStore,
        client: SessionClient,
        *,
        scheduler: Scheduler | None = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        retry: RetryPolicy | None = None,
    ) -> None:
        self._store = store
        self._client = client
        self._scheduler = scheduler or AsyncioScheduler()
        self._debounce = debounce_seconds
        self._retry = retry or RetryPolicy()

        self._status = SyncStatus()
        self._latest: dict[str, Any] | None = None
        self._pending = False       # latest answers not yet pushed
        self._buffered = False      # edit arrived while SYNCING
        self._attempt = 0           # retries used for the current content
        self._timer: TimerHandle | None = None
        self._inflight: asyncio.Task | None = None
        self._handle: str | None = None
        self._closed = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def status(self) -> SyncStatus:
        return self._status.model_copy()

    @property
    def state(self) -> SyncState:
        return self._status.state

    @property
    def session_uuid(self) -> str | None:
        return self._handle

    async def start(self, session_uuid: str | None = None) -> None:
        """Adopt an existing session handle (from hydration or the store)."""
        handle = session_uuid
        if handle is None:
            try:
                handle = await self._store.get_session_handle()
            except StorageFailure as exc:
                self._mark_degraded(exc)
        self._handle = handle
        self._status.local_only = handle is None

    async def record_edit(self, answers: dict[str, Any]) -> None:
        """Persist ``answers`` locally and (re)start the debounce window."""
        if self._closed:
            raise RuntimeError("AutosaveCoordinator has been disposed")

        self._latest = dict(answers)
        self._pending = True
        await self._save_locally(self._latest)

        if self._status.state == SyncState.SYNCING:
            self._buffered = True
            return
        self._attempt = 0
        self._start_window()

    async def flush(self) -> None:
        """Push pending edits now instead of waiting for the window."""
        self._cancel_timer()
        task = self._inflight
        if task is not None:
            await task
        self._cancel_timer()
        self._buffered = False
        if self._pending and self._latest is not None and not self._closed:
            task = self._scheduler.spawn(self._run_sync())
            self._inflight = task
            await task

    async def dispose(self) -> None:
        """Flush pending edits, wait for the in-flight sync, and stop timers."""
        if self._closed:
            return
        await self.flush()
        self._closed = True
        self._cancel_timer()
        task = self._inflight
        if task is not None:
            await task

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _start_window(self) -> None:
        self._cancel_timer()
        self._set_state(SyncState.DEBOUNCING)
        self._timer = self._scheduler.call_later(self._debounce, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        if self._closed:
            return
        if self._inflight is not None:
            self._buffered = True
            return
        self._inflight = self._scheduler.spawn(self._run_sync())

    async def _run_sync(self) -> None:
        try:
            await self._sync()
        finally:
            self._inflight = None
            if self._status.state == SyncState.SYNCING:
                # Sync was cancelled mid-flight
                self._pending = True
                self._set_state(SyncState.ERROR)
            if self._buffered and not self._closed:
                self._buffered = False
                self._attempt = 0
                self._start_window()

    async def _sync(self) -> None:
        self._set_state(SyncState.SYNCING)
        answers = dict(self._latest or {})
        self._pending = False
        try:
            if self._status.storage_degraded:
                await self._save_locally(answers)
            await self._push(answers)
        except NetworkFailure as exc:
            self._fail(exc, retry=True)
        except SessionSyncError as exc:
            self._fail(exc, retry=False)
        except Exception as exc:
            logger.exception("Unexpected autosave failure")
            self._fail(exc, retry=False)
        else:
            self._status.consecutive_failures = 0
            self._status.last_error = None
            self._status.notice = False
            self._status.last_synced_at = datetime.now(timezone.utc)
            self._attempt = 0
            self._set_state(SyncState.IDLE)

    async def _push(self, answers: dict[str, Any]) -> None:
        handle = await self._ensure_session(answers)
        if handle is None:
            return
        try:
            await self._client.push_draft(handle, answers)
        except NotFound:
            logger.warning("Remote session %s not found; recreating from local draft", handle)
            await self._forget_session()
            handle = await self._ensure_session(answers)
            if handle is not None:
                await self._client.push_draft(handle, answers)

    async def _ensure_session(self, answers: dict[str, Any]) -> str | None:
        if self._handle is None:
            try:
                self._handle = await self._store.get_session_handle()
            except StorageFailure as exc:
                self._mark_degraded(exc)
        if self._handle is not None:
            self._status.local_only = False
            return self._handle

        if all(is_empty(value) for value in answers.values()):
            logger.debug("No answers yet, staying local-only")
            return None

        # Seed with everything accumulated while local-only
        handle = await self._client.create_session(answers)
        self._handle = handle
        self._status.local_only = False
        try:
            await self._store.set_session_handle(handle)
            await self._store.set_attach_pending(True)
        except StorageFailure as exc:
            self._mark_degraded(exc)
        return handle

    async def _forget_session(self) -> None:
        self._handle = None
        self._status.local_only = True
        try:
            await self._store.set_session_handle(None)
            await self._store.set_attach_pending(False)
        except StorageFailure as exc:
            self._mark_degraded(exc)

    def _fail(self, exc: Exception, *, retry: bool) -> None:
        self._pending = True
        self._status.consecutive_failures += 1
        self._status.last_error = str(exc)
        self._set_state(SyncState.ERROR)

        if not retry:
            logger.warning("Autosave rejected, waiting for next edit: %s", exc)
            return
        if self._attempt < self._retry.attempts and not self._closed:
            self._attempt += 1
            delay = self._retry.delay(self._attempt)
            logger.info(
                "Autosave failed (%s); retry %d/%d in %.1fs",
                exc, self._attempt, self._retry.attempts, delay,
            )
            self._cancel_timer()
            self._timer = self._scheduler.call_later(delay, self._on_timer)
        else:
            logger.warning("Autosave retries exhausted: %s", exc)
            self._status.notice = True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _save_locally(self, answers: dict[str, Any]) -> None:
        try:
            await self._store.save(answers)
        except StorageFailure as exc:
            self._mark_degraded(exc)
            return
        if self._status.storage_degraded:
            logger.info("Local draft storage recovered")
            self._status.storage_degraded = False

    def _mark_degraded(self, exc: StorageFailure) -> None:
        if not self._status.storage_degraded:
            logger.warning("Local draft storage unavailable, keeping answers in memory: %s", exc)
        self._status.storage_degraded = True

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _set_state(self, state: SyncState) -> None:
        if state != self._status.state:
            logger.debug("Autosave %s -> %s", self._status.state.value, state.value)
        self._status.state = state
