"""QuestionnaireRun — one user's pass through the questionnaire.

Ties the pure Step Graph to the stateful pieces: hydration on start, the
autosave coordinator on every edit, and the final ``completed`` push.  A run
has a single owner (one UI surface); it is not safe to share between tasks.

Usage::

    async with await QuestionnaireRun.from_settings(auth, load_settings()) as run:
        await run.set_answer("email", "runner@example.com")
        step = run.next_step()
        ...
        await run.complete()
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from onboarding_flow.autosave import AutosaveCoordinator, RetryPolicy
from onboarding_flow.client import SessionClient
from onboarding_flow.config import ClientSettings, load_settings
from onboarding_flow.definition import QuestionnaireDefinition
from onboarding_flow.draft_store import DraftStore
from onboarding_flow.errors import SessionSyncError, StorageFailure
from onboarding_flow.graph import StepGraph, StepRef
from onboarding_flow.hydration import HydrationResolver, HydrationResult, HydrationSource
from onboarding_flow.interfaces import AuthStateProvider
from onboarding_flow.models.draft import SyncStatus
from onboarding_flow.models.step import Boundary, Step
from onboarding_flow.scheduler import Scheduler

logger = logging.getLogger(__name__)


class QuestionnaireRun:
    """Navigation, answers and sync status for a single questionnaire run."""

    def __init__(
        self,
        graph: StepGraph,
        store: DraftStore,
        client: SessionClient,
        auth: AuthStateProvider,
        *,
        scheduler: Scheduler | None = None,
        settings: ClientSettings | None = None,
    ) -> None:
        settings = settings or ClientSettings()
        self._graph = graph
        self._store = store
        self._client = client
        self._hydration = HydrationResolver(graph, store, auth)
        self._coordinator = AutosaveCoordinator(
            store,
            client,
            scheduler=scheduler,
            debounce_seconds=settings.debounce_seconds,
            retry=RetryPolicy(
                attempts=settings.retry_attempts,
                base_delay=settings.retry_base_delay,
                max_delay=settings.retry_max_delay,
            ),
        )
        self.answers: dict[str, Any] = {}
        self.current_step: int = graph.first_step_id
        self.source: HydrationSource | None = None
        # Resources opened by from_settings, released on dispose
        self._closers: list[Callable[[], Awaitable[None]]] = []

    @classmethod
    async def from_settings(
        cls,
        auth: AuthStateProvider,
        settings: ClientSettings | None = None,
        *,
        headers: dict[str, str] | None = None,
        scheduler: Scheduler | None = None,
    ) -> QuestionnaireRun:
        """Build a run whose store, client and definition come from ``settings``.

        Opens the SQLite draft store at ``settings.local_db_url``, loads the
        definition from ``settings.definition_path`` (bundled YAML when None)
        and creates an httpx-backed client.  The run owns these resources and
        releases them in :meth:`dispose`.
        """
        # Lazy import keeps the SDK importable without the DB package loaded
        from onboarding_db.local_store import SqlKeyValueBackend

        settings = settings or load_settings()
        graph = StepGraph(QuestionnaireDefinition(settings.definition_path).load())

        backend = SqlKeyValueBackend(settings.local_db_url)
        await backend.init()
        client = SessionClient.from_settings(settings, headers=headers)

        run = cls(
            graph,
            DraftStore(backend),
            client,
            auth,
            scheduler=scheduler,
            settings=settings,
        )
        run._closers = [client.aclose, backend.dispose]
        return run

    async def __aenter__(self) -> QuestionnaireRun:
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.dispose()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def init(self) -> HydrationResult:
        """Hydrate answers and position the run on its starting step."""
        result = await self._hydration.resolve()
        self.answers = dict(result.answers)
        self.source = result.source
        await self._coordinator.start(result.session_uuid)

        if result.source is HydrationSource.DRAFT:
            resume = self._graph.first_unanswered(self.answers)
            if resume == Boundary.TERMINAL:
                resume = self._graph.path(self.answers)[-1]
            self.current_step = resume
        else:
            self.current_step = self._graph.first_step_id
        logger.info("Run started from %s at step %s", result.source.value, self.current_step)
        return result

    async def dispose(self) -> None:
        try:
            await self._coordinator.dispose()
        finally:
            closers, self._closers = self._closers, []
            for close in closers:
                await close()

    async def complete(self) -> bool:
        """Finish the run: flush, mark the draft completed, push ``completed``.

        Returns True when the remote session acknowledged completion.

        Raises:
            ValueError: a required step on the path is unanswered
        """
        missing = self._graph.first_unanswered(self.answers)
        if missing != Boundary.TERMINAL:
            raise ValueError(f"Questionnaire is incomplete: step {missing} has no answer")

        await self._coordinator.flush()
        try:
            await self._store.mark_completed()
        except StorageFailure as exc:
            logger.warning("Could not mark local draft completed: %s", exc)

        handle = self._coordinator.session_uuid
        if handle is None:
            logger.info("Run completed locally only; no remote session exists")
            return False
        try:
            await self._client.push_draft(handle, self.answers, completed=True)
        except SessionSyncError as exc:
            logger.warning("Could not mark session %s completed: %s", handle, exc)
            return False
        return True

    # ------------------------------------------------------------------
    # Answers
    # ------------------------------------------------------------------

    async def set_answer(self, key: str, value: Any) -> None:
        """Record an answer (``None`` clears it) and schedule autosave."""
        if self._graph.definition.get_step_by_key(key) is None:
            raise ValueError(f"Unknown answer key: {key}")
        answers = dict(self.answers)
        if value is None:
            answers.pop(key, None)
        else:
            answers[key] = value
        self.answers = self._graph.prune(answers)
        await self._coordinator.record_edit(self.answers)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    @property
    def step(self) -> Step:
        return self._graph.step(self.current_step)

    @property
    def status(self) -> SyncStatus:
        return self._coordinator.status

    def progress(self) -> tuple[int, int]:
        return self._graph.progress(self.current_step, self.answers)

    def next_step(self) -> StepRef:
        """Advance; returns the new step id, or TERMINAL (position unchanged)."""
        nxt = self._graph.resolve_next(self.current_step, self.answers)
        if nxt != Boundary.TERMINAL:
            self.current_step = nxt
        return nxt

    def previous_step(self) -> StepRef:
        """Go back; returns the new step id, or START (position unchanged)."""
        prev = self._graph.resolve_previous(self.current_step, self.answers)
        if prev != Boundary.START:
            self.current_step = prev
        return prev

    def go_to(self, step_id: int) -> Step:
        """Jump to ``step_id`` (e.g. from a completed-steps list)."""
        step = self._graph.step(step_id)
        self.current_step = step.id
        return step
