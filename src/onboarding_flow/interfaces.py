"""Abstract interfaces for the collaborators the engine consumes.

These ABCs define the contract that external implementations must fulfil.
The SDK ships an in-memory key-value backend and an SQLite-backed one (in
``onboarding_db.local_store``); authentication state always comes from the
host application.

Typical integration flow::

    store = DraftStore(SqlKeyValueBackend("sqlite+aiosqlite:///drafts.db"))
    auth: AuthStateProvider = MyAppAuthState(...)

    async with QuestionnaireRun(graph, store, client, auth) as run:
        await run.set_answer("email", "a@b.com")
        nxt = run.next_step()

    # after a successful login / registration
    await AttachOrchestrator(store, client).on_authenticated()
"""

from abc import ABC, abstractmethod

from onboarding_flow.models.draft import Profile


class KeyValueBackend(ABC):
    """Durable string key-value storage used by the Draft Store.

    Implementations may raise any exception on platform failure; the Draft
    Store converts them to :class:`~onboarding_flow.errors.StorageFailure`.
    """

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the stored string for ``key``, or None if absent."""
        ...

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key`` if present (no error if absent)."""
        ...


class AuthStateProvider(ABC):
    """Authentication state of the host application.

    Bearer-token handling lives in the host application; the engine only
    asks whether a user is signed in and for that user's profile.
    """

    @abstractmethod
    async def is_authenticated(self) -> bool:
        """True if a user is currently signed in."""
        ...

    @abstractmethod
    async def get_profile(self) -> Profile | None:
        """Return the signed-in user's questionnaire profile, if any.

        May raise :class:`~onboarding_flow.errors.SessionSyncError`
        subclasses on network failure; callers degrade gracefully.
        """
        ...
