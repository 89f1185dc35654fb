"""Failure taxonomy for local persistence and remote session calls.

Every exception the Draft Store or Session Client raises derives from
:class:`SessionSyncError`.  None of them is meant to reach the UI: the
autosave coordinator, attach orchestrator, and hydration resolver catch them
and turn them into state transitions, flags, or outcomes.

  - StorageFailure:   local persistence unavailable (degrade to memory-only)
  - NetworkFailure:   remote unreachable, timed out, or 5xx (retry later)
  - ServerRejected:   remote validation/auth error (not retried automatically)
  - AlreadyAttached:  session already bound to this account (treated as success)
  - NotFound:         session expired or unknown remotely (fall back to local)
"""


class SessionSyncError(Exception):
    """Base class for draft persistence and session sync failures."""


class StorageFailure(SessionSyncError):
    """The local key-value store could not be read or written."""


class NetworkFailure(SessionSyncError):
    """The remote session service could not be reached."""


class ServerRejected(SessionSyncError):
    """The remote session service refused the request."""

    def __init__(self, status_code: int, detail: str | None = None) -> None:
        super().__init__(f"Server rejected request ({status_code}): {detail or 'no detail'}")
        self.status_code = status_code
        self.detail = detail


class AlreadyAttached(SessionSyncError):
    """The session is already attached to the caller's account."""


class NotFound(SessionSyncError):
    """The session (or profile) does not exist remotely."""
