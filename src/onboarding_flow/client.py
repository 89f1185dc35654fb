"""SessionClient — thin httpx wrapper for the remote questionnaire session API.

Every call maps transport and HTTP failures onto the engine's error taxonomy:

  | Condition                               | Raised            |
  |-----------------------------------------|-------------------|
  | connect error, timeout, other transport | NetworkFailure    |
  | HTTP 5xx                                | NetworkFailure    |
  | HTTP 404                                | NotFound          |
  | HTTP 409                                | AlreadyAttached   |
  | any other HTTP 4xx                      | ServerRejected    |

The injected ``httpx.AsyncClient`` owns the base URL, timeouts, and bearer
token; this class never touches credentials.

``create_session`` is the only non-idempotent call.  It is never retried
here, and callers must check for a locally stored handle before calling it.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from onboarding_flow.errors import (
    AlreadyAttached,
    NetworkFailure,
    NotFound,
    ServerRejected,
)
from onboarding_flow.models.draft import DraftRecord, Profile

logger = logging.getLogger(__name__)

SESSIONS_PATH = "/questionnaire/sessions"
PROFILE_PATH = "/profile"


class SessionClient:
    """Remote session operations: create, push, pull, attach, profile.

    Args:
        http: configured ``httpx.AsyncClient`` (base URL includes the API
              prefix, e.g. ``https://api.example.com/api/v1``)
    """

    def __init__(self, http: httpx.AsyncClient) -> None:
        self._http = http

    @classmethod
    def from_settings(cls, settings, *, headers: dict[str, str] | None = None) -> SessionClient:
        """Build a client from :class:`~onboarding_flow.config.ClientSettings`."""
        http = httpx.AsyncClient(
            base_url=settings.api_base_url,
            timeout=settings.http_timeout,
            headers=headers,
        )
        return cls(http)

    async def aclose(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Session API
    # ------------------------------------------------------------------

    async def create_session(self, seed: dict[str, Any] | None = None) -> str:
        """Create an anonymous session seeded with ``seed``; return its UUID."""
        data = await self._request("POST", SESSIONS_PATH, json={"payload": seed or {}})
        handle = data.get("session_uuid") if isinstance(data, dict) else None
        if not handle:
            raise ServerRejected(200, "create-session response has no session_uuid")
        logger.info("Created questionnaire session %s", handle)
        return str(handle)

    async def push_draft(
        self,
        handle: str,
        answers: dict[str, Any],
        *,
        completed: bool | None = None,
    ) -> None:
        """Replace the remote draft with the full ``answers`` set."""
        body: dict[str, Any] = {"payload": answers}
        if completed is not None:
            body["completed"] = completed
        await self._request("PUT", f"{SESSIONS_PATH}/{handle}", json=body)

    async def pull_draft(self, handle: str) -> DraftRecord:
        """Fetch the remote draft for ``handle``."""
        data = await self._request("GET", f"{SESSIONS_PATH}/{handle}")
        try:
            return DraftRecord(
                session_uuid=data.get("session_uuid", handle),
                answers=data.get("payload") or {},
                completed=bool(data.get("completed", False)),
                **({"updated_at": data["updated_at"]} if data.get("updated_at") else {}),
            )
        except (AttributeError, ValidationError) as exc:
            raise ServerRejected(200, f"malformed draft response: {exc}") from exc

    async def attach(self, handle: str) -> Profile | None:
        """Attach ``handle`` to the authenticated caller's account."""
        data = await self._request("POST", f"{SESSIONS_PATH}/{handle}/attach", json={})
        return self._parse_profile(data)

    async def fetch_profile(self) -> Profile | None:
        """Return the authenticated caller's profile, or None if none exists."""
        try:
            data = await self._request("GET", PROFILE_PATH)
        except NotFound:
            return None
        return self._parse_profile(data)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            resp = await self._http.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise NetworkFailure(f"{method} {path} timed out") from exc
        except httpx.HTTPError as exc:
            # Transport errors plus DecodingError and other RequestErrors
            raise NetworkFailure(f"{method} {path} failed: {exc}") from exc
        except (TypeError, ValueError) as exc:
            # json= body with values the encoder cannot serialise
            raise ServerRejected(400, f"request body could not be encoded: {exc}") from exc

        status = resp.status_code
        if status >= 500:
            raise NetworkFailure(f"{method} {path} returned {status}")
        if status == 404:
            raise NotFound(f"{method} {path} returned 404")
        if status == 409:
            raise AlreadyAttached(self._detail(resp))
        if status >= 400:
            raise ServerRejected(status, self._detail(resp))

        if status == 204 or not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as exc:
            raise ServerRejected(status, "response body is not JSON") from exc

    @staticmethod
    def _detail(resp: httpx.Response) -> str | None:
        try:
            body = resp.json()
        except ValueError:
            return resp.text or None
        if isinstance(body, dict):
            return body.get("detail")
        return None

    @staticmethod
    def _parse_profile(data: Any) -> Profile | None:
        if not data:
            return None
        try:
            return Profile.model_validate(data)
        except ValidationError as exc:
            raise ServerRejected(200, f"malformed profile response: {exc}") from exc
