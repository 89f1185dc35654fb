"""Client configuration — reads settings from environment variables.

All settings have sensible defaults for local development.  Host
applications usually call :func:`load_settings` once and pass the result to
:class:`~onboarding_flow.run.QuestionnaireRun` and
:meth:`~onboarding_flow.client.SessionClient.from_settings`.
"""

import os
from dataclasses import dataclass

from onboarding_flow.constants import (
    DEFAULT_DEBOUNCE_SECONDS,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_BASE_DELAY,
    DEFAULT_RETRY_MAX_DELAY,
)


@dataclass(frozen=True)
class ClientSettings:
    """Immutable client configuration read from environment at startup."""

    # Remote session API (including the version prefix)
    api_base_url: str = "http://localhost:8080/api/v1"
    # Per-request timeout handed to httpx; expiry surfaces as NetworkFailure
    http_timeout: float = 10.0

    # Autosave timing
    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    retry_base_delay: float = DEFAULT_RETRY_BASE_DELAY
    retry_max_delay: float = DEFAULT_RETRY_MAX_DELAY

    # Local draft database (SQLite via aiosqlite)
    local_db_url: str = "sqlite+aiosqlite:///onboarding_local.db"

    # Questionnaire definition (None → bundled YAML)
    definition_path: str | None = None


def load_settings() -> ClientSettings:
    """Build settings from ``ONBOARDING_*`` environment variables."""
    return ClientSettings(
        api_base_url=os.getenv("ONBOARDING_API_BASE_URL", "http://localhost:8080/api/v1"),
        http_timeout=float(os.getenv("ONBOARDING_HTTP_TIMEOUT", "10")),
        debounce_seconds=DEFAULT_DEBOUNCE_SECONDS,
        retry_attempts=DEFAULT_RETRY_ATTEMPTS,
        retry_base_delay=DEFAULT_RETRY_BASE_DELAY,
        retry_max_delay=DEFAULT_RETRY_MAX_DELAY,
        local_db_url=os.getenv("ONBOARDING_LOCAL_DB", "sqlite+aiosqlite:///onboarding_local.db"),
        definition_path=os.getenv("ONBOARDING_DEFINITION_PATH") or None,
    )
