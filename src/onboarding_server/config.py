"""Session server settings, read once from ``SERVER_*`` environment variables.

Defaults suit a local dev server: every origin allowed, the bundled
questionnaire, no proxy secret.  Database parameters live in
:mod:`onboarding_db.config`.
"""

import os
from dataclasses import dataclass, field

# Anonymous sessions idle longer than this are purged by ``onboarding-cleanup``
DEFAULT_CLEANUP_DAYS = int(os.getenv("DEFAULT_CLEANUP_DAYS", "30"))

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _split_origins(raw: str) -> list[str]:
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@dataclass(frozen=True)
class ServerSettings:
    host: str = "0.0.0.0"
    port: int = 8080
    # "*" allows any origin; browsers then refuse credentialed requests
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    # None loads the questionnaire bundled with onboarding_flow
    definition_path: str | None = None
    log_level: str = "INFO"
    # When set, X-User-ID is only trusted alongside a matching X-Proxy-Secret
    trusted_proxy_secret: str | None = None

    def __post_init__(self) -> None:
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(
                f"Unknown log level {self.log_level!r}; expected one of {', '.join(_LOG_LEVELS)}"
            )
        if not 0 < self.port < 65536:
            raise ValueError(f"Port out of range: {self.port}")


def load_settings() -> ServerSettings:
    """Build :class:`ServerSettings`; unset variables keep the class defaults."""
    overrides: dict = {}
    if "SERVER_HOST" in os.environ:
        overrides["host"] = os.environ["SERVER_HOST"]
    if "SERVER_PORT" in os.environ:
        overrides["port"] = int(os.environ["SERVER_PORT"])
    if "SERVER_CORS_ORIGINS" in os.environ:
        overrides["cors_origins"] = _split_origins(os.environ["SERVER_CORS_ORIGINS"])
    if "SERVER_LOG_LEVEL" in os.environ:
        overrides["log_level"] = os.environ["SERVER_LOG_LEVEL"].upper()
    overrides["definition_path"] = os.getenv("SERVER_DEFINITION_PATH") or None
    overrides["trusted_proxy_secret"] = os.getenv("TRUSTED_PROXY_SECRET") or None
    return ServerSettings(**overrides)
