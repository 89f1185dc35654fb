"""Onboarding constants shared across the SDK.

These values are referenced by the draft store, autosave coordinator, and
hydration resolver.  Storage keys live in a single process-wide namespace
and carry no version field; decoders must stay tolerant.

Timing constants can be overridden via environment variables so that
deployments can tune network chatter without code changes.
"""

import os

# Local persisted keys (storage-engine agnostic).
SESSION_UUID_KEY = "questionnaire.session_uuid"
DRAFT_KEY = "questionnaire.draft"
ATTACH_PENDING_KEY = "questionnaire.attach_pending"

# Debounce window applied to remote sync only; local saves are write-through.
# Overridable via ONBOARDING_DEBOUNCE_MS env var.
DEFAULT_DEBOUNCE_SECONDS = int(os.getenv("ONBOARDING_DEBOUNCE_MS", "500")) / 1000

# Bounded retry after a failed push: one retry by default, exponential backoff.
DEFAULT_RETRY_ATTEMPTS = int(os.getenv("ONBOARDING_RETRY_ATTEMPTS", "1"))
DEFAULT_RETRY_BASE_DELAY = float(os.getenv("ONBOARDING_RETRY_BASE_DELAY", "2.0"))
DEFAULT_RETRY_MAX_DELAY = float(os.getenv("ONBOARDING_RETRY_MAX_DELAY", "30.0"))

# Input types whose answers are plain calendar dates (YYYY-MM-DD).
DATE_INPUT_TYPES: set[str] = {"date"}

# Input types that render a list of options.
OPTION_INPUT_TYPES: set[str] = {"radio", "checkbox"}
