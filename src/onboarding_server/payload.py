"""Payload normalisation applied when a session is attached to an account.

Older clients stored the height in metres (``1.7`` rather than ``170``) and
sent numeric strings or floats for integer metrics; the profile always
holds centimetres and integers.  The email lives on the account, not in the
profile, so it is dropped.
"""

import logging
from typing import Any

logger = logging.getLogger(__name__)

# Answers that are stored as whole numbers in the profile.
INTEGER_KEYS = ("weight_kg", "current_weekly_volume_km")

# Answers kept on the account rather than the profile.
ACCOUNT_KEYS = ("email",)

# Heights below this value are taken to be metres.
_METRES_THRESHOLD = 10


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def normalize_payload(payload: dict[str, Any]) -> dict[str, Any]:
    """Return a copy with height in centimetres and integer metrics."""
    result = dict(payload)

    height = _as_number(result.get("height_cm"))
    if height is not None:
        if height < _METRES_THRESHOLD:
            logger.debug("Converting height %.2f m to cm", height)
            height *= 100
        result["height_cm"] = int(round(height))

    for key in INTEGER_KEYS:
        number = _as_number(result.get(key))
        if number is not None:
            result[key] = int(number)
    return result


def prepare_for_attach(payload: dict[str, Any]) -> dict[str, Any]:
    """Normalise ``payload`` and strip account-level answers."""
    prepared = normalize_payload(payload)
    for key in ACCOUNT_KEYS:
        prepared.pop(key, None)
    return prepared
