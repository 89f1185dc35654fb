"""Global exception handlers — map service exceptions to HTTP status codes.

The session service raises ``ValueError`` for domain failures (unknown
session, already attached, incomplete questionnaire).  Rather than catching
these in every route, global handlers inspect the message and pick the
status code the client's error taxonomy expects.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

# --- Keyword patterns in ValueError messages and their HTTP status codes ---
# Checked in order; first match wins.
_VALUE_ERROR_PATTERNS: list[tuple[str, int]] = [
    # Attach replayed by the owner: the client treats 409 as success
    ("attached to this account", 409),
    # Session claimed by someone else
    ("another account", 403),
    # Update of an attached session
    ("already attached", 403),
    ("not found", 404),
    # Attach before every required step is answered
    ("incomplete", 422),
]


# --- Client-safe messages keyed by HTTP status code ---
# Session handles and user ids stay in the server log.
_SAFE_MESSAGES: dict[int, str] = {
    404: "Resource not found",
    409: "Session already attached",
    403: "Operation not permitted",
    422: "Questionnaire incomplete",
    400: "Invalid request",
}


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """Map service ``ValueError`` to a contextual HTTP error response.

    Only the reason before the first ":" is matched; service messages put
    caller-supplied identifiers after it.  Falls back to 400 for
    unrecognised messages.  The raw message is logged server-side but never
    sent to the client.
    """
    msg = str(exc)
    reason = msg.partition(":")[0].lower()
    status = 400
    for pattern, code in _VALUE_ERROR_PATTERNS:
        if pattern in reason:
            status = code
            break

    logger.warning("ValueError [%d] at %s: %s", status, request.url, msg)
    safe_detail = _SAFE_MESSAGES.get(status, "Invalid request")
    return JSONResponse(status_code=status, content={"detail": safe_detail})


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions — log full traceback, return 500."""
    logger.exception("Unhandled exception at %s", request.url)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )
