"""Database-level enumerations for questionnaire sessions."""

import enum


class SessionStatus(str, enum.Enum):
    """Ownership state of a questionnaire session.

    Transitions:
        anonymous -> attached  (signed-in user claimed the session)
    """

    ANONYMOUS = "anonymous"
    ATTACHED = "attached"
