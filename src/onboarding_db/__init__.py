"""onboarding_db — persistence layer for questionnaire sessions.

Server side: PostgreSQL ORM models, async engine factory, and repositories
for anonymous sessions and user profiles, consumed by the FastAPI server.

Client side: :class:`SqlKeyValueBackend`, an SQLite key-value backend for
the ``onboarding_flow`` Draft Store.
"""

from onboarding_db.engine import get_engine, get_session_factory
from onboarding_db.local_store import SqlKeyValueBackend
from onboarding_db.models.enums import SessionStatus
from onboarding_db.models.profile import UserProfile
from onboarding_db.models.session import QuestionnaireSession
from onboarding_db.repository import ProfileRepository, SessionRepository

__all__ = [
    "QuestionnaireSession",
    "UserProfile",
    "SessionStatus",
    "get_engine",
    "get_session_factory",
    "SessionRepository",
    "ProfileRepository",
    "SqlKeyValueBackend",
]
