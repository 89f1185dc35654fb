"""ORM models for onboarding_db."""

from onboarding_db.models.base import Base
from onboarding_db.models.enums import SessionStatus
from onboarding_db.models.profile import UserProfile
from onboarding_db.models.session import QuestionnaireSession

__all__ = ["Base", "SessionStatus", "QuestionnaireSession", "UserProfile"]
