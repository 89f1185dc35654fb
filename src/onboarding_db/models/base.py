"""SQLAlchemy declarative base for the server-side ORM models."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for questionnaire session and profile tables."""

    pass
