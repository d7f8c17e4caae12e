"""
Base model class and common mixins for all database models.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, DateTime, ForeignKey
from sqlalchemy.orm import declarative_base, declared_attr

Base = declarative_base()


def utcnow():
    """Current UTC time as a naive datetime (all columns store naive UTC)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TimestampMixin:
    """Mixin for created_at and updated_at timestamps."""

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class SchoolMixin:
    """
    Mixin that adds school_id to any model.
    All school-scoped (tenant) models MUST use this mixin.
    """

    @declared_attr
    def school_id(cls):
        return Column(
            Integer,
            ForeignKey('schools.id', ondelete='CASCADE'),
            nullable=False,
            index=True
        )


class BaseModel(Base, TimestampMixin):
    """Abstract base model for NON-school models (School, Profile, Notification)."""

    __abstract__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)

    def to_dict(self):
        """Convert model to dictionary."""
        return {c.name: getattr(self, c.name) for c in self.__table__.columns}

    def __repr__(self):
        return f"<{self.__class__.__name__}(id={self.id})>"


class SchoolBaseModel(Base, TimestampMixin, SchoolMixin):
    """
    Abstract base model for ALL school-scoped models.

    Includes:
    - id (PK)
    - school_id (FK -> schools.id) with index
    - created_at, updated_at timestamps

    All queries on SchoolBaseModel subclasses are automatically
    filtered by school_id via SQLAlchemy event listener.
    """

    __abstract__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)

    def to_dict(self):
        """Convert model to dictionary."""
        return {c.name: getattr(self, c.name) for c in self.__table__.columns}

    def __repr__(self):
        return f"<{self.__class__.__name__}(id={self.id}, school_id={self.school_id})>"
