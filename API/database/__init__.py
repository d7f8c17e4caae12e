"""
Database package for the dojo management API.

Usage:
    from database import db, get_db, init_db
    from database.models import School, Profile, Event, EventRegistration
"""

from .base import Base, BaseModel, SchoolBaseModel, SchoolMixin, TimestampMixin, utcnow
from .connection import (
    DatabaseConnection,
    db,
    get_db,
    init_db,
)

# Import all models to ensure they are registered with SQLAlchemy
from .models import *


__all__ = [
    # Base
    'Base',
    'BaseModel',
    'SchoolBaseModel',
    'SchoolMixin',
    'TimestampMixin',
    'utcnow',

    # Connection
    'DatabaseConnection',
    'db',
    'get_db',
    'init_db',
]
