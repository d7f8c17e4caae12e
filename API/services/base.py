"""
Base service class with school filtering support.
All school-scoped services should inherit from SchoolServiceBase.
"""

from sqlalchemy.orm import Session, Query
from core.tenant import get_current_school_id


class SchoolServiceBase:
    """
    Base service class that provides explicit school filtering.

    Usage:
        class EventService(SchoolServiceBase):
            def list_events(self):
                return self._q(Event).order_by(Event.starts_at).all()

    self._q(Model) is equivalent to:
        self.db.query(Model).filter(Model.school_id == current_school_id)
    """

    def __init__(self, db: Session, school_id: int = None):
        self.db = db
        self._school_id = school_id

    @property
    def school_id(self) -> int:
        """Get school_id - from parameter or context."""
        if self._school_id:
            return self._school_id
        return get_current_school_id()

    def _q(self, model) -> Query:
        """
        Create a school-filtered query.

        Adds WHERE school_id = :current_school_id for models that have a
        school_id column, even when no request context is bound.
        """
        query = self.db.query(model)
        sid = self.school_id
        if sid and hasattr(model, 'school_id'):
            query = query.filter(model.school_id == sid)
        return query
