"""
School context management for multi-tenant isolation.

Automatic school isolation via SQLAlchemy events:
1. Auto-filter: All SELECT queries on school-scoped models get WHERE school_id=X
2. Auto-set: New SchoolBaseModel instances get school_id automatically
3. Webhook and platform-admin paths run with no school set, so nothing is filtered
"""

from contextvars import ContextVar
from typing import Optional

from loguru import logger
from sqlalchemy import event
from sqlalchemy.orm import Session, with_loader_criteria

from database.base import SchoolBaseModel


# ==================== CONTEXT VARIABLES ====================

_current_school_id: ContextVar[Optional[int]] = ContextVar('current_school_id', default=None)
_events_registered = False


def set_current_school(school_id: Optional[int]):
    _current_school_id.set(school_id)

def get_current_school_id() -> Optional[int]:
    return _current_school_id.get()

def clear_current_school():
    _current_school_id.set(None)


# ==================== SETUP (call once at startup) ====================

def setup_school_events():
    """
    Register SQLAlchemy events for automatic school isolation.
    Safe to call more than once (tests build several apps).
    """
    global _events_registered
    if _events_registered:
        return

    @event.listens_for(Session, "do_orm_execute")
    def _auto_filter_school(orm_execute_state):
        if not orm_execute_state.is_select:
            return
        school_id = _current_school_id.get()
        if school_id is None:
            return

        # with_loader_criteria on SchoolBaseModel applies to ALL subclasses
        orm_execute_state.statement = orm_execute_state.statement.options(
            with_loader_criteria(
                SchoolBaseModel,
                lambda cls: cls.school_id == school_id,
                include_aliases=True,
            )
        )

    @event.listens_for(SchoolBaseModel, "init", propagate=True)
    def _auto_set_school(target, args, kwargs):
        if kwargs.get('school_id') is None:
            school_id = _current_school_id.get()
            if school_id is not None:
                target.school_id = school_id

    _events_registered = True
    logger.info("School auto-filtering registered")
