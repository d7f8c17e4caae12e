"""
Database engine and session management.
"""

from contextlib import contextmanager
from typing import Generator, Optional

from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from core.config import settings
from .base import Base


class DatabaseConnection:
    """Owns the engine and the session factory."""

    def __init__(self, url: Optional[str] = None, **engine_kwargs):
        self.url = url or settings.database_url
        self._engine: Optional[Engine] = None
        self._engine_kwargs = engine_kwargs
        self.SessionLocal: Optional[sessionmaker] = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            kwargs = {"echo": settings.db_echo, "pool_pre_ping": True}
            if self.url.startswith("sqlite"):
                kwargs["connect_args"] = {"check_same_thread": False}
            kwargs.update(self._engine_kwargs)
            self._engine = create_engine(self.url, **kwargs)
            self.SessionLocal = sessionmaker(
                bind=self._engine, autoflush=False, expire_on_commit=False
            )
        return self._engine

    def get_session_direct(self) -> Session:
        """Session the caller must close."""
        self.engine
        return self.SessionLocal()

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        session = self.get_session_direct()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_tables(self):
        # Import models so they register with Base.metadata
        from . import models  # noqa: F401
        Base.metadata.create_all(bind=self.engine)


db = DatabaseConnection()


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency: one session per request."""
    session = db.get_session_direct()
    try:
        yield session
    finally:
        session.close()


def init_db():
    db.create_tables()
    logger.info("Database tables ensured")

