"""Engine, session factory and session helpers.

The API uses ``get_db`` as a request-scoped dependency. Periodic workers
that sweep every organization (queue drain, reminder sweep, request
expiry) use ``get_db_session``; tasks acting for one organization use
``org_scoped_session`` so rows they create inherit that org_id.
"""

from contextlib import contextmanager
from typing import Generator
from uuid import UUID

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from .config import settings


def build_engine(database_url: str) -> Engine:
    """Create an engine; pooling options are only passed for PostgreSQL."""
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})
    return create_engine(database_url, pool_pre_ping=True, pool_size=5, max_overflow=10)


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """Unit-of-work session: commit when the block exits, roll back if it raises."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency; routes commit explicitly."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def org_scoped_session(org_id: UUID) -> Generator[Session, None, None]:
    """Unit-of-work session carrying ``org_id`` in ``session.info``."""
    with get_db_session() as session:
        session.info["org_id"] = org_id
        yield session


@event.listens_for(Session, "before_flush")
def fill_missing_org_id(session, flush_context, instances):
    """Give pending tenant rows the session's org_id when they were created without one."""
    org_id = session.info.get("org_id")
    if org_id is None:
        return

    for instance in session.new:
        if hasattr(instance, "org_id") and instance.org_id is None:
            instance.org_id = org_id
