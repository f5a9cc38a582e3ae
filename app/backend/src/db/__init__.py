"""Database session helpers for request handlers, workers and scripts.

Billing services commit their own units of work; these helpers only make
sure a failed request is rolled back and every session is closed.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from ..models.base import Base
from .session import SessionLocal, engine as _engine


@contextmanager
def get_session() -> Iterator[Session]:
    with SessionLocal() as session:
        try:
            yield session
        except Exception:
            session.rollback()
            raise


def get_session_dependency() -> Iterator[Session]:
    """FastAPI dependency yielding one session per request."""

    with get_session() as session:
        yield session


def get_engine() -> Engine:
    return _engine


@contextmanager
def session_scope() -> Iterator[Session]:
    """Yield a session for Celery tasks and scripts, committing on success."""

    with get_session() as session:
        yield session
        session.commit()


__all__ = [
    "Base",
    "get_engine",
    "get_session",
    "get_session_dependency",
    "session_scope",
]
