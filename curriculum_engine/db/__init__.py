"""SQLAlchemy engine, session factory and declarative base for curriculum records."""
from __future__ import annotations

import contextlib
from typing import Iterator

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from ..config import DATA_DIR, DATABASE_URL, SQLALCHEMY_ECHO

if DATABASE_URL.startswith("sqlite:///") and ":memory:" not in DATABASE_URL:
    DATA_DIR.mkdir(parents=True, exist_ok=True)

engine = create_engine(DATABASE_URL, future=True, echo=SQLALCHEMY_ECHO)
SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
    future=True,
)

Base = declarative_base()


def init_db(bind: Engine | None = None) -> None:
    """Create the lesson, half-term, stack and unit tables if they are missing."""
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


@contextlib.contextmanager
def get_session(factory: sessionmaker = SessionLocal) -> Iterator[Session]:
    """Yield a session from ``factory``; commit on success, roll back on error."""
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


__all__ = [
    "Base",
    "SessionLocal",
    "engine",
    "get_session",
    "init_db",
]
