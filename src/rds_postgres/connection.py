"""Engine and session helpers for the relational pipeline store."""

from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Iterator

from dotenv import load_dotenv
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

load_dotenv()

_engines: dict[str, Engine] = {}


def get_engine(database_url: str | None = None) -> Engine:
    """Return a cached engine for DATABASE_URL (or the given URL)."""
    url = database_url or os.environ["DATABASE_URL"]
    engine = _engines.get(url)
    if engine is None:
        engine = create_engine(url, pool_pre_ping=True)
        _engines[url] = engine
    return engine


def get_session_factory(engine: Engine | None = None) -> sessionmaker[Session]:
    return sessionmaker(bind=engine or get_engine(), expire_on_commit=False)


@contextmanager
def get_session(engine: Engine | None = None) -> Iterator[Session]:
    """Context manager for a session with automatic commit/rollback."""
    session = get_session_factory(engine)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_schema(engine: Engine | None = None) -> None:
    """Create all pipeline tables that do not exist yet."""
    from rds_postgres.models import Base

    Base.metadata.create_all(engine or get_engine())
