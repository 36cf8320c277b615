"""Engine and session factory construction."""

import threading
import weakref
from contextlib import nullcontext
from typing import ContextManager, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from lostfound.db.base import Base

MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")

# Engines whose single pinned connection must not be used by two threads at once
_access_locks: "weakref.WeakKeyDictionary[Engine, threading.RLock]" = weakref.WeakKeyDictionary()


def make_engine(database_url: str, *, echo: bool = False) -> Engine:
    """Create an engine for ``database_url``.

    SQLite connections are shared across threads; an in-memory database is
    pinned to a single connection so every session sees the same data, and
    access to that connection is serialized through :func:`access_lock`.
    """
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, echo=echo, pool_pre_ping=True)

    kwargs = {"connect_args": {"check_same_thread": False}}
    if database_url in MEMORY_URLS:
        kwargs["poolclass"] = StaticPool
    engine = create_engine(database_url, echo=echo, **kwargs)
    if database_url in MEMORY_URLS:
        _access_locks[engine] = threading.RLock()
    return engine


def access_lock(bind: Optional[Engine]) -> ContextManager:
    """Lock to hold around a session on ``bind``; a no-op for pooled engines."""
    lock = _access_locks.get(bind) if bind is not None else None
    return lock if lock is not None else nullcontext()


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(engine: Engine, session_factory: Optional[sessionmaker] = None) -> sessionmaker:
    """Create missing tables and return a session factory bound to ``engine``."""
    import lostfound.db.models  # noqa: F401  registers the tables

    Base.metadata.create_all(bind=engine)
    return session_factory or make_session_factory(engine)
