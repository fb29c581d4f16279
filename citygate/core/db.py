# citygate/core/db.py
from __future__ import annotations
from contextlib import contextmanager
from typing import Iterator
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import OperationalError
from citygate.core.config import settings
from citygate.core.errors import StoreUnavailable

_engine: Engine | None = None


def _enable_sqlite_foreign_keys(dbapi_conn, _record):
    # ON DELETE CASCADE on grants depends on this
    cur = dbapi_conn.cursor()
    cur.execute("PRAGMA foreign_keys=ON")
    cur.close()


def make_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        engine = create_engine(url, connect_args={"check_same_thread": False})
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine
    return create_engine(url, pool_size=5, max_overflow=5, pool_pre_ping=True)


def configure_engine(url: str | None = None) -> Engine:
    """(Re)bind the process-wide engine, e.g. to a test database."""
    global _engine
    if _engine is not None:
        _engine.dispose()
    _engine = make_engine(url or settings.database_url)
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        return configure_engine()
    return _engine


def init_schema() -> None:
    from citygate.domain.sqlalchemy_models import Base
    Base.metadata.create_all(get_engine())


@contextmanager
def get_conn() -> Iterator[Connection]:
    """
    One transaction per block: commit on success, rollback on any error.

    Connectivity failures surface as StoreUnavailable so callers can fail
    closed without seeing driver errors.
    """
    try:
        with get_engine().begin() as conn:
            yield conn
    except OperationalError as e:
        raise StoreUnavailable() from e
