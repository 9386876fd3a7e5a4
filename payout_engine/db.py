# payout_engine/db.py
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event, exc as sa_exc
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .config import settings
from .domain.errors import DependencyError, StateConflictError

log = logging.getLogger("payout_engine.db")


class Base(DeclarativeBase):
    pass


def configure_sqlite(eng: Engine) -> Engine:
    """
    pysqlite defers BEGIN on its own, which breaks SAVEPOINT (used by audit
    writes). Let SQLAlchemy emit BEGIN itself and turn foreign keys on.
    """
    if eng.dialect.name != "sqlite":
        return eng

    @event.listens_for(eng, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cur = dbapi_connection.cursor()
        cur.execute("PRAGMA foreign_keys=ON")
        cur.close()

    @event.listens_for(eng, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return eng


engine = configure_sqlite(
    create_engine(
        settings.database_url,
        pool_pre_ping=True,
        future=True,
    )
)

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
    future=True,
)


def get_db():
    """
    FastAPI dependency.

    Guarantees rollback on exceptions so a failed statement never leaves the
    session in an aborted transaction for the next query.
    """
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """
    One atomic write: commit on success, roll back everything on any error.

    Store failures are re-raised as DependencyError (safe to retry, every
    allocation replaces rather than appends). Unique-key races become
    StateConflictError.
    """
    try:
        yield db
        db.commit()
    except sa_exc.IntegrityError as e:
        db.rollback()
        log.warning("unit_of_work_conflict", extra={"error": str(e.orig)})
        raise StateConflictError("conflicting write, the record changed concurrently") from e
    except (sa_exc.OperationalError, sa_exc.InterfaceError, sa_exc.TimeoutError) as e:
        db.rollback()
        log.error("unit_of_work_dependency_failure", exc_info=True)
        raise DependencyError("database unavailable, retry the operation") from e
    except Exception:
        db.rollback()
        raise
