from __future__ import annotations

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine


def database_url() -> str:
    """$SEATSYNC_DB_URL, else a SQLite file under $SEATSYNC_DATA_DIR (./data)."""
    url = os.environ.get("SEATSYNC_DB_URL")
    if url:
        return url
    data_dir = Path(os.environ.get("SEATSYNC_DATA_DIR") or "data").resolve()
    data_dir.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{data_dir / 'seatsync.db'}"


def _enable_sqlite_transactions(engine: Engine) -> None:
    # pysqlite defers BEGIN on its own; take it over so SAVEPOINT and rollback
    # cover every statement issued inside a session transaction.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record) -> None:  # noqa: ANN001
        dbapi_connection.isolation_level = None
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    @event.listens_for(engine, "begin")
    def _on_begin(conn) -> None:  # noqa: ANN001
        conn.exec_driver_sql("BEGIN")


def make_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        eng = create_engine(url, echo=False, **kwargs)
        _enable_sqlite_transactions(eng)
        return eng
    return create_engine(url, echo=False, pool_pre_ping=True)


engine = make_engine(database_url())


def init_db(bind: Engine | None = None) -> None:
    from . import models  # noqa: F401 - ensure models are registered

    SQLModel.metadata.create_all(bind or engine)


def get_session() -> Session:
    return Session(engine)


@contextmanager
def transaction(session: Session) -> Iterator[Session]:
    """Commit everything done inside the block, or roll all of it back."""
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
