import logging
from pathlib import Path
from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from stockroom.config import Settings

logger = logging.getLogger(__name__)

Base = declarative_base()

# Connection execution option asking the SQLite begin hook for a write lock.
WRITE_LOCK_OPTION = "stockroom_write_lock"


def _install_sqlite_hooks(engine: Engine, busy_timeout_ms: int) -> None:
    """Take over transaction control from pysqlite.

    pysqlite defers BEGIN until the first DML statement, which lets two
    writers read the same balance before either one locks. Write units ask
    for ``BEGIN IMMEDIATE`` so the database lock is held from the first read.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)}")
        cursor.execute("PRAGMA journal_mode = WAL")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        if conn.get_execution_options().get(WRITE_LOCK_OPTION):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


def build_engine(database_url: str, *, lock_timeout_seconds: float = 5.0, echo: bool = False) -> Engine:
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return create_engine(database_url, pool_pre_ping=True, echo=echo)

    kwargs: dict = {"connect_args": {"check_same_thread": False, "timeout": lock_timeout_seconds}, "echo": echo}
    if url.database in (None, "", ":memory:"):
        kwargs["poolclass"] = StaticPool
    elif url.database:
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(database_url, **kwargs)
    _install_sqlite_hooks(engine, int(lock_timeout_seconds * 1000))
    return engine


class Database:
    """Owns the engine and session factory for one application instance."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self.session_factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        engine = build_engine(
            settings.database_url,
            lock_timeout_seconds=settings.lock_timeout_seconds,
            echo=settings.database_echo,
        )
        return cls(engine)

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    def init(self, create_schema: bool = False) -> None:
        # Models must be imported so their tables are registered on Base.
        from stockroom import models  # noqa: F401

        if create_schema:
            Base.metadata.create_all(self.engine)
        logger.info("Database initialized at %s", self.engine.url.render_as_string(hide_password=True))

    def dispose(self) -> None:
        self.engine.dispose()
        logger.info("Database connection closed")

    def session(self) -> Session:
        return self.session_factory()


def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()
