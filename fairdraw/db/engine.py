from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker

from ..config import ROOT_DIR, get_settings
from .utils import is_memory_sqlite_url, resolve_sqlite_url


def default_database_url() -> str:
    return resolve_sqlite_url(get_settings().db_url, ROOT_DIR)


def make_engine(database_url: Optional[str] = None, echo: bool = False):
    url = database_url or default_database_url()
    kwargs = {}
    if is_memory_sqlite_url(url):
        # One shared connection, otherwise every pooled connection would see
        # its own empty in-memory database.
        kwargs["connect_args"] = {"check_same_thread": False}
        kwargs["poolclass"] = StaticPool
    engine = create_engine(
        url,
        echo=echo,
        future=True,
        **kwargs,
    )
    if url.startswith("sqlite"):
        # ensure FK constraints are enforced on SQLite
        from sqlalchemy import event

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def get_sessionmaker(engine):
    return sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False,  # domain objects are built from rows after commit
        future=True,
    )
