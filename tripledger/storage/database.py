"""Mini README: SQLAlchemy engine and session helpers for the ledger database.

Structure:
    * Base - declarative base shared by every table module.
    * create_database_engine - engine factory aware of SQLite quirks.
    * LedgerDatabase - bundles an engine with its session factory and schema setup.

SQLite connections are opened with ``check_same_thread`` disabled because
FastAPI runs synchronous handlers on a thread pool. In-memory URLs use a
static pool so every session sees the same database.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..logging_utils import get_logger

LOGGER = get_logger(__name__)


class Base(DeclarativeBase):
    pass


def _is_memory_sqlite(url: str) -> bool:
    parsed = make_url(url)
    return parsed.get_backend_name() == "sqlite" and parsed.database in (None, "", ":memory:")


def _connect_args(url: str) -> Dict[str, bool]:
    if make_url(url).get_backend_name() == "sqlite":
        return {"check_same_thread": False}
    return {}


def create_database_engine(url: str) -> Engine:
    """Build an engine, creating the parent directory of file-based SQLite URLs."""

    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite" and not _is_memory_sqlite(url):
        Path(parsed.database).expanduser().parent.mkdir(parents=True, exist_ok=True)
    if _is_memory_sqlite(url):
        return create_engine(url, connect_args=_connect_args(url), poolclass=StaticPool)
    return create_engine(url, connect_args=_connect_args(url))


class LedgerDatabase:
    """Own the engine and hand out sessions to the stores."""

    def __init__(self, url: str) -> None:
        self.url = url
        self.engine = create_database_engine(url)
        self._session_factory = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)
        LOGGER.debug("Database engine created for %s", self.engine.url.render_as_string(hide_password=True))

    def create_schema(self) -> None:
        """Create any missing tables."""

        # Table modules register themselves on Base.metadata when imported.
        from ..ledger import tables  # noqa: F401

        Base.metadata.create_all(bind=self.engine)
        LOGGER.info("Ledger schema ready (%s tables)", len(Base.metadata.tables))

    def session(self) -> Session:
        return self._session_factory()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Yield a session whose work commits together or not at all."""

        with self._session_factory() as session:
            with session.begin():
                yield session

    def dispose(self) -> None:
        self.engine.dispose()
