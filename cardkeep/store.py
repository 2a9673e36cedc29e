"""
Collection store — the explicitly constructed handle to the SQLite database.

    store = CollectionStore("sqlite:///data/collection.db").open()
    with store.session_scope() as session:
        ...
    store.close()

The app factory owns one store per Flask app; tests build their own
against "sqlite://" (a private in-memory database).
"""
import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from cardkeep.errors import PersistenceError
from cardkeep.migrations import apply_migrations

log = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_conn, _record) -> None:
    # SQLite ignores ON DELETE CASCADE unless this is set per connection
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class CollectionStore:
    """Owns the engine and session factory for one database."""

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.echo = echo
        self.engine: Engine | None = None
        self.schema_version = 0
        self._session_factory: sessionmaker | None = None

    @property
    def is_open(self) -> bool:
        return self.engine is not None

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def is_memory(self) -> bool:
        return self.url in ("sqlite://", "sqlite:///:memory:")

    # ── Lifecycle ────────────────────────────────────────────────────────────

    def open(self) -> "CollectionStore":
        if self.is_open:
            return self

        kwargs = {"echo": self.echo}
        if self.is_memory:
            # One shared connection, otherwise every checkout sees an empty DB
            kwargs.update(poolclass=StaticPool, connect_args={"check_same_thread": False})
        self.engine = create_engine(self.url, **kwargs)
        if self.is_sqlite:
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

        try:
            self.schema_version = apply_migrations(self.engine)
        except SQLAlchemyError as exc:
            self.engine.dispose()
            self.engine = None
            raise PersistenceError(f"Could not initialise database: {exc}") from exc

        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        log.info("Collection store open at %s (schema v%d)", self.url, self.schema_version)
        return self

    def close(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None
            self._session_factory = None
            log.info("Collection store closed")

    def __enter__(self) -> "CollectionStore":
        return self.open()

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ── Sessions ─────────────────────────────────────────────────────────────

    def session(self) -> Session:
        if self._session_factory is None:
            raise PersistenceError("Collection store is not open")
        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """One unit of work: commit on success, roll back on any error.

        SQLAlchemy errors are re-raised as PersistenceError; everything
        else (ValidationError, NotFoundError…) propagates unchanged after
        the rollback.
        """
        session = self.session()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            log.exception("Store operation failed")
            raise PersistenceError(f"Database error: {exc.__class__.__name__}") from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
