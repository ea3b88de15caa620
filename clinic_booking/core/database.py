from contextlib import contextmanager
from typing import Iterator
import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

Base = declarative_base()


def _engine_options(database_url: str) -> dict:
    """Connection options for the configured backend."""
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        # Writers queue on the busy timeout instead of failing straight away
        options = {"connect_args": {"check_same_thread": False, "timeout": 30}}
        if url.database in (None, "", ":memory:"):
            options["poolclass"] = StaticPool
        return options

    # PostgreSQL pool settings
    return {
        "pool_size": 5,
        "max_overflow": 10,
        "pool_timeout": 30,
        "pool_recycle": 1800,  # Recycle connections after 30 minutes
        "pool_pre_ping": True,
    }


class Store:
    """Owns the engine and session factory for one database.

    Constructed once per application and handed to whatever needs the
    database; nothing reaches for it through module state.
    """

    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url
        self.engine = create_engine(database_url, echo=echo, **_engine_options(database_url))
        self._session_factory = sessionmaker(
            bind=self.engine,
            autoflush=False,
            expire_on_commit=False,
        )

    @property
    def backend(self) -> str:
        return self.engine.url.get_backend_name()

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Session whose commits are left to the caller, closed on exit."""
        session = self._session_factory()
        try:
            yield session
        finally:
            session.close()

    def reading(self):
        """Session for read-only work, closed on exit."""
        return self.session_scope()

    @contextmanager
    def atomic(self) -> Iterator[Session]:
        """Run the enclosed block as one unit of work.

        Commits when the block exits normally. Any exception rolls back every
        write made through the yielded session and is re-raised unchanged.
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def init_db(self):
        """Initialize database tables."""
        # Import models so they register on Base.metadata
        from .. import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)
        logger.info(f"Tables ready on {self.backend} database")

    def drop_db(self):
        from .. import models  # noqa: F401

        Base.metadata.drop_all(bind=self.engine)

    def dispose(self):
        self.engine.dispose()

