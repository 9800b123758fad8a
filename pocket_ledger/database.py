from __future__ import annotations

from pathlib import Path

from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, declarative_base, Session

from .exceptions import StorageError
from .logging_config import get_logger

Base = declarative_base()

logger = get_logger(__name__)

REQUIRED_TABLES = {"categories", "bank_accounts", "credit_cards", "transactions"}


def init_db(engine, session_factory) -> None:
    """Create database tables if they do not exist and seed categories."""
    from . import models  # noqa: F401
    from .repositories import CategoryRepository

    existing = set(inspect(engine).get_table_names())
    if not REQUIRED_TABLES.issubset(existing):
        Base.metadata.create_all(engine)
        logger.info("Created tables %s", sorted(REQUIRED_TABLES - existing))

    with session_factory.begin() as session:
        CategoryRepository(session).ensure_defaults()


class Database:
    """Owns the engine and session factory for one ledger database.

    Call :meth:`open` before use and :meth:`close` when done, or use the
    instance as a context manager.
    """

    def __init__(self, url: str):
        self.url = url
        self.engine = None
        self._session_factory = None

    @property
    def is_open(self) -> bool:
        return self.engine is not None

    def open(self) -> "Database":
        if self.engine is not None:
            logger.debug("Database already open, reusing %s", self.url)
            return self

        url = make_url(self.url)
        if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
            Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)

        logger.info("Opening database %s", self.url)
        self.engine = create_engine(self.url, echo=False, future=True)
        # expire_on_commit=False keeps returned rows readable after the unit of work closes
        self._session_factory = sessionmaker(
            bind=self.engine, autoflush=False, expire_on_commit=False
        )
        init_db(self.engine, self._session_factory)
        return self

    def close(self) -> None:
        if self.engine is None:
            return
        self.engine.dispose()
        self.engine = None
        self._session_factory = None
        logger.info("Closed database %s", self.url)

    def _factory(self):
        if self._session_factory is None:
            raise StorageError("Database not open. Call open() first.")
        return self._session_factory

    def session(self) -> Session:
        """Create a new session; the caller closes it."""
        return self._factory()()

    def begin(self):
        """Context manager yielding a session inside one committed transaction.

        The transaction rolls back if the block raises.
        """
        return self._factory().begin()

    def __enter__(self) -> "Database":
        return self.open()

    def __exit__(self, *exc) -> None:
        self.close()
