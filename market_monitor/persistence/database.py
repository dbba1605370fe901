"""Database engine and session management.

A :class:`Database` is constructed explicitly by the caller and passed to the
stores that need it; there is no module-level engine.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from market_monitor.logging import get_logger

from .exceptions import DatabaseConnectionError, PersistenceError

logger = get_logger(__name__, component="database")

DEFAULT_DATABASE_URL = "sqlite:///./data/market_monitor.db"


class Database:
    """Owns a SQLAlchemy engine and session factory for one database URL.

    Args:
        database_url: SQLAlchemy URL, e.g. ``sqlite:///./data/market_monitor.db``
            or ``sqlite:///:memory:`` for tests

    Raises:
        DatabaseConnectionError: If the engine cannot be created or validated
    """

    def __init__(self, database_url: str = DEFAULT_DATABASE_URL):
        if not database_url or not isinstance(database_url, str):
            raise DatabaseConnectionError("Database URL must be a non-empty string")

        self.database_url = database_url
        logger.info(
            "Initializing database",
            extra={"event": "database.initializing", "database_url": _redact_url(database_url)},
        )

        try:
            self.engine = self._create_engine(database_url)
            self._validate_connection()
            self._session_factory = sessionmaker(
                bind=self.engine,
                autoflush=True,
                expire_on_commit=False,
            )

            from .schema import create_schema

            create_schema(self.engine)
        except DatabaseConnectionError:
            raise
        except Exception as e:
            logger.error(
                f"Failed to initialize database: {e}",
                extra={"event": "database.init_failed", "error_type": type(e).__name__},
                exc_info=True,
            )
            raise DatabaseConnectionError(f"Failed to initialize database: {e}") from e

        logger.info(
            "Database initialized",
            extra={"event": "database.initialised", "database_url": _redact_url(database_url)},
        )

    @staticmethod
    def _create_engine(database_url: str) -> Engine:
        is_sqlite = database_url.startswith("sqlite")
        in_memory = is_sqlite and (database_url.endswith(":memory:") or database_url == "sqlite://")

        if is_sqlite and not in_memory and database_url.startswith("sqlite:///"):
            db_file = Path(database_url.replace("sqlite:///", "", 1))
            if not db_file.parent.exists():
                logger.info(f"Creating database directory: {db_file.parent}")
                db_file.parent.mkdir(parents=True, exist_ok=True)

        kwargs = {"pool_pre_ping": True}
        if is_sqlite:
            # registry writes come from the command poller thread
            kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
        if in_memory:
            # one shared connection, otherwise every checkout sees an empty database
            kwargs["poolclass"] = StaticPool

        engine = create_engine(database_url, **kwargs)

        if is_sqlite:

            @event.listens_for(engine, "connect")
            def _set_sqlite_pragma(dbapi_conn, connection_record):
                cursor = dbapi_conn.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                if not in_memory:
                    cursor.execute("PRAGMA journal_mode=WAL")
                cursor.close()

        return engine

    def _validate_connection(self) -> None:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1")).fetchone()
        except Exception as e:
            raise DatabaseConnectionError(f"Failed to validate database connection: {e}") from e

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Yield a session that commits on success and rolls back on error.

        Example:
            >>> with database.session() as session:
            ...     SubscriptionRepository(session).list_all()
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.warning(
                f"Database session rolled back: {e}",
                extra={"event": "database.session.rolled_back", "error_type": type(e).__name__},
            )
            if isinstance(e, SQLAlchemyError):
                raise PersistenceError(f"Database transaction failed: {e}") from e
            raise
        finally:
            session.close()

    def close(self) -> None:
        """Dispose of pooled connections."""
        self.engine.dispose()
        logger.info("Database connections closed", extra={"event": "database.closed"})


def _redact_url(url: str) -> str:
    """Hide the password part of a non-SQLite URL."""
    if url.startswith("sqlite") or "@" not in url:
        return url
    credentials, _, host = url.rpartition("@")
    scheme, _, userinfo = credentials.partition("://")
    user = userinfo.split(":", 1)[0]
    return f"{scheme}://{user}:***@{host}"
