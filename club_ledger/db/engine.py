"""
Module: club_ledger.db.engine
Responsibility: The Store handle -- SQLAlchemy engine, session factory and
    transactional scope.  This is the single point of database connection
    configuration for the ledger.
Architecture position: Ledger > DB.  May import from db/base.py.  MUST NOT
    import from services/, selectors/ or outer layers (except create_tables,
    which imports the model registry).

Invariants enforced:
    - One Store per process, constructed explicitly and passed to every
      caller; there is no module-level engine.
    - session_scope() is all-or-nothing: commit on normal exit, rollback on
      any exception, and the connection is always returned to the pool.
    - Raw SQLAlchemyError never escapes session_scope(); it is re-raised as
      PersistenceFailure after the rollback.

Failure modes:
    - PersistenceFailure on any store-level fault inside a scope.
    - Pool exhaustion (sqlalchemy TimeoutError, wrapped) if pool_size +
      max_overflow connections are held; long batches hold one connection
      for their whole loop.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from club_ledger.exceptions import PersistenceFailure
from club_ledger.logging_config import configure_logging, get_logger

if TYPE_CHECKING:
    from club_config.settings import ClubSettings

logger = get_logger("db.engine")


class Store:
    """
    Handle over the relational store.

    Contract:
        Constructed once at process start (``from_url`` / ``from_settings``)
        and handed to the facade, the batch engine and the tests.  Owns the
        bounded connection pool; ``dispose()`` drains it on shutdown.

    Guarantees:
        - ``session_scope()`` commits once on success and rolls back on any
          exception.  Sessions are always closed.
        - Sessions do not expire attributes on commit, so DTOs can be built
          from rows after the scope has closed.
    """

    def __init__(self, engine: Engine):
        self._engine = engine
        self._session_factory: sessionmaker[Session] = sessionmaker(
            bind=engine, expire_on_commit=False,
        )

    @classmethod
    def from_url(
        cls,
        database_url: str,
        echo: bool = False,
        pool_size: int = 10,
        max_overflow: int = 5,
        pool_pre_ping: bool = True,
        pool_timeout: int = 30,
        pool_recycle: int = 1800,
    ) -> Store:
        """
        Build a Store from a database URL.

        PostgreSQL URLs get a bounded QueuePool with pre-ping and READ
        COMMITTED isolation.  ``sqlite://`` URLs (tests, local tooling) get a
        StaticPool so every session shares one in-memory database.

        Args:
            database_url: SQLAlchemy URL.
            echo: If True, log all SQL statements.
            pool_size: Connections kept in the pool.
            max_overflow: Connections allowed beyond pool_size.
            pool_pre_ping: Test connections before use.
            pool_timeout: Seconds to wait for a pooled connection.
            pool_recycle: Seconds after which a connection is recycled.
        """
        if database_url.startswith("sqlite"):
            engine = create_engine(
                database_url,
                echo=echo,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
            dialect = "sqlite"
        else:
            engine = create_engine(
                database_url,
                echo=echo,
                poolclass=QueuePool,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_pre_ping=pool_pre_ping,
                pool_timeout=pool_timeout,
                pool_recycle=pool_recycle,
                isolation_level="READ COMMITTED",
            )
            dialect = engine.dialect.name

        logger.info(
            "store_initialized",
            extra={
                "dialect": dialect,
                "pool_size": pool_size,
                "max_overflow": max_overflow,
                "echo": echo,
            },
        )
        return cls(engine)

    @classmethod
    def from_settings(cls, settings: ClubSettings) -> Store:
        """
        Build a Store from the active ClubSettings.

        Also configures ledger logging at ``settings.log_level`` unless
        logging was already configured by the host process.
        """
        configure_logging(level=settings.log_level)
        return cls.from_url(
            settings.database_url,
            echo=settings.echo,
            pool_size=settings.pool_size,
            max_overflow=settings.max_overflow,
            pool_timeout=settings.pool_timeout,
            pool_recycle=settings.pool_recycle,
        )

    @property
    def engine(self) -> Engine:
        return self._engine

    def new_session(self) -> Session:
        """Return a new, unscoped session.  The caller must close it."""
        return self._session_factory()

    @contextmanager
    def session_scope(self, operation: str = "transaction") -> Generator[Session, None, None]:
        """
        Provide a transactional scope around a series of operations.

        Postconditions: On normal exit, the session is committed and closed.
            On exception, the session is rolled back and closed.  Ledger
            errors are re-raised unchanged; SQLAlchemyError is re-raised as
            PersistenceFailure with the original chained.

        Usage:
            with store.session_scope("create_payment") as session:
                session.add(entity)
        """
        session = self._session_factory()
        logger.debug("transaction_started", extra={"operation": operation})
        try:
            yield session
            session.commit()
            logger.debug("transaction_committed", extra={"operation": operation})
        except SQLAlchemyError as exc:
            session.rollback()
            logger.warning(
                "transaction_rolled_back",
                extra={"operation": operation},
                exc_info=True,
            )
            raise PersistenceFailure(operation, str(exc)) from exc
        except Exception:
            session.rollback()
            logger.warning(
                "transaction_rolled_back",
                extra={"operation": operation},
                exc_info=True,
            )
            raise
        finally:
            session.close()

    def create_tables(self) -> None:
        """Create every ledger table (idempotent)."""
        from club_ledger.db.base import Base
        from club_ledger.models import import_all_models

        import_all_models()
        Base.metadata.create_all(self._engine)

    def drop_tables(self) -> None:
        """Drop every ledger table.  Use with caution -- primarily for testing."""
        from club_ledger.db.base import Base

        Base.metadata.drop_all(self._engine)

    def dispose(self) -> None:
        """Drain the connection pool.  The Store must not be used afterwards."""
        self._engine.dispose()
        logger.info("store_disposed")

    def is_postgres(self) -> bool:
        return self._engine.dialect.name == "postgresql"
