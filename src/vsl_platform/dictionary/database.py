"""
Database connection and session management for the dictionary store.

Implements connection pooling and a session factory. PostgreSQL is the
production target; SQLite URLs are accepted for tests and local runs.
"""

from contextlib import contextmanager
from typing import Generator, Optional

import structlog
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

logger = structlog.get_logger(__name__)

# Global singletons
_engine: Engine | None = None
_SessionFactory: sessionmaker | None = None

_IN_MEMORY_SQLITE = ("sqlite://", "sqlite:///:memory:")


def _unicode_lower(value):
    return value.lower() if isinstance(value, str) else value


def build_engine(url: str, pool_size: int = 10, echo: bool = False) -> Engine:
    """
    Create a SQLAlchemy engine suitable for use from worker threads.

    SQLite's built-in ``lower()`` folds ASCII only, so SQLite connections get
    a Python ``lower()`` in its place; case-insensitive ``ilike`` matching then
    covers Vietnamese letters ("CÔ GIÁO" matches "cô giáo") like PostgreSQL.

    Args:
        url: Database URL
        pool_size: Connection pool size (ignored for SQLite)
        echo: Log SQL statements

    Returns:
        SQLAlchemy Engine instance

    Examples:
        >>> engine = build_engine("sqlite://")
        >>> engine.dialect.name
        'sqlite'
    """
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in _IN_MEMORY_SQLITE:
            # One shared connection, otherwise each checkout sees an empty database
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, echo=echo, **kwargs)

        @event.listens_for(engine, "connect")
        def _register_unicode_lower(dbapi_connection, connection_record):
            dbapi_connection.create_function("lower", 1, _unicode_lower, deterministic=True)

        return engine

    return create_engine(
        url,
        pool_size=pool_size,
        echo=echo,
        pool_pre_ping=True,  # Verify connections before using
    )


def get_engine() -> Engine:
    """
    Get or create the configured SQLAlchemy engine (singleton).

    Returns:
        SQLAlchemy Engine instance
    """
    global _engine

    if _engine is None:
        from vsl_platform.config import settings

        _engine = build_engine(
            settings.dictionary_db_url,
            pool_size=settings.dictionary_db_pool_size,
            echo=settings.dictionary_db_echo_sql,
        )

        logger.info(
            "dictionary_db_engine_created",
            database=_engine.url.database,
            dialect=_engine.dialect.name,
        )

    return _engine


def get_session_factory(engine: Optional[Engine] = None) -> sessionmaker:
    """
    Get a session factory.

    With an explicit engine a fresh factory is returned; otherwise the
    process-wide factory bound to ``get_engine()`` is created once and reused.
    """
    global _SessionFactory

    if engine is not None:
        return sessionmaker(bind=engine)

    if _SessionFactory is None:
        _SessionFactory = sessionmaker(bind=get_engine())
        logger.info("dictionary_db_session_factory_created")

    return _SessionFactory


@contextmanager
def session_scope(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Context manager for one transaction with automatic commit/rollback.

    Usage:
        >>> with session_scope(factory) as session:
        ...     session.add(DictionaryRecord(...))
        ...     # Automatically commits on success, rolls back on exception

    Yields:
        SQLAlchemy Session instance

    Raises:
        Exception: Any database exception (after rollback)
    """
    session = session_factory()

    try:
        yield session
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error("dictionary_db_session_rollback", error=str(e), error_type=type(e).__name__)
        raise
    finally:
        session.close()


def create_all_tables(engine: Optional[Engine] = None) -> None:
    """
    Create all database tables.

    WARNING: Only use this for testing or initial setup.
    For production, use migrations.
    """
    from .models import Base

    Base.metadata.create_all(engine or get_engine())
    logger.info("dictionary_db_tables_created")


def drop_all_tables(engine: Optional[Engine] = None) -> None:
    """
    Drop all database tables.

    WARNING: Destructive operation. Only use for testing.
    """
    from .models import Base

    Base.metadata.drop_all(engine or get_engine())
    logger.warning("dictionary_db_tables_dropped")
