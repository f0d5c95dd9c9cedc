"""
Database Persistence Layer - Core Engine.

============================================================
DATABASE ENGINE AND SESSION MANAGEMENT
============================================================

Backs the chain sync engine's read-only snapshots (assets,
wallet addresses, RPC endpoints) and its append-only
transaction history.

Requirements:
- SQLAlchemy ORM (PostgreSQL in production, SQLite locally)
- Explicit transaction management
- Structured logging with row counts
- Hard failures on persistence errors

============================================================
"""

import os
import logging
from typing import Optional, Generator
from contextlib import contextmanager

from sqlalchemy import create_engine, inspect, text, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session, declarative_base
from sqlalchemy.exc import SQLAlchemyError, OperationalError
from sqlalchemy.pool import QueuePool, StaticPool

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# =============================================================
# DECLARATIVE BASE
# =============================================================

Base = declarative_base()

# =============================================================
# DATABASE ENGINE
# =============================================================

DEFAULT_DATABASE_URL = "sqlite:///chain_sync.db"

_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None


def get_database_url() -> str:
    """Get database URL from environment."""
    url = os.getenv("DATABASE_URL")
    if url and url.startswith("postgresql+asyncpg"):
        # Sessions here are synchronous
        url = url.replace("postgresql+asyncpg", "postgresql")

    if not url:
        url = DEFAULT_DATABASE_URL
        logger.warning(f"DATABASE_URL not set, using default: {url}")

    return url


def _safe_url(url: str) -> str:
    """Strip credentials for logging."""
    return url.split("@")[-1]


def create_database_engine(
    database_url: Optional[str] = None,
    pool_size: int = 10,
    max_overflow: int = 20,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    echo: bool = False,
) -> Engine:
    """
    Create a SQLAlchemy engine.

    SQLite URLs get a single shared connection for in-memory databases
    and no pool tuning; other backends use a QueuePool.

    Args:
        database_url: Database URL (defaults to DATABASE_URL)
        pool_size: Number of connections to keep in pool
        max_overflow: Max connections beyond pool_size
        pool_timeout: Seconds to wait for available connection
        pool_recycle: Recycle connections after N seconds
        echo: Log SQL statements

    Returns:
        SQLAlchemy Engine
    """
    database_url = database_url or get_database_url()

    logger.info(f"Creating database engine for: {_safe_url(database_url)}")

    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, echo=echo, **kwargs)
    else:
        engine = create_engine(
            database_url,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            echo=echo,
        )

    @event.listens_for(engine, "connect")
    def on_connect(dbapi_conn, connection_record):
        logger.debug("Database connection established")

    return engine


def get_engine() -> Engine:
    """Get the process-wide engine, creating if necessary."""
    global _engine
    if _engine is None:
        _engine = create_database_engine()
    return _engine


def get_session_factory(engine: Optional[Engine] = None) -> sessionmaker:
    """
    Get a session factory.

    With an explicit engine a new factory bound to it is returned;
    otherwise the process-wide factory is used.
    """
    global _SessionFactory

    if engine is not None:
        return sessionmaker(
            bind=engine,
            autoflush=False,
            expire_on_commit=False,
        )

    if _SessionFactory is None:
        _SessionFactory = sessionmaker(
            bind=get_engine(),
            autoflush=False,
            expire_on_commit=False,
        )

    return _SessionFactory


def reset_engine() -> None:
    """Dispose the process-wide engine and forget its session factory."""
    global _engine, _SessionFactory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


# =============================================================
# SESSION MANAGEMENT
# =============================================================


@contextmanager
def get_db_session(
    session_factory: Optional[sessionmaker] = None,
) -> Generator[Session, None, None]:
    """
    Context manager for read sessions with automatic cleanup.

    Usage:
        with get_db_session() as session:
            rows = load_wallet_addresses(session, user_id)

    On exception:
        - Automatically rolls back
        - Re-raises the exception
        - Logs the error
    """
    session = (session_factory or get_session_factory())()
    try:
        yield session
    except SQLAlchemyError as e:
        logger.error(f"Database error, rolling back: {e}")
        session.rollback()
        raise
    except Exception as e:
        logger.error(f"Unexpected error, rolling back: {e}")
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def transaction_scope(
    session_factory: Optional[sessionmaker] = None,
) -> Generator[Session, None, None]:
    """
    Context manager for explicit transaction boundaries.

    Commits only if no exception occurs.
    Rolls back on ANY exception.

    Usage:
        with transaction_scope() as session:
            insert_transaction(session, record)
            # Commits automatically at end
    """
    session = (session_factory or get_session_factory())()
    try:
        yield session
        session.commit()
        logger.debug("Database transaction committed successfully")
    except SQLAlchemyError as e:
        logger.error(f"Database transaction failed, rolling back: {e}")
        session.rollback()
        raise DatabasePersistenceError(f"Transaction failed: {e}") from e
    except Exception as e:
        logger.error(f"Transaction failed with unexpected error: {e}")
        session.rollback()
        raise
    finally:
        session.close()


# =============================================================
# DATABASE INITIALIZATION
# =============================================================

REQUIRED_TABLES = [
    "assets",
    "asset_chains",
    "wallet_addresses",
    "rpc_endpoints",
    "transactions",
]


def verify_database_connection(engine: Optional[Engine] = None) -> bool:
    """
    Verify database connection is working.

    Raises:
        DatabaseConnectionError if connection fails
    """
    engine = engine or get_engine()

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
            logger.info("Database connection verified successfully")
            return True
    except OperationalError as e:
        logger.error(f"Database connection failed: {e}")
        raise DatabaseConnectionError(f"Cannot connect to database: {e}") from e


def create_all_tables(engine: Optional[Engine] = None) -> None:
    """
    Create all tables defined in ORM models.

    Raises:
        DatabaseInitializationError if table creation fails
    """
    from . import models  # noqa: F401

    engine = engine or get_engine()

    try:
        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created successfully")
    except SQLAlchemyError as e:
        logger.error(f"Failed to create database tables: {e}")
        raise DatabaseInitializationError(f"Table creation failed: {e}") from e


def verify_required_tables(engine: Optional[Engine] = None) -> list[str]:
    """Return the required tables that are missing."""
    engine = engine or get_engine()
    existing = set(inspect(engine).get_table_names())

    missing = []
    for table in REQUIRED_TABLES:
        if table in existing:
            logger.info(f"  [OK] Table verified: {table}")
        else:
            logger.warning(f"  [!!] Table missing: {table}")
            missing.append(table)
    return missing


def initialize_database(engine: Optional[Engine] = None) -> None:
    """
    Full database initialization sequence.

    1. Verify connection
    2. Create tables if not exist
    3. Abort on any failure
    """
    engine = engine or get_engine()

    logger.info("=" * 60)
    logger.info("INITIALIZING DATABASE PERSISTENCE LAYER")
    logger.info("=" * 60)

    try:
        verify_database_connection(engine)
        create_all_tables(engine)
        missing = verify_required_tables(engine)
        if missing:
            raise DatabaseInitializationError(f"Missing tables: {', '.join(missing)}")

        logger.info("DATABASE INITIALIZATION COMPLETE")

    except Exception as e:
        logger.critical(f"DATABASE INITIALIZATION FAILED: {e}")
        raise


# =============================================================
# CUSTOM EXCEPTIONS
# =============================================================


class DatabasePersistenceError(Exception):
    """Raised when database persistence fails."""
    pass


class DatabaseConnectionError(DatabasePersistenceError):
    """Raised when database connection fails."""
    pass


class DatabaseInitializationError(DatabasePersistenceError):
    """Raised when database initialization fails."""
    pass


class PersistenceValidationError(DatabasePersistenceError):
    """Raised when data validation fails before persistence."""
    pass


# =============================================================
# EXPORTS
# =============================================================

__all__ = [
    # Base
    "Base",
    # Engine & Session
    "DEFAULT_DATABASE_URL",
    "get_database_url",
    "create_database_engine",
    "get_engine",
    "get_session_factory",
    "reset_engine",
    "get_db_session",
    "transaction_scope",
    # Initialization
    "REQUIRED_TABLES",
    "initialize_database",
    "verify_database_connection",
    "verify_required_tables",
    "create_all_tables",
    # Exceptions
    "DatabasePersistenceError",
    "DatabaseConnectionError",
    "DatabaseInitializationError",
    "PersistenceValidationError",
]
