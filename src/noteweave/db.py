"""Database engine and session management."""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional, Tuple

from loguru import logger
from sqlalchemy import event
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from noteweave.config import DatabaseType
from noteweave.models import Base
from noteweave.services.exceptions import ConflictError, TransactionAbortError


def get_database_url(db_path: Optional[Path], db_type: DatabaseType) -> str:
    if db_type == DatabaseType.MEMORY:
        logger.info("Using in-memory SQLite database")
        return "sqlite+aiosqlite://"

    if db_path is None:
        raise ValueError("db_path is required for a filesystem database")
    db_path.parent.mkdir(parents=True, exist_ok=True)
    url = f"sqlite+aiosqlite:///{db_path}"
    logger.info(f"Using SQLite database: {url}")
    return url


def _configure_sqlite_connection(dbapi_conn, enable_wal: bool) -> None:
    cursor = dbapi_conn.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
        if enable_wal:
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute("PRAGMA busy_timeout=10000")
    finally:
        cursor.close()


def create_engine_and_session(
    db_path: Optional[Path], db_type: DatabaseType = DatabaseType.FILESYSTEM
) -> Tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Create an engine and a session maker bound to it."""
    db_url = get_database_url(db_path, db_type)
    logger.debug(f"Creating engine for db_url: {db_url}")

    if db_type == DatabaseType.MEMORY:
        # one shared connection, otherwise every connection sees its own empty database
        engine = create_async_engine(
            db_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_async_engine(db_url, connect_args={"check_same_thread": False})

    enable_wal = db_type == DatabaseType.FILESYSTEM

    @event.listens_for(engine.sync_engine, "connect")
    def on_connect(dbapi_conn, connection_record):
        _configure_sqlite_connection(dbapi_conn, enable_wal)

    session_maker = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    return engine, session_maker


async def create_schema(engine: AsyncEngine) -> None:
    """Create every table and index that does not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def engine_session_factory(
    db_path: Optional[Path] = None,
    db_type: DatabaseType = DatabaseType.MEMORY,
) -> AsyncGenerator[Tuple[AsyncEngine, async_sessionmaker[AsyncSession]], None]:
    """Create an engine and session maker, disposing the engine on exit.

    Used by the application context and by tests.
    """
    engine, session_maker = create_engine_and_session(db_path, db_type)
    try:
        yield engine, session_maker
    finally:
        await engine.dispose()


@asynccontextmanager
async def scoped_session(
    session_maker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Run a unit of work in one transaction.

    Commits on normal exit and rolls back on any error. Uniqueness violations
    surface as ConflictError, any other database failure as
    TransactionAbortError. Other exceptions propagate unchanged.
    """
    session = session_maker()
    try:
        yield session
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        logger.warning(f"Transaction rolled back on constraint violation: {e.orig}")
        raise ConflictError(f"Constraint violation: {e.orig}") from e
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Transaction aborted: {e}")
        raise TransactionAbortError(f"Transaction aborted: {e}") from e
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()
