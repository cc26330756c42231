"""
SQLite engine and session management with SQLAlchemy async
"""

from pathlib import Path
from typing import Union

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from core.config import settings
import logging

logger = logging.getLogger(__name__)


def _set_sqlite_pragmas(dbapi_connection, connection_record):
    # Readers (dedup gate, pagination) run alongside the single writer
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode = WAL")
    cursor.execute("PRAGMA synchronous = NORMAL")
    cursor.execute("PRAGMA journal_size_limit = 6144000")
    cursor.close()


def create_store_engine(db_path: Union[str, Path], echo: bool = False, wal: bool = True) -> AsyncEngine:
    """
    Create an async engine for one SQLite store file.

    With wal=False the file's journal mode is left untouched (readers of a
    store they do not own).
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{Path(db_path)}",
        echo=echo,
        future=True,
    )
    if wal:
        event.listen(engine.sync_engine, "connect", _set_sqlite_pragmas)
    logger.debug(f"Created engine for {db_path}")
    return engine


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker:
    """Create session factory bound to an engine"""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def default_store_paths() -> dict:
    """Table name -> SQLite path of the store holding it, from settings"""
    return {
        "data": settings.xml_db_path,
        "samples": settings.samples_db_path,
        "accessions": settings.accessions_db_path,
    }
