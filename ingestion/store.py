"""
Store handle: one SQLite file holding one table.

Reads (dedup lookups, pagination, counts) go through the handle directly.
Writes never do: they belong to the store's SerializedCommitWriter.
"""

from pathlib import Path
from typing import Any, List, Optional, Sequence, Union

from sqlalchemy import and_, func, inspect, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from core.database import create_store_engine
from core.exceptions import StoreUnavailableError
from models.base import Base
import logging

logger = logging.getLogger(__name__)


class RecordStore:
    """
    Persistent, append-only table keyed by its primary key columns.

    Args:
        db_path: SQLite file location (parent folder is created on open)
        model: Declarative model of the single table in this store
    """

    def __init__(self, db_path: Union[str, Path], model):
        self.db_path = Path(db_path)
        self.model = model
        self.engine: Optional[AsyncEngine] = None

    @property
    def name(self) -> str:
        return self.model.__tablename__

    @property
    def key_columns(self) -> List[Any]:
        return list(self.model.__table__.primary_key.columns)

    @property
    def is_open(self) -> bool:
        return self.engine is not None

    async def open(self, create: bool = True) -> "RecordStore":
        """
        Open the engine and create the table if missing.

        With create=False only an existing store is opened: a missing file or
        table raises StoreUnavailableError instead of being created, and the
        journal mode is left as is.
        """
        if not create and not self.db_path.is_file():
            raise StoreUnavailableError(
                "Store file does not exist",
                context={"store_path": str(self.db_path), "operation": "open"}
            )

        has_table = True
        try:
            if create:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self.engine = create_store_engine(self.db_path, wal=create)
            async with self.engine.begin() as conn:
                if create:
                    await conn.run_sync(Base.metadata.create_all, tables=[self.model.__table__])
                else:
                    has_table = await conn.run_sync(
                        lambda sync_conn: inspect(sync_conn).has_table(self.name)
                    )
        except (SQLAlchemyError, OSError) as e:
            await self.close()
            raise StoreUnavailableError(
                "Failed to open store",
                context={"store_path": str(self.db_path), "operation": "open"},
                original_exception=e
            )

        if not has_table:
            await self.close()
            raise StoreUnavailableError(
                "Store has no table",
                context={"store_path": str(self.db_path), "operation": "open", "table": self.name}
            )
        logger.info(f"Opened store {self.name} at {self.db_path}")
        return self

    async def close(self):
        """Dispose the engine; safe to call twice"""
        if self.engine is not None:
            await self.engine.dispose()
            self.engine = None
            logger.info(f"Closed store {self.name} at {self.db_path}")

    async def __aenter__(self) -> "RecordStore":
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def require_engine(self) -> AsyncEngine:
        if self.engine is None:
            raise StoreUnavailableError(
                "Store is not open",
                context={"store_path": str(self.db_path)}
            )
        return self.engine

    async def contains(self, key: Sequence[Any]) -> bool:
        """Point lookup on the primary key"""
        engine = self.require_engine()
        columns = self.key_columns
        if len(key) != len(columns):
            raise ValueError(f"{self.name} key has {len(columns)} columns, got {len(key)}")

        stmt = select(1).select_from(self.model.__table__).where(
            and_(*(column == value for column, value in zip(columns, key)))
        ).limit(1)
        try:
            async with engine.connect() as conn:
                result = await conn.execute(stmt)
                return result.first() is not None
        except SQLAlchemyError as e:
            raise StoreUnavailableError(
                "Primary key lookup failed",
                context={"store_path": str(self.db_path), "operation": "lookup", "key": tuple(key)},
                original_exception=e
            )

    async def fetch_page(self, stmt, limit: int, offset: int) -> list:
        """Run one LIMIT/OFFSET page of a select"""
        engine = self.require_engine()
        try:
            async with engine.connect() as conn:
                result = await conn.execute(stmt.limit(limit).offset(offset))
                return list(result.mappings().all())
        except SQLAlchemyError as e:
            raise StoreUnavailableError(
                "Page read failed",
                context={"store_path": str(self.db_path), "operation": "page", "offset": offset},
                original_exception=e
            )

    async def count(self, where=None) -> int:
        """Row count, optionally filtered"""
        engine = self.require_engine()
        stmt = select(func.count()).select_from(self.model.__table__)
        if where is not None:
            stmt = stmt.where(where)
        try:
            async with engine.connect() as conn:
                return (await conn.execute(stmt)).scalar_one()
        except SQLAlchemyError as e:
            raise StoreUnavailableError(
                "Row count failed",
                context={"store_path": str(self.db_path), "operation": "count"},
                original_exception=e
            )
