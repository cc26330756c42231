"""
Serialized commit writer: the only code path that mutates a store.

Flushes are queued and executed one at a time by a dedicated writer task,
so at most one transaction is in flight per store and batches commit in the
order they were submitted. Each batch is one transaction of INSERT OR IGNORE
statements: it commits completely or not at all.
"""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.exc import SQLAlchemyError

from core.exceptions import BatchCommitError, StoreUnavailableError
from ingestion.store import RecordStore
import logging

logger = logging.getLogger(__name__)

_STOP = object()


class SerializedCommitWriter:
    """
    Single-consumer write queue for one store.

    Usage:
        writer = SerializedCommitWriter(store)
        writer.start()
        await writer.submit(rows)
        await writer.close()
    """

    def __init__(self, store: RecordStore):
        self.store = store
        self._queue: "asyncio.Queue[Tuple[Any, Optional[asyncio.Future]]]" = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self.batches_committed = 0
        self.batches_failed = 0
        self.rows_committed = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "SerializedCommitWriter":
        if self._task is None:
            self._task = asyncio.create_task(self._drain(), name=f"writer-{self.store.name}")
        return self

    async def submit(self, rows: List[Dict[str, Any]]) -> int:
        """
        Queue a batch and wait for its transaction to finish.

        Returns:
            Number of rows inserted; keys already present are ignored

        Raises:
            BatchCommitError: If the transaction failed and was rolled back
        """
        if not self.running:
            raise RuntimeError(f"Writer for {self.store.name} is not running")
        future = asyncio.get_running_loop().create_future()
        await self._queue.put((list(rows), future))
        return await future

    async def close(self):
        """Finish queued batches, then stop the writer task"""
        if self._task is None:
            return
        if not self._task.done():
            await self._queue.put((_STOP, None))
            await self._task
        self._task = None
        logger.info(
            f"Writer for {self.store.name} stopped: {self.batches_committed} batches committed "
            f"({self.rows_committed} rows), {self.batches_failed} failed"
        )

    async def _drain(self):
        while True:
            rows, future = await self._queue.get()
            if rows is _STOP:
                return
            try:
                committed = await self._commit(rows)
            except Exception as e:
                self.batches_failed += 1
                if not future.cancelled():
                    future.set_exception(e)
            else:
                self.batches_committed += 1
                self.rows_committed += committed
                if not future.cancelled():
                    future.set_result(committed)

    async def _commit(self, rows: List[Dict[str, Any]]) -> int:
        if not rows:
            return 0

        table = self.store.model.__table__
        stmt = insert(table).on_conflict_do_nothing(
            index_elements=list(table.primary_key.columns)
        )
        try:
            engine = self.store.require_engine()
            async with engine.begin() as conn:
                result = await conn.execute(stmt, rows)
        except (SQLAlchemyError, StoreUnavailableError) as e:
            raise BatchCommitError(
                "Batch transaction rolled back",
                context={"table_name": self.store.name, "batch_size": len(rows)},
                original_exception=e
            )

        # Keys already stored (or repeated in the batch) are ignored, not inserted
        inserted = result.rowcount if result.rowcount >= 0 else len(rows)
        logger.debug(f"Committed batch of {len(rows)} rows into {self.store.name}, {inserted} inserted")
        return inserted
