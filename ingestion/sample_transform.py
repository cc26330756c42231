"""
Stage 2: raw sample XML into structured JSON.

    Pagination Cursor (XML store) -> Dedup Gate (samples store)
        -> Worker Pool -> Batch Accumulator -> Serialized Commit Writer

Only the main flow touches the accumulator: worker results are collected
here, one completion at a time, so batches are built from a single task.
At most pool.max_workers transforms are in flight; the cursor is not
advanced while the pool is saturated.
"""

import asyncio
from typing import Any, Dict, Optional, Set

from sqlalchemy import select

from core.config import settings
from core.exceptions import DedupSkip, TransformationError
from ingestion.batching import BatchAccumulator
from ingestion.dedup import DedupGate
from ingestion.pagination import paginate
from ingestion.shutdown import CancellationToken
from ingestion.stats import PipelineStats
from ingestion.store import RecordStore
from ingestion.worker_pool import TransformWorkerPool
from ingestion.writer import SerializedCommitWriter
from models.xml_record import XmlRecord
from schemas.records import TransformedRecord
import logging

logger = logging.getLogger(__name__)


class SampleTransformer:
    """
    Transform stored XML records of one type into the samples store.

    Args:
        source: Open XML store, read only
        destination: Open samples store
        pool: Worker pool running the XML transform
        record_type: Record type to select from the XML store
        batch_size: Rows per transaction
        page_size: Rows per page read from the XML store
        progress_every: Log a progress line every N records
    """

    def __init__(
        self,
        source: RecordStore,
        destination: RecordStore,
        pool: TransformWorkerPool,
        record_type: Optional[str] = None,
        batch_size: Optional[int] = None,
        page_size: Optional[int] = None,
        progress_every: Optional[int] = None
    ):
        self.source = source
        self.destination = destination
        self.pool = pool
        self.record_type = record_type or settings.TRANSFORM_RECORD_TYPE
        self.batch_size = batch_size or settings.SAMPLE_BATCH_SIZE
        self.page_size = page_size or settings.PAGE_SIZE
        self.progress_every = progress_every or settings.PROGRESS_LOG_EVERY

    def build_query(self):
        return (
            select(
                XmlRecord.record_id.label("record_id"),
                XmlRecord.record_type.label("record_type"),
                XmlRecord.xml.label("xml"),
            )
            .where(XmlRecord.record_type == self.record_type)
            .order_by(XmlRecord.record_id, XmlRecord.record_type)
        )

    async def run(self, token: CancellationToken) -> PipelineStats:
        logger.info(
            f"Transforming '{self.record_type}' records from {self.source.db_path} "
            f"into {self.destination.db_path} with {self.pool.max_workers} workers"
        )
        stats = PipelineStats()
        writer = SerializedCommitWriter(self.destination).start()
        accumulator = BatchAccumulator(writer, self.batch_size, stats)
        gate = DedupGate(self.destination)
        pending: Set[asyncio.Task] = set()
        cancel_waiter = asyncio.create_task(token.wait())

        try:
            async for page in paginate(self.source, self.build_query(), self.page_size, token):
                for row in page:
                    while len(pending) >= self.pool.max_workers and not token.cancelled:
                        pending = await self._collect(pending, cancel_waiter, accumulator, stats)
                    if token.cancelled:
                        break

                    stats.observed += 1
                    try:
                        await gate.ensure_absent((row["record_id"],))
                    except DedupSkip:
                        stats.skipped_existing += 1
                        continue

                    pending.add(asyncio.create_task(self._transform(row), name=row["record_id"]))

                    if stats.observed % self.progress_every == 0:
                        logger.info(stats.progress_line())

            while pending and not token.cancelled:
                pending = await self._collect(pending, cancel_waiter, accumulator, stats)

            if pending:
                await self._abandon(pending, stats)
                pending = set()

            await accumulator.flush()
        finally:
            cancel_waiter.cancel()
            if pending:
                await self._abandon(pending, stats)
            await writer.close()

        stats.cancelled = token.cancelled
        logger.info(stats.summary_line())
        return stats

    async def _transform(self, row: Dict[str, Any]) -> TransformedRecord:
        result = await self.pool.submit(row["xml"], task_id=row["record_id"])
        return TransformedRecord(
            record_id=row["record_id"],
            record_type=row["record_type"],
            extracted_ids=result["extracted_ids"],
            structured_payload=result["structured_payload"],
        )

    async def _collect(
        self,
        pending: Set[asyncio.Task],
        cancel_waiter: asyncio.Task,
        accumulator: BatchAccumulator,
        stats: PipelineStats
    ) -> Set[asyncio.Task]:
        """Wait for at least one transform (or cancellation) and route the results"""
        done, still_pending = await asyncio.wait(
            pending | {cancel_waiter},
            return_when=asyncio.FIRST_COMPLETED
        )
        done.discard(cancel_waiter)
        still_pending.discard(cancel_waiter)

        for task in done:
            try:
                record = task.result()
            except TransformationError as e:
                stats.failed += 1
                logger.error(
                    f"Failed to process record {task.get_name()}: {e.message}",
                    extra={"error_context": e.to_dict()}
                )
                continue
            await accumulator.add(record.to_row())

        return still_pending

    async def _abandon(self, pending: Set[asyncio.Task], stats: PipelineStats):
        stats.abandoned += len(pending)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self.pool.abandon()
        logger.warning(f"Abandoned {len(pending)} in-flight records; they will be picked up by the next run")
