"""
Batch accumulator feeding a serialized commit writer.
"""

from typing import Any, Dict, List, Optional

from core.exceptions import BatchCommitError
from ingestion.stats import PipelineStats
from ingestion.writer import SerializedCommitWriter
import logging

logger = logging.getLogger(__name__)


class BatchAccumulator:
    """
    Buffer rows and hand them to the writer in batches.

    A batch is flushed when it reaches batch_size and whenever flush() is
    called (end of stream, shutdown). Inserted rows are counted as processed,
    rows whose key was already stored count as skipped_existing. Rows of a
    failed batch are counted as failed and dropped for this run, to be picked
    up by the next one.

    Args:
        writer: Writer owning the destination store
        batch_size: Flush threshold
        stats: Counters updated on every flush
    """

    def __init__(
        self,
        writer: SerializedCommitWriter,
        batch_size: int,
        stats: Optional[PipelineStats] = None
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.writer = writer
        self.batch_size = batch_size
        self.stats = stats if stats is not None else PipelineStats()
        self._buffer: List[Dict[str, Any]] = []
        self.flush_sizes: List[int] = []

    def __len__(self) -> int:
        return len(self._buffer)

    async def add(self, row: Dict[str, Any]):
        """Append a row, flushing if the threshold is reached"""
        self._buffer.append(row)
        if len(self._buffer) >= self.batch_size:
            await self.flush()

    async def flush(self) -> int:
        """
        Commit whatever is buffered.

        Returns:
            Number of rows committed (0 if the buffer was empty or the batch failed)
        """
        if not self._buffer:
            return 0

        # Swap before awaiting so rows added meanwhile land in a fresh batch
        batch, self._buffer = self._buffer, []
        self.flush_sizes.append(len(batch))
        try:
            committed = await self.writer.submit(batch)
        except BatchCommitError as e:
            self.stats.failed += len(batch)
            self.stats.batches_failed += 1
            logger.error(
                f"Dropped batch of {len(batch)} rows for {self.writer.store.name}: {e.message}",
                extra={"error_context": e.to_dict()}
            )
            return 0

        self.stats.processed += committed
        self.stats.skipped_existing += len(batch) - committed
        self.stats.batches_committed += 1
        return committed
