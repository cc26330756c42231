"""
Stage 1: archive entries into the XML store.

    Archive Reader -> Entry Filter -> Dedup Gate -> Batch Accumulator
        -> Serialized Commit Writer -> XML store

Entries are pulled one at a time; blocking tar reads run in a worker thread
so the event loop (writer task, signal handling) stays responsive. Entries
whose key is already stored are skipped without reading their content,
which makes a rerun after an interrupted run only touch missing keys.
"""

import asyncio
from pathlib import Path
from typing import Iterable, Iterator, Optional, Union

from core.config import settings
from core.exceptions import ArchiveCorruptError, DedupSkip, EntrySkipped
from ingestion.archive import ArchiveEntry, iter_archive_entries
from ingestion.batching import BatchAccumulator
from ingestion.dedup import DedupGate
from ingestion.entry_filter import EntryFilter
from ingestion.shutdown import CancellationToken
from ingestion.stats import PipelineStats
from ingestion.store import RecordStore
from ingestion.writer import SerializedCommitWriter
from schemas.records import RawRecord
import logging

logger = logging.getLogger(__name__)


class XmlArchiveIngestor:
    """
    Load per-record XML files from a metadata archive into the XML store.

    Args:
        store: Open XML store (XmlRecord table)
        batch_size: Rows per transaction
        record_types: Record types to keep; None keeps every type
        progress_every: Log a progress line every N entries
    """

    def __init__(
        self,
        store: RecordStore,
        batch_size: Optional[int] = None,
        record_types: Optional[Iterable[str]] = None,
        progress_every: Optional[int] = None
    ):
        self.store = store
        self.batch_size = batch_size or settings.XML_BATCH_SIZE
        self.entry_filter = EntryFilter(record_types)
        self.progress_every = progress_every or settings.PROGRESS_LOG_EVERY

    async def run(self, archive_path: Union[str, Path], token: CancellationToken) -> PipelineStats:
        """
        Ingest one archive.

        Raises:
            SourceFileNotFoundError: If the archive is missing
            ArchiveCorruptError: If the archive cannot be decompressed or unpacked
            StoreUnavailableError: If the store cannot be read
        """
        logger.info(f"Starting XML ingestion from {archive_path} into {self.store.db_path}")
        return await self.ingest_entries(iter_archive_entries(archive_path), token)

    async def ingest_entries(self, entries: Iterable[ArchiveEntry], token: CancellationToken) -> PipelineStats:
        """Ingest any iterable of archive entries, honoring the cancellation token"""
        stats = PipelineStats()
        writer = SerializedCommitWriter(self.store).start()
        accumulator = BatchAccumulator(writer, self.batch_size, stats)
        gate = DedupGate(self.store)
        iterator: Iterator[ArchiveEntry] = iter(entries)

        try:
            while not token.cancelled:
                entry = await asyncio.to_thread(next, iterator, None)
                if entry is None:
                    break

                stats.observed += 1
                await self._route(entry, gate, accumulator, stats)

                if stats.observed % self.progress_every == 0:
                    logger.info(stats.progress_line())

            # Stream end or cancellation: never drop a partial batch
            await accumulator.flush()
        except ArchiveCorruptError:
            await accumulator.flush()
            raise
        finally:
            close = getattr(iterator, "close", None)
            if close is not None:
                close()
            await writer.close()

        stats.cancelled = token.cancelled
        logger.info(stats.summary_line())
        return stats

    async def _route(
        self,
        entry: ArchiveEntry,
        gate: DedupGate,
        accumulator: BatchAccumulator,
        stats: PipelineStats
    ):
        try:
            key = self.entry_filter.match(entry.path, entry.is_file)
            await gate.ensure_absent(key)
        except EntrySkipped:
            entry.discard()
            stats.skipped_filtered += 1
            return
        except DedupSkip:
            entry.discard()
            stats.skipped_existing += 1
            return

        content = await asyncio.to_thread(entry.read)
        record = RawRecord(record_id=key.record_id, record_type=key.record_type, payload=content)
        await accumulator.add(record.to_row())
