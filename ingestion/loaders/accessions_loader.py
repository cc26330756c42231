"""
Bulk load SRA_Accessions.tab into the accessions store
"""

import asyncio
import csv
from pathlib import Path
from typing import Any, Dict, Optional, Union

import pandas as pd

from core.config import settings
from core.exceptions import SourceFileCorruptError, SourceFileNotFoundError
from ingestion.batching import BatchAccumulator
from ingestion.shutdown import CancellationToken
from ingestion.stats import PipelineStats
from ingestion.store import RecordStore
from ingestion.writer import SerializedCommitWriter
from models.accession import ACCESSION_COLUMNS
import logging

logger = logging.getLogger(__name__)

INTEGER_COLUMNS = frozenset({"loaded", "spots", "bases"})
READ_ERRORS = (UnicodeDecodeError, pd.errors.ParserError, pd.errors.EmptyDataError, OSError)


def _clean_value(column: str, value: Any) -> Any:
    # pandas fills short lines with NaN, which is the only non-str value here
    if not isinstance(value, str) or value == "":
        return None
    if column in INTEGER_COLUMNS:
        return int(value) if value.isascii() and value.isdigit() else None
    return value


def to_accession_row(values) -> Dict[str, Any]:
    """Map one TSV line (20 fields, file order) to accessions table columns"""
    return {
        column: _clean_value(column, value)
        for column, value in zip(ACCESSION_COLUMNS, values)
    }


class AccessionsLoader:
    """
    Load the accessions report in chunks, one transaction per chunk.

    Args:
        store: Open accessions store
        batch_size: Rows per chunk and per transaction
    """

    def __init__(self, store: RecordStore, batch_size: Optional[int] = None):
        self.store = store
        self.batch_size = batch_size or settings.ACCESSIONS_BATCH_SIZE

    async def load(
        self,
        tsv_path: Union[str, Path],
        token: Optional[CancellationToken] = None
    ) -> PipelineStats:
        """
        Load the file; the header line is skipped.

        Raises:
            SourceFileNotFoundError: If the file does not exist
            SourceFileCorruptError: If the file cannot be decoded or parsed;
                rows read before the failure are committed
        """
        tsv_path = Path(tsv_path)
        if not tsv_path.is_file():
            raise SourceFileNotFoundError(
                "Accessions file not found",
                context={"file_path": str(tsv_path)}
            )

        logger.info(f"Loading accessions from {tsv_path} into {self.store.db_path}")
        token = token or CancellationToken()
        stats = PipelineStats()
        writer = SerializedCommitWriter(self.store).start()
        accumulator = BatchAccumulator(writer, self.batch_size, stats)

        reader = None
        try:
            reader = self._read_chunks(tsv_path, stats)
            while not token.cancelled:
                chunk = await asyncio.to_thread(self._next_chunk, reader, tsv_path, stats)
                if chunk is None:
                    break

                for values in chunk.itertuples(index=False, name=None):
                    stats.observed += 1
                    row = to_accession_row(values)
                    if row["accession"] is None:
                        stats.skipped_filtered += 1
                        continue
                    await accumulator.add(row)

                # Chunk boundary: one transaction per chunk
                await accumulator.flush()
                logger.info(stats.progress_line())

            await accumulator.flush()
        except SourceFileCorruptError:
            await accumulator.flush()
            raise
        finally:
            if reader is not None:
                reader.close()
            await writer.close()

        stats.cancelled = token.cancelled
        logger.info(stats.summary_line())
        return stats

    def _read_chunks(self, tsv_path: Path, stats: PipelineStats):
        try:
            return pd.read_csv(
                tsv_path,
                sep="\t",
                header=0,
                names=list(ACCESSION_COLUMNS),
                dtype=str,
                na_filter=False,
                quoting=csv.QUOTE_NONE,
                on_bad_lines="skip",
                chunksize=self.batch_size,
            )
        except READ_ERRORS as e:
            raise self._corrupt(tsv_path, stats, e)

    def _next_chunk(self, reader, tsv_path: Path, stats: PipelineStats) -> Optional[pd.DataFrame]:
        """Blocking read of the next chunk; None at end of file"""
        try:
            return next(reader, None)
        except READ_ERRORS as e:
            raise self._corrupt(tsv_path, stats, e)

    @staticmethod
    def _corrupt(tsv_path: Path, stats: PipelineStats, e: Exception) -> SourceFileCorruptError:
        return SourceFileCorruptError(
            "Failed to decode or parse accessions file",
            context={"file_path": str(tsv_path), "rows_read": stats.observed},
            original_exception=e
        )
