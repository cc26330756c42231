"""
Ingestion pipeline for the NCBI SRA metadata dumps.

Modules:
    archive: Lazy tar(.gz/.bz2/.xz) entry reader with backpressure
    entry_filter: Archive path to record key derivation
    store: SQLite store handle (reads only)
    writer: Serialized commit writer, the only store mutation path
    dedup: Advisory existence check against a destination store
    batching: Batch accumulator
    pagination: LIMIT/OFFSET cursor over a store
    worker_pool: Isolated worker processes with per-task timeout
    shutdown: Cancellation token and shutdown coordinator
    stats: Run counters
    xml_ingest: Stage 1, archive into the XML store
    sample_transform: Stage 2, XML store into the samples store
    runner: One method per pipeline command

Subpackages:
    extractors: Downloads of the metadata archive and accessions report
    transformers: XML tree parsing and JSON conversion
    loaders: Accessions report bulk loader

Architecture:
    Stage 1: Archive Reader -> Entry Filter -> Dedup Gate
             -> Batch Accumulator -> Commit Writer -> XML store
    Stage 2: Pagination Cursor -> Dedup Gate -> Worker Pool
             -> Batch Accumulator -> Commit Writer -> samples store

    Both stages are resumable: keys already in the destination are skipped,
    and inserts ignore existing keys, so rerunning after a crash or a
    signal only does the missing work.

Usage:
    from ingestion.runner import PipelineRunner

Example:
    runner = PipelineRunner()
    exit_code, stats = await runner.build_xml_db("data/NCBI_SRA_Metadata_Full_20240101.tar.gz")
    exit_code, stats = await runner.build_samples_db(pool_size=4)

    print(stats.summary_line())
"""

from ingestion.batching import BatchAccumulator
from ingestion.dedup import DedupGate
from ingestion.runner import PipelineRunner
from ingestion.sample_transform import SampleTransformer
from ingestion.shutdown import CancellationToken, ShutdownCoordinator
from ingestion.stats import PipelineStats
from ingestion.store import RecordStore
from ingestion.worker_pool import TransformWorkerPool
from ingestion.writer import SerializedCommitWriter
from ingestion.xml_ingest import XmlArchiveIngestor

__all__ = [
    "PipelineRunner",
    "XmlArchiveIngestor",
    "SampleTransformer",
    "TransformWorkerPool",
    "SerializedCommitWriter",
    "BatchAccumulator",
    "DedupGate",
    "RecordStore",
    "CancellationToken",
    "ShutdownCoordinator",
    "PipelineStats",
]
