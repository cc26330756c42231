"""
Core utilities and configuration for the SRA metadata database builder.

This package provides foundational components used throughout the pipeline:

Modules:
    config: Application configuration and environment variable management
    database: SQLite engine creation for the stores
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration and utilities

Usage:
    from core.config import settings
    from core.database import create_store_engine
    from core.exceptions import ArchiveCorruptError, StoreUnavailableError
    from core.logging import setup_logging

Example:
    # Initialize logging
    setup_logging()

    # Open an engine for a store
    engine = create_store_engine(settings.xml_db_path)
"""

from core.config import settings
from core.database import create_store_engine
from core.exceptions import (
    ArchiveCorruptError,
    BatchCommitError,
    DedupSkip,
    DownloadError,
    EntrySkipped,
    FatalError,
    LoadError,
    ParseError,
    PipelineError,
    SkipSignal,
    SourceFileCorruptError,
    SourceFileNotFoundError,
    StoreUnavailableError,
    TransformationError,
    WorkerCrash,
    WorkerError,
    WorkerTimeoutError,
)
from core.logging import setup_logging

__all__ = [
    "settings",
    "create_store_engine",
    "setup_logging",
    # Exceptions
    "PipelineError",
    "FatalError",
    "ArchiveCorruptError",
    "StoreUnavailableError",
    "SourceFileNotFoundError",
    "SourceFileCorruptError",
    "DownloadError",
    "SkipSignal",
    "EntrySkipped",
    "DedupSkip",
    "TransformationError",
    "ParseError",
    "WorkerError",
    "WorkerTimeoutError",
    "WorkerCrash",
    "LoadError",
    "BatchCommitError",
]
