"""
Custom exceptions for the metadata ingestion pipeline with structured error context.

Each exception carries context information for debugging and for the
run summary. Fatal errors abort a run; per-record and per-batch errors are
counted and the pipeline moves on; skip signals are not errors at all.

Exception Hierarchy:
    PipelineError (base)
    ├── FatalError
    │   ├── ArchiveCorruptError
    │   ├── StoreUnavailableError
    │   ├── SourceFileNotFoundError
    │   ├── SourceFileCorruptError
    │   └── DownloadError
    ├── SkipSignal
    │   ├── EntrySkipped
    │   └── DedupSkip
    ├── TransformationError
    │   ├── ParseError
    │   └── WorkerError
    │       ├── WorkerTimeoutError
    │       └── WorkerCrash
    └── LoadError
        └── BatchCommitError
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


class PipelineError(Exception):
    """
    Base exception for all pipeline errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (record id, path, table, ...)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)
        super().__init__(message)
        if original_exception is not None:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        parts = [f"{type(self).__name__}: {self.message}"]
        parts.extend(f"{key}={value}" for key, value in self.context.items())
        if self.original_exception is not None:
            parts.append(f"cause={type(self.original_exception).__name__}: {self.original_exception}")
        return " | ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        """Flatten for the error_context log field"""
        return {
            "error_type": type(self).__name__,
            "message": self.message,
            **self.context,
            "occurred_at": self.timestamp.isoformat(),
            "cause": repr(self.original_exception) if self.original_exception is not None else None,
        }


# ============================================================================
# Fatal Errors
# ============================================================================

class FatalError(PipelineError):
    """Base exception for conditions that abort the whole run."""
    pass


class ArchiveCorruptError(FatalError):
    """
    Raised when the archive cannot be decompressed or unpacked.

    Context should include:
        - archive_path: Path of the archive
        - entries_read: Number of entries read before the failure
    """
    pass


class StoreUnavailableError(FatalError):
    """
    Raised when a store cannot be opened, created or read.

    Context should include:
        - store_path: Path of the SQLite file
        - operation: Operation that failed (open, lookup, page)
    """
    pass


class SourceFileNotFoundError(FatalError):
    """
    Raised when an input file (archive, TSV) is missing.

    Context should include:
        - file_path: Expected location of the file
    """
    pass


class SourceFileCorruptError(FatalError):
    """
    Raised when an input file cannot be decoded or parsed.

    Context should include:
        - file_path: Location of the file
        - rows_read: Number of rows read before the failure
    """
    pass


class DownloadError(FatalError):
    """
    Raised when a remote file cannot be fetched.

    Context should include:
        - url: URL that failed
        - status_code: HTTP status code (if applicable)
    """
    pass


# ============================================================================
# Skip Signals (not errors)
# ============================================================================

class SkipSignal(PipelineError):
    """Base class for outcomes that skip an item without counting a failure."""
    pass


class EntrySkipped(SkipSignal):
    """Archive entry does not follow the per-record naming convention."""
    pass


class DedupSkip(SkipSignal):
    """Record key is already present in the destination store."""
    pass


# ============================================================================
# Transformation Errors
# ============================================================================

class TransformationError(PipelineError):
    """Base exception for per-record transformation failures."""
    pass


class ParseError(TransformationError):
    """
    Raised when a raw XML payload cannot be parsed.

    Context should include:
        - record_id: Record identifier
        - error_type: Name of the underlying parser error
    """
    pass


class WorkerError(TransformationError):
    """Base exception for worker process failures."""
    pass


class WorkerTimeoutError(WorkerError):
    """
    Raised when a worker task exceeds its timeout and is terminated.

    Context should include:
        - record_id: Record identifier
        - timeout_seconds: Timeout that was exceeded
    """
    pass


class WorkerCrash(WorkerError):
    """
    Raised when a worker process exits without delivering a result.

    Context should include:
        - record_id: Record identifier
        - exit_code: Process exit code
    """
    pass


# ============================================================================
# Load Errors
# ============================================================================

class LoadError(PipelineError):
    """Base exception for data loading failures."""
    pass


class BatchCommitError(LoadError):
    """
    Raised when a batch transaction fails and is rolled back.

    Context should include:
        - table_name: Destination table
        - batch_size: Number of records lost for this run
    """
    pass
