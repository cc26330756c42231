"""
Pydantic schemas for data validation and serialization.

Schemas:
    records: Records flowing through the ingestion pipeline
        (RecordKey, RawRecord, TransformedRecord)
    api: API endpoint response models

Usage:
    from schemas.records import RawRecord, TransformedRecord
    from schemas.api import HealthCheckResponse, StatsResponse
"""

from schemas.api import (
    ErrorResponse,
    HealthCheckResponse,
    SampleResponse,
    StatsResponse,
    XmlRecordResponse,
)
from schemas.records import RawRecord, RecordKey, TransformedRecord

__all__ = [
    "RecordKey",
    "RawRecord",
    "TransformedRecord",
    "HealthCheckResponse",
    "SampleResponse",
    "XmlRecordResponse",
    "StatsResponse",
    "ErrorResponse",
]
