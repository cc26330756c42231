"""
Pydantic schemas for records flowing through the ingestion pipeline
"""

import json
from typing import Any, List, NamedTuple

from pydantic import BaseModel, Field, field_validator


class RecordKey(NamedTuple):
    """Composite key derived from an archive entry path"""
    record_id: str
    record_type: str


class RawRecord(BaseModel):
    """
    One archive entry's XML document.

    Key is (record_id, record_type), unique in the XML store.
    """

    record_id: str = Field(..., min_length=1)
    record_type: str = Field(..., min_length=1)
    payload: str

    @field_validator("payload", mode="before")
    @classmethod
    def decode_payload(cls, v):
        """Accept raw bytes straight from the archive"""
        if isinstance(v, (bytes, bytearray)):
            return bytes(v).decode("utf-8", errors="replace")
        return v

    @property
    def key(self) -> RecordKey:
        return RecordKey(self.record_id, self.record_type)

    def to_row(self) -> dict:
        """Column values for the XML store table"""
        return {
            "record_id": self.record_id,
            "record_type": self.record_type,
            "xml": self.payload,
        }


class TransformedRecord(BaseModel):
    """
    Structured result of parsing one RawRecord.

    Key is record_id, unique in the samples store.
    """

    record_id: str = Field(..., min_length=1)
    record_type: str
    extracted_ids: List[str] = Field(default_factory=list)
    structured_payload: Any = None

    def to_row(self) -> dict:
        """Column values for the samples store table, JSON columns serialized"""
        return {
            "record_id": self.record_id,
            "record_type": self.record_type,
            "extracted_ids": json_dumps(self.extracted_ids),
            "payload": json_dumps(self.structured_payload),
        }


def json_dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
