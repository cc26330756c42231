"""
Pydantic schemas for API request/response models
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Health Check Schemas
# ============================================================================

class StoreHealth(BaseModel):
    """Reachability of one store"""
    name: str
    path: str
    connected: bool
    error: Optional[str] = None


class HealthCheckResponse(BaseModel):
    """Health check response model"""
    status: str = Field(..., description="Overall status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=_utcnow)
    stores: List[StoreHealth] = Field(default_factory=list)

    @classmethod
    def from_stores(cls, stores: List[StoreHealth]) -> "HealthCheckResponse":
        connected = sum(1 for store in stores if store.connected)
        if connected == len(stores):
            status = "healthy"
        elif connected:
            status = "degraded"
        else:
            status = "unhealthy"
        return cls(status=status, stores=stores)

    class Config:
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "timestamp": "2024-01-15T10:30:00Z",
                "stores": [
                    {"name": "data", "path": "db/SRAmetadb_XML.sqlite", "connected": True},
                    {"name": "samples", "path": "db/SRAmetadb_samples.sqlite", "connected": True},
                ]
            }
        }


# ============================================================================
# Record Schemas
# ============================================================================

class XmlRecordResponse(BaseModel):
    """One raw XML row"""
    sra_id: str
    type: str
    xml: str


class SampleResponse(BaseModel):
    """One transformed sample"""
    sra_id: str
    type: str
    taxon_ids: List[str]
    json_data: Any = Field(..., alias="json", serialization_alias="json")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "sra_id": "SRS000001",
                "type": "sample",
                "taxon_ids": ["9606"],
                "json": {"sample_set": [{"sample": {"accession": "SRS000001"}}]}
            }
        }


# ============================================================================
# Statistics Schemas
# ============================================================================

class StatsResponse(BaseModel):
    """Row counts of every store"""
    timestamp: datetime = Field(default_factory=_utcnow)
    total_records: Dict[str, int]
    xml_records_by_type: Dict[str, int]
    samples_by_type: Dict[str, int]

    class Config:
        json_schema_extra = {
            "example": {
                "timestamp": "2024-01-15T10:30:00Z",
                "total_records": {"data": 5000, "samples": 1200, "accessions": 90000},
                "xml_records_by_type": {"sample": 1200, "experiment": 1800, "run": 2000},
                "samples_by_type": {"sample": 1200}
            }
        }


# ============================================================================
# Error Response Schema
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response"""
    error: str
    detail: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)
