"""
Record lookup endpoints for the XML and samples stores
"""

import json
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_samples_db, get_xml_db
from models.sample import SampleRecord
from models.xml_record import XmlRecord
from schemas.api import SampleResponse, XmlRecordResponse
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Records"])


@router.get("/samples/{sra_id}", response_model=SampleResponse)
async def get_sample(sra_id: str, request: Request, db: AsyncSession = Depends(get_samples_db)):
    """One transformed sample with its taxon ids and structured JSON"""
    request_id = getattr(request.state, "request_id", "-")
    logger.info(f"[{request_id}] GET /samples/{sra_id}")

    sample = await db.get(SampleRecord, sra_id)
    if sample is None:
        raise HTTPException(status_code=404, detail=f"Sample {sra_id} not found")

    return SampleResponse(
        sra_id=sample.record_id,
        type=sample.record_type,
        taxon_ids=json.loads(sample.extracted_ids or "[]"),
        json_data=json.loads(sample.payload) if sample.payload else None,
    )


@router.get("/xml/{sra_id}", response_model=List[XmlRecordResponse])
async def get_xml(sra_id: str, request: Request, db: AsyncSession = Depends(get_xml_db)):
    """Every raw XML document stored for a record id, one per record type"""
    request_id = getattr(request.state, "request_id", "-")
    logger.info(f"[{request_id}] GET /xml/{sra_id}")

    result = await db.execute(
        select(XmlRecord)
        .where(XmlRecord.record_id == sra_id)
        .order_by(XmlRecord.record_type)
    )
    rows = result.scalars().all()
    if not rows:
        raise HTTPException(status_code=404, detail=f"No XML stored for {sra_id}")

    return [
        XmlRecordResponse(sra_id=row.record_id, type=row.record_type, xml=row.xml)
        for row in rows
    ]
