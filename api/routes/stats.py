"""
Store statistics endpoint
"""

from typing import Dict

from fastapi import APIRouter, Depends, Request
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_samples_db, get_stores, get_xml_db
from ingestion.store import RecordStore
from models.sample import SampleRecord
from models.xml_record import XmlRecord
from schemas.api import StatsResponse
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Statistics"])


async def _count_by_type(db: AsyncSession, column) -> Dict[str, int]:
    result = await db.execute(select(column, func.count()).group_by(column).order_by(column))
    return {record_type: count for record_type, count in result.all() if record_type is not None}


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    request: Request,
    stores: Dict[str, RecordStore] = Depends(get_stores),
    xml_db: AsyncSession = Depends(get_xml_db),
    samples_db: AsyncSession = Depends(get_samples_db)
):
    """
    Row counts per open store, and per record type for the XML and samples stores.
    """
    request_id = getattr(request.state, "request_id", "-")

    total_records = {name: await store.count() for name, store in stores.items() if store.is_open}
    xml_by_type = await _count_by_type(xml_db, XmlRecord.record_type)
    samples_by_type = await _count_by_type(samples_db, SampleRecord.record_type)

    logger.info(f"[{request_id}] Stats: {total_records}")

    return StatsResponse(
        total_records=total_records,
        xml_records_by_type=xml_by_type,
        samples_by_type=samples_by_type,
    )
