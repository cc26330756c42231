"""
FastAPI dependencies: per-store database sessions
"""

from typing import AsyncIterator, Dict

from fastapi import HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import create_session_maker
from ingestion.store import RecordStore


def get_stores(request: Request) -> Dict[str, RecordStore]:
    """Stores opened at application startup, keyed by table name"""
    return request.app.state.stores


def _store_session(name: str):
    async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
        store = get_stores(request).get(name)
        if store is None or not store.is_open:
            raise HTTPException(status_code=503, detail=f"Store '{name}' is not available")
        session_maker = create_session_maker(store.engine)
        async with session_maker() as session:
            yield session
    return get_db


get_xml_db = _store_session("data")
get_samples_db = _store_session("samples")
