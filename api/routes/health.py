"""
Health check endpoint with store reachability
"""

from typing import Dict

from fastapi import APIRouter, Depends

from api.dependencies import get_stores
from core.exceptions import StoreUnavailableError
from ingestion.store import RecordStore
from schemas.api import HealthCheckResponse, StoreHealth
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(stores: Dict[str, RecordStore] = Depends(get_stores)):
    """
    Health check endpoint.

    Runs a row count against every store; a store that cannot answer is
    reported as disconnected.
    """
    results = []
    for name, store in stores.items():
        try:
            await store.count()
            results.append(StoreHealth(name=name, path=str(store.db_path), connected=True))
        except StoreUnavailableError as e:
            logger.error(f"Store {name} unreachable: {e.message}", extra={"error_context": e.to_dict()})
            results.append(StoreHealth(name=name, path=str(store.db_path), connected=False, error=e.message))

    return HealthCheckResponse.from_stores(results)
