"""
FastAPI application initialization
"""

from pathlib import Path
from typing import Dict, Optional, Union

from fastapi import FastAPI

from api.middleware import RequestContextMiddleware
from api.routes import health, records, stats
from core.config import settings
from core.database import default_store_paths
from core.exceptions import StoreUnavailableError
from core.logging import setup_logging
from ingestion.store import RecordStore
from models.accession import Accession
from models.sample import SampleRecord
from models.xml_record import XmlRecord
import logging

logger = logging.getLogger(__name__)

STORE_MODELS = {
    "data": XmlRecord,
    "samples": SampleRecord,
    "accessions": Accession,
}


def create_app(store_paths: Optional[Dict[str, Union[str, Path]]] = None) -> FastAPI:
    """
    Build the read-only query API.

    Args:
        store_paths: Table name -> SQLite path; defaults to the configured stores
    """
    paths = {**default_store_paths(), **(store_paths or {})}

    app = FastAPI(
        title="SRA Metadata DB API",
        description="Read-only access to the SRA metadata stores",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.stores = {}
    app.add_middleware(RequestContextMiddleware)

    app.include_router(health.router)
    app.include_router(stats.router)
    app.include_router(records.router)

    @app.on_event("startup")
    async def open_stores():
        """Open the existing stores; a missing one stays closed and /health reports it"""
        logger.info("Starting SRA Metadata DB API")
        logger.info(f"Environment: {settings.ENVIRONMENT}")
        for name, model in STORE_MODELS.items():
            store = RecordStore(paths[name], model)
            try:
                await store.open(create=False)
            except StoreUnavailableError as e:
                logger.warning(f"Store {name} not available: {e.message}", extra={"error_context": e.to_dict()})
            app.state.stores[name] = store

    @app.on_event("shutdown")
    async def close_stores():
        logger.info("Shutting down SRA Metadata DB API")
        for store in app.state.stores.values():
            await store.close()
        app.state.stores = {}

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "message": "SRA Metadata DB API",
            "version": "1.0.0",
            "docs": "/docs",
            "health": "/health",
            "endpoints": {
                "stats": "/stats",
                "samples": "/samples/{sra_id}",
                "xml": "/xml/{sra_id}"
            }
        }

    return app


setup_logging()
app = create_app()
