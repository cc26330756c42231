import asyncio
import logging
import sys
import os

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.logging import setup_logging
from ingestion.runner import PipelineRunner

logger = logging.getLogger(__name__)


async def init_database():
    logger.info(f"Creating stores under {settings.DB_DIR}...")
    counts = await PipelineRunner().init_stores()
    for name, count in counts.items():
        logger.info(f"Table {name} ready ({count} rows)")


if __name__ == "__main__":
    setup_logging()
    asyncio.run(init_database())
