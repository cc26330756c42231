"""
Offset pagination over a store.
"""

from typing import AsyncIterator, List, Optional

from ingestion.shutdown import CancellationToken
from ingestion.store import RecordStore
import logging

logger = logging.getLogger(__name__)


async def paginate(
    store: RecordStore,
    stmt,
    page_size: int,
    token: Optional[CancellationToken] = None
) -> AsyncIterator[List[dict]]:
    """
    Yield pages of `stmt` using LIMIT/OFFSET.

    The statement must be ordered for pages to be stable. Iteration stops
    after the first page shorter than page_size (an empty page is never
    yielded) or when the token is cancelled before the next read.

    Args:
        store: Store to read from
        stmt: Ordered select statement
        page_size: Rows per page
        token: Cancellation token checked before every page read
    """
    if page_size < 1:
        raise ValueError("page_size must be at least 1")

    offset = 0
    while True:
        if token is not None and token.cancelled:
            logger.info(f"Pagination over {store.name} stopped at offset {offset}")
            return

        rows = await store.fetch_page(stmt, limit=page_size, offset=offset)
        if rows:
            yield rows
        if len(rows) < page_size:
            return
        offset += page_size
