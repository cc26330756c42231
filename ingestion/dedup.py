"""
Dedup gate: advisory existence check against a destination store.

The gate only saves work. Correctness still rests on INSERT OR IGNORE in the
commit writer, so a key that slips past the gate cannot produce a duplicate.
"""

import enum
from typing import Any, Sequence

from core.exceptions import DedupSkip
from ingestion.store import RecordStore


class DedupResult(str, enum.Enum):
    """Outcome of a dedup lookup"""
    EXISTS = "exists"
    ABSENT = "absent"


class DedupGate:
    """Point lookups of candidate keys in one store"""

    def __init__(self, store: RecordStore):
        self.store = store

    async def check(self, key: Sequence[Any]) -> DedupResult:
        """Look the key up; StoreUnavailableError propagates as fatal"""
        if await self.store.contains(tuple(key)):
            return DedupResult.EXISTS
        return DedupResult.ABSENT

    async def ensure_absent(self, key: Sequence[Any]):
        """
        Raise DedupSkip when the key is already stored.

        Raises:
            DedupSkip: If the destination already holds the key
        """
        if await self.check(key) is DedupResult.EXISTS:
            raise DedupSkip(
                "Record already present",
                context={"table_name": self.store.name, "key": tuple(key)}
            )
