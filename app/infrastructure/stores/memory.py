"""
In-memory stores
Used for demo mode and tests; writes are serialized with an asyncio.Lock.
"""

import asyncio
import logging
from collections import OrderedDict
from typing import Dict, List, Optional

from app.domain.errors import ConflictError, NotFound
from app.domain.models import CommitmentEntry, DecisionRecord

logger = logging.getLogger(__name__)


def _newest_first(records) -> List[DecisionRecord]:
    return sorted(records, key=lambda r: (r.timestamp, r.id), reverse=True)


class InMemoryDecisionStore:
    """Decision records keyed by id"""

    def __init__(self):
        self._records: Dict[str, DecisionRecord] = {}
        self._lock = asyncio.Lock()

    async def append(self, record: DecisionRecord) -> str:
        async with self._lock:
            if record.id in self._records:
                raise ConflictError(f"Decision {record.id} already exists")
            self._records[record.id] = record
        logger.debug("Stored decision %s", record.id)
        return record.id

    async def get(self, decision_id: str) -> DecisionRecord:
        record = self._records.get(decision_id)
        if record is None:
            raise NotFound(f"Decision {decision_id} not found")
        return record

    async def list_all(self) -> List[DecisionRecord]:
        return _newest_first(self._records.values())

    async def count(self) -> int:
        return len(self._records)


class InMemoryCommitmentStore:
    """Commitment entries keyed by hash, kept in recording order"""

    def __init__(self):
        self._entries: "OrderedDict[str, CommitmentEntry]" = OrderedDict()
        self._lock = asyncio.Lock()

    async def put(self, entry: CommitmentEntry, overwrite: bool = True) -> bool:
        async with self._lock:
            replaced = entry.hash in self._entries
            if replaced and not overwrite:
                raise ConflictError(f"Hash {entry.hash} is already committed")
            self._entries[entry.hash] = entry
            # A replaced entry counts as the most recent commit
            self._entries.move_to_end(entry.hash)
        return replaced

    async def get(self, digest: str) -> Optional[CommitmentEntry]:
        return self._entries.get(digest)

    async def list_recent(self, limit: int) -> List[CommitmentEntry]:
        return list(reversed(self._entries.values()))[:limit]

    async def count(self) -> int:
        return len(self._entries)
