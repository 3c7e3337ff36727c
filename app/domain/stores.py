"""
Storage ports for decision records and commitments.
Implemented in memory (app.infrastructure.stores) and with SQLAlchemy.
"""

from typing import List, Optional, Protocol

from app.domain.models import CommitmentEntry, DecisionRecord


class DecisionStore(Protocol):
    async def append(self, record: DecisionRecord) -> str:
        """Store a new record; ConflictError when the id already exists"""

    async def get(self, decision_id: str) -> DecisionRecord:
        """Fetch by id; NotFound when absent"""

    async def list_all(self) -> List[DecisionRecord]:
        """All records, newest first (timestamp desc, id desc)"""

    async def count(self) -> int:
        ...


class CommitmentStore(Protocol):
    async def put(self, entry: CommitmentEntry, overwrite: bool = True) -> bool:
        """
        Insert or replace the entry for entry.hash atomically.

        Returns True when an existing entry was replaced. Raises
        ConflictError when one exists and overwrite is False.
        """

    async def get(self, digest: str) -> Optional[CommitmentEntry]:
        ...

    async def list_recent(self, limit: int) -> List[CommitmentEntry]:
        """Most recently recorded first"""

    async def count(self) -> int:
        ...
