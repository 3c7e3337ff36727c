"""
SQL-backed stores
One session (and transaction) per store call, built on the repositories.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.domain.errors import NotFound
from app.domain.models import CommitmentEntry, DecisionRecord
from app.infrastructure.db.repositories.commitment_repository import CommitmentRepository
from app.infrastructure.db.repositories.decision_record_repository import DecisionRecordRepository


@asynccontextmanager
async def _transaction(session_factory: async_sessionmaker) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


class SqlDecisionStore:
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def append(self, record: DecisionRecord) -> str:
        async with _transaction(self.session_factory) as session:
            return await DecisionRecordRepository(session).create(record)

    async def get(self, decision_id: str) -> DecisionRecord:
        async with _transaction(self.session_factory) as session:
            record = await DecisionRecordRepository(session).get_by_id(decision_id)
        if record is None:
            raise NotFound(f"Decision {decision_id} not found")
        return record

    async def list_all(self) -> List[DecisionRecord]:
        async with _transaction(self.session_factory) as session:
            return await DecisionRecordRepository(session).list_all()

    async def count(self) -> int:
        async with _transaction(self.session_factory) as session:
            return await DecisionRecordRepository(session).count()


class SqlCommitmentStore:
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def put(self, entry: CommitmentEntry, overwrite: bool = True) -> bool:
        async with _transaction(self.session_factory) as session:
            return await CommitmentRepository(session).put(entry, overwrite=overwrite)

    async def get(self, digest: str) -> Optional[CommitmentEntry]:
        async with _transaction(self.session_factory) as session:
            return await CommitmentRepository(session).get(digest)

    async def list_recent(self, limit: int) -> List[CommitmentEntry]:
        async with _transaction(self.session_factory) as session:
            return await CommitmentRepository(session).list_recent(limit)

    async def count(self) -> int:
        async with _transaction(self.session_factory) as session:
            return await CommitmentRepository(session).count()
