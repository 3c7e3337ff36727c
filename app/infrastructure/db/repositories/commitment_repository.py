"""
Commitment Repository
Atomic per-hash insert/replace of decision trace commitments
"""

from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.errors import ConflictError
from app.domain.models import CommitmentEntry
from app.infrastructure.db.models import CommitmentModel


class CommitmentRepository:
    """Repository for CommitmentEntry"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _insert(self):
        dialect = self.session.bind.dialect.name if self.session.bind is not None else "postgresql"
        return sqlite_insert if dialect == "sqlite" else pg_insert

    async def put(self, entry: CommitmentEntry, overwrite: bool = True) -> bool:
        """
        Insert the entry, or replace the one stored under the same hash.

        Returns:
            True when an existing entry was replaced

        Raises:
            ConflictError: hash exists and overwrite is False
        """
        values = {
            "hash": entry.hash,
            "trace": entry.trace,
            "commitment": entry.commitment,
            "recorded_at": entry.recorded_at,
        }
        stmt = self._insert()(CommitmentModel).values(**values).on_conflict_do_nothing(
            index_elements=[CommitmentModel.hash]
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 1:
            return False

        if not overwrite:
            raise ConflictError(f"Hash {entry.hash} is already committed")

        await self.session.execute(
            update(CommitmentModel)
            .where(CommitmentModel.hash == entry.hash)
            .values(
                trace=entry.trace,
                commitment=entry.commitment,
                recorded_at=entry.recorded_at,
            )
        )
        return True

    async def get(self, digest: str) -> Optional[CommitmentEntry]:
        result = await self.session.execute(
            select(CommitmentModel).where(CommitmentModel.hash == digest)
        )
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def list_recent(self, limit: int) -> List[CommitmentEntry]:
        result = await self.session.execute(
            select(CommitmentModel)
            .order_by(CommitmentModel.recorded_at.desc(), CommitmentModel.hash)
            .limit(limit)
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    async def count(self) -> int:
        result = await self.session.execute(select(func.count()).select_from(CommitmentModel))
        return int(result.scalar_one())

    def _to_domain(self, model: CommitmentModel) -> CommitmentEntry:
        return CommitmentEntry(
            hash=model.hash,
            trace=dict(model.trace or {}),
            commitment=model.commitment,
            recorded_at=model.recorded_at,
        )
