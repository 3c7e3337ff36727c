"""
Decision Record Repository
Insert and read operations for recorded decisions
"""

from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.errors import ConflictError
from app.domain.models import DecisionRecord
from app.infrastructure.db.models import DecisionRecordModel


class DecisionRecordRepository:
    """Repository for DecisionRecord"""

    def __init__(self, session: AsyncSession):
        """Initialize with database session"""
        self.session = session

    def _insert(self):
        dialect = self.session.bind.dialect.name if self.session.bind is not None else "postgresql"
        return sqlite_insert if dialect == "sqlite" else pg_insert

    async def create(self, record: DecisionRecord) -> str:
        """
        Insert a new decision

        Args:
            record: DecisionRecord domain object

        Returns:
            ID of the stored decision

        Raises:
            ConflictError: a decision with the same id exists
            IntegrityError: any other constraint violation
        """
        values = {
            "id": record.id,
            "timestamp": record.timestamp,
            "decision_type": record.type.value,
            "confidence": record.confidence,
            "executed": record.executed,
            "has_error": record.has_error,
            "protocols": list(record.protocols),
            "assets": list(record.assets),
            "risk_change": record.risk_change.value,
            "apy_impact": record.apy_impact,
            "reasoning_preview": record.reasoning_preview,
            "full_reasoning": record.full_reasoning,
            "actions": [a.to_dict() for a in record.actions],
            "tx_ids": list(record.tx_ids),
            "risk_analysis": record.risk_analysis.to_dict() if record.risk_analysis else None,
            "portfolio_snapshot": record.portfolio_snapshot,
            "strategy_config": record.strategy_config,
            "market_conditions": record.market_conditions,
        }
        # Only a primary key clash is swallowed here
        stmt = self._insert()(DecisionRecordModel).values(**values).on_conflict_do_nothing(
            index_elements=[DecisionRecordModel.id]
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            raise ConflictError(f"Decision {record.id} already exists")

        return record.id

    async def get_by_id(self, decision_id: str) -> Optional[DecisionRecord]:
        result = await self.session.execute(
            select(DecisionRecordModel).where(DecisionRecordModel.id == decision_id)
        )
        model = result.scalar_one_or_none()

        return self._to_domain(model) if model else None

    async def list_all(self) -> List[DecisionRecord]:
        """All decisions, newest first"""
        result = await self.session.execute(
            select(DecisionRecordModel)
            .order_by(DecisionRecordModel.timestamp.desc(), DecisionRecordModel.id.desc())
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    async def count(self) -> int:
        result = await self.session.execute(select(func.count()).select_from(DecisionRecordModel))
        return int(result.scalar_one())

    def _to_domain(self, model: DecisionRecordModel) -> DecisionRecord:
        """Convert ORM model to domain model"""
        return DecisionRecord.from_dict({
            "id": model.id,
            "timestamp": int(model.timestamp),
            "type": model.decision_type,
            "confidence": float(model.confidence),
            "executed": bool(model.executed),
            "hasError": bool(model.has_error),
            "protocols": model.protocols or [],
            "assets": model.assets or [],
            "riskChange": model.risk_change,
            "apyImpact": float(model.apy_impact),
            "reasoningPreview": model.reasoning_preview,
            "fullReasoning": model.full_reasoning,
            "actions": model.actions or [],
            "txIds": model.tx_ids or [],
            "riskAnalysis": model.risk_analysis,
            "portfolioSnapshot": model.portfolio_snapshot,
            "strategyConfig": model.strategy_config,
            "marketConditions": model.market_conditions,
        })
