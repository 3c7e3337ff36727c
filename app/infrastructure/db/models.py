"""
Database Models (SQLAlchemy ORM)
Audit tables - decisions are insert-only, commitments keyed by hash
"""

from sqlalchemy import (
    BigInteger, Boolean, Column, DateTime, Float, Index, JSON, String, Text
)

from app.infrastructure.db.database import Base
from app.utils.time import now_utc


class DecisionRecordModel(Base):
    """Recorded agent decision"""
    __tablename__ = "decision_record"

    id = Column(String(64), primary_key=True)
    timestamp = Column(BigInteger, nullable=False, index=True)
    decision_type = Column(String(16), nullable=False, index=True)
    confidence = Column(Float, nullable=False)
    executed = Column(Boolean, nullable=False, default=False)
    has_error = Column(Boolean, nullable=False, default=False)
    protocols = Column(JSON, nullable=False, default=list)
    assets = Column(JSON, nullable=False, default=list)
    risk_change = Column(String(16), nullable=False)
    apy_impact = Column(Float, nullable=False, default=0.0)
    reasoning_preview = Column(String(280), nullable=False)
    full_reasoning = Column(Text, nullable=True)
    actions = Column(JSON, nullable=False, default=list)
    tx_ids = Column(JSON, nullable=False, default=list)
    risk_analysis = Column(JSON, nullable=True)
    portfolio_snapshot = Column(JSON, nullable=True)
    strategy_config = Column(JSON, nullable=True)
    market_conditions = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=now_utc)

    __table_args__ = (
        Index("ix_decision_record_timestamp_id", "timestamp", "id"),
    )


class CommitmentModel(Base):
    """Decision trace recorded under its content hash"""
    __tablename__ = "commitment_entry"

    hash = Column(String(256), primary_key=True)
    trace = Column(JSON, nullable=False)
    commitment = Column(Text, nullable=True)
    recorded_at = Column(DateTime(timezone=True), nullable=False, index=True)
