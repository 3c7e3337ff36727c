"""
Domain Models Package
Export all domain entities
"""

from .entities import (
    # Enums
    ActionType,
    CommitmentStatus,
    DecisionType,
    RiskChange,
    RiskLevel,

    # Entities
    CommitmentEntry,
    DecisionAction,
    DecisionRecord,
    DecisionStats,
    PositionRef,
    RiskAnalysis,
    TimelineBucket,
    YieldOpportunity,
)

__all__ = [
    # Enums
    "ActionType",
    "CommitmentStatus",
    "DecisionType",
    "RiskChange",
    "RiskLevel",

    # Entities
    "CommitmentEntry",
    "DecisionAction",
    "DecisionRecord",
    "DecisionStats",
    "PositionRef",
    "RiskAnalysis",
    "TimelineBucket",
    "YieldOpportunity",
]
