"""
Domain Models - Entities
Pure domain objects with no infrastructure dependencies
"""

import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from app.domain.errors import ValidationError
from app.utils.time import datetime_to_iso, ms_to_date_str, ms_to_iso

DECISION_ID_PATTERN = re.compile(r"^\d+-[0-9a-z]+$")
REASONING_PREVIEW_MAX_LENGTH = 280


class DecisionType(str, Enum):
    """Type of agent decision"""
    HOLD = "hold"
    REBALANCE = "rebalance"
    ENTER = "enter"
    EXIT = "exit"


class RiskChange(str, Enum):
    """Direction of portfolio risk after the decision"""
    INCREASED = "increased"
    DECREASED = "decreased"
    UNCHANGED = "unchanged"


class ActionType(str, Enum):
    """Kind of on-chain action planned by a decision"""
    WITHDRAW = "withdraw"
    DEPOSIT = "deposit"
    SWAP = "swap"


class RiskLevel(str, Enum):
    """Coarse risk classification of a yield opportunity"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class CommitmentStatus(str, Enum):
    """Outcome of recording a decision trace"""
    COMMITTED_ONCHAIN = "committed_onchain"
    LOCAL_RECORD = "local_record"


def _enum_value(enum_cls, value: Any, field_name: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise ValidationError(f"{field_name} must be one of: {allowed}")


def _number(value: Any, field_name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field_name} must be a number")
    if not math.isfinite(value):
        raise ValidationError(f"{field_name} must be a finite number")
    return float(value)


def _flag(value: Any, field_name: str) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a boolean")
    return value


def _string_tuple(value: Any, field_name: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise ValidationError(f"{field_name} must be a list of strings")
    if not all(isinstance(v, str) for v in value):
        raise ValidationError(f"{field_name} must be a list of strings")
    return tuple(value)


def _optional_mapping(value: Any, field_name: str) -> Optional[Dict[str, Any]]:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise ValidationError(f"{field_name} must be an object")
    return dict(value)


def unique_in_order(values) -> Tuple[str, ...]:
    """De-duplicate while keeping first-seen order"""
    return tuple(dict.fromkeys(v for v in values if v))


@dataclass(frozen=True)
class PositionRef:
    """One side of an action: where funds move from or to"""
    protocol: Optional[str] = None
    asset: Optional[str] = None
    amount: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"protocol": self.protocol, "asset": self.asset}
        if self.amount is not None:
            data["amount"] = self.amount
        return data

    @classmethod
    def from_dict(cls, data: Any, field_name: str) -> Optional["PositionRef"]:
        if data is None:
            return None
        if not isinstance(data, Mapping):
            raise ValidationError(f"{field_name} must be an object")
        amount = data.get("amount")
        return cls(
            protocol=data.get("protocol"),
            asset=data.get("asset"),
            amount=_number(amount, f"{field_name}.amount") if amount is not None else None,
        )


@dataclass(frozen=True)
class DecisionAction:
    """Planned action attached to a decision"""
    type: ActionType
    from_position: Optional[PositionRef] = None
    to_position: Optional[PositionRef] = None
    expected_apy_gain: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "from": self.from_position.to_dict() if self.from_position else None,
            "to": self.to_position.to_dict() if self.to_position else None,
            "expectedApyGain": self.expected_apy_gain,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "DecisionAction":
        if not isinstance(data, Mapping):
            raise ValidationError("each action must be an object")
        gain = data.get("expectedApyGain", 0.0)
        return cls(
            type=_enum_value(ActionType, data.get("type"), "action.type"),
            from_position=PositionRef.from_dict(data.get("from"), "action.from"),
            to_position=PositionRef.from_dict(data.get("to"), "action.to"),
            expected_apy_gain=_number(gain, "action.expectedApyGain") if gain is not None else 0.0,
        )


@dataclass(frozen=True)
class RiskAnalysis:
    """Risk scores before and after the decision, both on a 0-100 scale"""
    current_risk_score: float
    proposed_risk_score: float
    risk_change: RiskChange

    def __post_init__(self):
        for name in ("current_risk_score", "proposed_risk_score"):
            score = getattr(self, name)
            if not 0 <= score <= 100:
                raise ValidationError(f"riskAnalysis.{name} must be within [0, 100]")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currentRiskScore": self.current_risk_score,
            "proposedRiskScore": self.proposed_risk_score,
            "riskChange": self.risk_change.value,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Optional["RiskAnalysis"]:
        if data is None:
            return None
        if not isinstance(data, Mapping):
            raise ValidationError("riskAnalysis must be an object")
        return cls(
            current_risk_score=_number(data.get("currentRiskScore"), "riskAnalysis.currentRiskScore"),
            proposed_risk_score=_number(data.get("proposedRiskScore"), "riskAnalysis.proposedRiskScore"),
            risk_change=_enum_value(RiskChange, data.get("riskChange"), "riskAnalysis.riskChange"),
        )


@dataclass(frozen=True)
class DecisionRecord:
    """
    A single recorded agent decision - Immutable.

    `confidence` is always the [0, 1] fraction; the percentage form is only
    ever derived for display (`confidence_pct`).
    """
    id: str
    timestamp: int
    type: DecisionType
    confidence: float
    executed: bool
    has_error: bool
    protocols: Tuple[str, ...]
    assets: Tuple[str, ...]
    risk_change: RiskChange
    apy_impact: float
    reasoning_preview: str
    full_reasoning: Optional[str] = None
    actions: Tuple[DecisionAction, ...] = ()
    tx_ids: Tuple[str, ...] = ()
    risk_analysis: Optional[RiskAnalysis] = None
    portfolio_snapshot: Optional[Dict[str, Any]] = None
    strategy_config: Optional[Dict[str, Any]] = None
    market_conditions: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if not self.id or not DECISION_ID_PATTERN.match(self.id):
            raise ValidationError("id must have the form <unix-ms>-<suffix>")
        if isinstance(self.timestamp, bool) or not isinstance(self.timestamp, int) or self.timestamp < 0:
            raise ValidationError("timestamp must be a non-negative integer (ms)")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValidationError("confidence must be within [0, 1]")
        if not math.isfinite(self.apy_impact):
            raise ValidationError("apyImpact must be a finite number")
        if not self.reasoning_preview:
            raise ValidationError("reasoningPreview is required")
        if len(self.reasoning_preview) > REASONING_PREVIEW_MAX_LENGTH:
            raise ValidationError(
                f"reasoningPreview must be at most {REASONING_PREVIEW_MAX_LENGTH} characters"
            )
        if self.executed and not self.tx_ids:
            raise ValidationError("executed decisions must list at least one txId")
        if self.has_error and self.executed and not self.actions:
            raise ValidationError("executed decisions with errors must list the attempted actions")
        if self.type == DecisionType.HOLD:
            if self.apy_impact != 0:
                raise ValidationError("apyImpact must be 0 for hold decisions")
            if self.actions:
                raise ValidationError("hold decisions cannot carry actions")

    @property
    def confidence_pct(self) -> float:
        """Confidence as a 0-100 percentage, one decimal"""
        return round(self.confidence * 100, 1)

    @property
    def time_iso(self) -> str:
        return ms_to_iso(self.timestamp)

    @property
    def date(self) -> str:
        return ms_to_date_str(self.timestamp)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp,
            "time": self.time_iso,
            "type": self.type.value,
            "confidence": self.confidence,
            "executed": self.executed,
            "hasError": self.has_error,
            "protocols": list(self.protocols),
            "assets": list(self.assets),
            "riskChange": self.risk_change.value,
            "apyImpact": self.apy_impact,
            "reasoningPreview": self.reasoning_preview,
            "actions": [a.to_dict() for a in self.actions],
            "txIds": list(self.tx_ids),
        }
        if self.full_reasoning is not None:
            data["fullReasoning"] = self.full_reasoning
        if self.risk_analysis is not None:
            data["riskAnalysis"] = self.risk_analysis.to_dict()
        if self.portfolio_snapshot is not None:
            data["portfolioSnapshot"] = self.portfolio_snapshot
        if self.strategy_config is not None:
            data["strategyConfig"] = self.strategy_config
        if self.market_conditions is not None:
            data["marketConditions"] = self.market_conditions
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DecisionRecord":
        """Build a record from its camelCase wire form, raising ValidationError on bad input"""
        if not isinstance(data, Mapping):
            raise ValidationError("decision must be an object")
        for required in ("id", "timestamp", "type", "confidence", "reasoningPreview"):
            if data.get(required) is None:
                raise ValidationError(f"{required} is required")

        actions = data.get("actions") or []
        if not isinstance(actions, (list, tuple)):
            raise ValidationError("actions must be a list")

        full_reasoning = data.get("fullReasoning")
        if full_reasoning is not None and not isinstance(full_reasoning, str):
            raise ValidationError("fullReasoning must be a string")
        preview = data.get("reasoningPreview")
        if not isinstance(preview, str):
            raise ValidationError("reasoningPreview must be a string")
        if not isinstance(data.get("id"), str):
            raise ValidationError("id must be a string")

        return cls(
            id=data["id"],
            timestamp=data["timestamp"],
            type=_enum_value(DecisionType, data["type"], "type"),
            confidence=_number(data["confidence"], "confidence"),
            executed=_flag(data.get("executed"), "executed"),
            has_error=_flag(data.get("hasError"), "hasError"),
            protocols=unique_in_order(_string_tuple(data.get("protocols"), "protocols")),
            assets=_string_tuple(data.get("assets"), "assets"),
            risk_change=_enum_value(RiskChange, data.get("riskChange", "unchanged"), "riskChange"),
            apy_impact=_number(data.get("apyImpact", 0.0), "apyImpact"),
            reasoning_preview=preview,
            full_reasoning=full_reasoning,
            actions=tuple(DecisionAction.from_dict(a) for a in actions),
            tx_ids=_string_tuple(data.get("txIds"), "txIds"),
            risk_analysis=RiskAnalysis.from_dict(data.get("riskAnalysis")),
            portfolio_snapshot=_optional_mapping(data.get("portfolioSnapshot"), "portfolioSnapshot"),
            strategy_config=_optional_mapping(data.get("strategyConfig"), "strategyConfig"),
            market_conditions=_optional_mapping(data.get("marketConditions"), "marketConditions"),
        )


@dataclass(frozen=True)
class CommitmentEntry:
    """Recorded decision trace keyed by its content hash"""
    hash: str
    trace: Dict[str, Any]
    recorded_at: datetime
    commitment: Optional[str] = None

    @property
    def status(self) -> CommitmentStatus:
        if self.commitment:
            return CommitmentStatus.COMMITTED_ONCHAIN
        return CommitmentStatus.LOCAL_RECORD

    @property
    def recorded_at_iso(self) -> str:
        return datetime_to_iso(self.recorded_at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hash": self.hash,
            "trace": self.trace,
            "commitment": self.commitment,
            "recordedAt": self.recorded_at_iso,
        }


@dataclass(frozen=True)
class YieldOpportunity:
    """Ranked yield opportunity returned to callers"""
    protocol: str
    asset: str
    apy: float
    tvl: int
    risk: RiskLevel
    supported: bool
    pool: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "protocol": self.protocol,
            "asset": self.asset,
            "apy": self.apy,
            "tvl": self.tvl,
            "risk": self.risk.value,
            "supported": self.supported,
            "pool": self.pool,
        }


@dataclass(frozen=True)
class DecisionStats:
    """Aggregate statistics over a set of decision records"""
    total_decisions: int
    execution_rate: float
    avg_confidence: float
    error_rate: float
    total_apy_gained: float
    by_type: Dict[str, int] = field(default_factory=dict)
    by_protocol: Dict[str, int] = field(default_factory=dict)
    risk_changes: Dict[str, int] = field(default_factory=dict)
    first_timestamp: Optional[int] = None
    last_timestamp: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalDecisions": self.total_decisions,
            "executionRate": round(self.execution_rate, 6),
            "avgConfidence": round(self.avg_confidence, 6),
            "errorRate": round(self.error_rate, 6),
            "totalApyGained": round(self.total_apy_gained, 6),
            "byType": dict(self.by_type),
            "byProtocol": dict(self.by_protocol),
            "riskChanges": dict(self.risk_changes),
        }


@dataclass(frozen=True)
class TimelineBucket:
    """Decision activity within one hour or day"""
    label: str
    timestamp: int
    decisions: int
    rebalances: int
    holds: int
    executed: int
    avg_confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "timestamp": self.timestamp,
            "decisions": self.decisions,
            "rebalances": self.rebalances,
            "holds": self.holds,
            "executed": self.executed,
            "avgConfidence": round(self.avg_confidence, 4),
        }
