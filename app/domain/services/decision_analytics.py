"""
Decision Analytics
Statistics, timeline buckets and replay context over decision records.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Sequence

from app.domain.errors import ValidationError
from app.domain.models import (
    DecisionRecord,
    DecisionStats,
    DecisionType,
    RiskAnalysis,
    RiskChange,
    TimelineBucket,
)
from app.utils.time import ms_to_datetime, ms_to_iso

_HOUR_MS = 3_600_000
_DAY_MS = 86_400_000


def compute_statistics(records: Sequence[DecisionRecord]) -> DecisionStats:
    """
    Aggregate statistics; every rate is 0 for an empty set.

    totalApyGained only counts executed decisions.
    """
    total = len(records)
    by_type: Dict[str, int] = {t.value: 0 for t in DecisionType}
    risk_changes: Dict[str, int] = {r.value: 0 for r in RiskChange}
    by_protocol: Counter = Counter()

    for record in records:
        by_type[record.type.value] += 1
        risk_changes[record.risk_change.value] += 1
        by_protocol.update(record.protocols)

    if total == 0:
        return DecisionStats(
            total_decisions=0,
            execution_rate=0.0,
            avg_confidence=0.0,
            error_rate=0.0,
            total_apy_gained=0.0,
            by_type=by_type,
            by_protocol={},
            risk_changes=risk_changes,
        )

    executed = sum(1 for r in records if r.executed)
    errors = sum(1 for r in records if r.has_error)
    timestamps = [r.timestamp for r in records]

    return DecisionStats(
        total_decisions=total,
        execution_rate=executed / total,
        avg_confidence=sum(r.confidence for r in records) / total,
        error_rate=errors / total,
        total_apy_gained=sum(r.apy_impact for r in records if r.executed),
        by_type=by_type,
        # Sorted so the JSON export is byte-stable
        by_protocol=dict(sorted(by_protocol.items())),
        risk_changes=risk_changes,
        first_timestamp=min(timestamps),
        last_timestamp=max(timestamps),
    )


def build_timeline(records: Sequence[DecisionRecord], group_by: str = "day") -> List[TimelineBucket]:
    """Group records into hour or day buckets, oldest bucket first"""
    if group_by not in ("hour", "day"):
        raise ValidationError("groupBy must be 'hour' or 'day'")
    width = _HOUR_MS if group_by == "hour" else _DAY_MS

    grouped: Dict[int, List[DecisionRecord]] = {}
    for record in records:
        start = record.timestamp - (record.timestamp % width)
        grouped.setdefault(start, []).append(record)

    buckets = []
    for start in sorted(grouped):
        members = grouped[start]
        moment = ms_to_datetime(start)
        label = moment.strftime("%Y-%m-%dT%H:00") if group_by == "hour" else moment.date().isoformat()
        buckets.append(
            TimelineBucket(
                label=label,
                timestamp=start,
                decisions=len(members),
                rebalances=sum(1 for r in members if r.type == DecisionType.REBALANCE),
                holds=sum(1 for r in members if r.type == DecisionType.HOLD),
                executed=sum(1 for r in members if r.executed),
                avg_confidence=sum(r.confidence for r in members) / len(members),
            )
        )
    return buckets


@dataclass(frozen=True)
class ReplayContext:
    decision: DecisionRecord
    previous_decisions: List[DecisionRecord]
    summary: str


def build_replay_context(
    decision: DecisionRecord,
    records: Sequence[DecisionRecord],
    context_size: int = 5,
) -> ReplayContext:
    """
    Decision plus the decisions made just before it.

    `records` must be newest-first.
    """
    previous = [r for r in records if r.timestamp < decision.timestamp][:context_size]
    return ReplayContext(
        decision=decision,
        previous_decisions=previous,
        summary=render_replay_summary(decision, previous),
    )


def risk_analysis_lines(risk_analysis: RiskAnalysis) -> List[str]:
    """Markdown bullet lines for a risk analysis block"""
    return [
        f"- Current Risk Score: {risk_analysis.current_risk_score:g}/100",
        f"- Proposed Risk Score: {risk_analysis.proposed_risk_score:g}/100",
        f"- Risk Change: {risk_analysis.risk_change.value}",
    ]


def render_replay_summary(decision: DecisionRecord, previous: Sequence[DecisionRecord]) -> str:
    lines = [
        "# Decision Replay Summary",
        "",
        f"**Decision ID:** {decision.id}",
        f"**Time:** {ms_to_iso(decision.timestamp)}",
        f"**Type:** {decision.type.value.upper()}",
        f"**Confidence:** {decision.confidence * 100:.0f}%",
        f"**Executed:** {'Yes' if decision.executed else 'No'}",
        "",
    ]

    snapshot = decision.portfolio_snapshot or {}
    if snapshot:
        lines.append("## Portfolio at Decision Time")
        if "totalValue" in snapshot:
            lines.append(f"- Total Value: ${float(snapshot['totalValue']):.2f}")
        if "weightedApy" in snapshot:
            lines.append(f"- Weighted APY: {float(snapshot['weightedApy']):.2f}%")
        if isinstance(snapshot.get("positions"), list):
            lines.append(f"- Positions: {len(snapshot['positions'])}")
        lines.append("")

    if decision.risk_analysis:
        lines.append("## Risk Analysis")
        lines.extend(risk_analysis_lines(decision.risk_analysis))
        lines.append("")

    lines.append("## Full Reasoning")
    lines.append("```")
    lines.append(decision.full_reasoning or decision.reasoning_preview)
    lines.append("```")
    lines.append("")

    if decision.actions:
        lines.append("## Actions")
        for action in decision.actions:
            source = action.from_position.asset if action.from_position and action.from_position.asset else "(none)"
            target = action.to_position.asset if action.to_position and action.to_position.asset else "(none)"
            lines.append(f"- **{action.type.value}**: {source} -> {target}")
            lines.append(f"  - Expected APY Gain: +{action.expected_apy_gain:.2f}%")
        lines.append("")

    if decision.executed:
        lines.append("## Execution")
        lines.append("- Status: Executed")
        lines.append(f"- Transaction IDs: {', '.join(decision.tx_ids)}")
        lines.append("")
    elif decision.has_error:
        lines.append("## Execution")
        lines.append("- Status: Failed")
        lines.append("")

    if previous:
        lines.append("## Previous Decisions (Context)")
        for prev in previous:
            lines.append(
                f"- {ms_to_iso(prev.timestamp)}: {prev.type.value} ({prev.confidence * 100:.0f}% conf)"
            )

    return "\n".join(lines)
