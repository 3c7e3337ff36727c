"""
Decision Service
High-level service for the decision audit trail

Creates records from producer drafts and orchestrates query, export,
statistics, timeline and replay over a DecisionStore.
"""

import logging
import secrets
import string
from typing import Any, Dict, List, Mapping, Optional

from app.domain.errors import ValidationError
from app.domain.models import DecisionRecord, DecisionType, TimelineBucket
from app.domain.models.entities import unique_in_order
from app.domain.services.audit_export import AuditExport, ExportFormat, export_records
from app.domain.services.config_engine import AuditConfig
from app.domain.services.decision_analytics import (
    ReplayContext,
    build_replay_context,
    build_timeline,
    compute_statistics,
)
from app.domain.services.decision_query import DecisionQuery, QueryPage, filter_decisions, query_decisions
from app.domain.stores import DecisionStore
from app.utils.time import ms_to_iso, now_ms

logger = logging.getLogger(__name__)

ID_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits
ID_SUFFIX_LENGTH = 8


def generate_decision_id(timestamp: int) -> str:
    """`<unix-ms>-<8 base-36 chars>`"""
    suffix = "".join(secrets.choice(ID_SUFFIX_ALPHABET) for _ in range(ID_SUFFIX_LENGTH))
    return f"{timestamp}-{suffix}"


def _action_sides(actions) -> List[Mapping[str, Any]]:
    sides = []
    for action in actions:
        if not isinstance(action, Mapping):
            continue
        for key in ("from", "to"):
            side = action.get(key)
            if isinstance(side, Mapping):
                sides.append(side)
    return sides


def complete_draft(draft: Mapping[str, Any], timestamp: Optional[int] = None) -> Dict[str, Any]:
    """
    Fill in the fields a producer may omit.

    id/timestamp are assigned; protocols, assets and apyImpact are derived
    from actions when absent.
    """
    if not isinstance(draft, Mapping):
        raise ValidationError("decision must be an object")

    data = dict(draft)
    if data.get("timestamp") is None:
        data["timestamp"] = timestamp if timestamp is not None else now_ms()
    if data.get("id") is None:
        if isinstance(data["timestamp"], bool) or not isinstance(data["timestamp"], int):
            raise ValidationError("timestamp must be a non-negative integer (ms)")
        data["id"] = generate_decision_id(data["timestamp"])

    actions = data.get("actions") or []
    if not isinstance(actions, (list, tuple)):
        raise ValidationError("actions must be a list")
    sides = _action_sides(actions)

    if data.get("protocols") is None:
        data["protocols"] = list(unique_in_order(s.get("protocol") for s in sides))
    if data.get("assets") is None:
        data["assets"] = list(unique_in_order(s.get("asset") for s in sides))
    if data.get("apyImpact") is None:
        if data.get("type") == DecisionType.HOLD.value:
            data["apyImpact"] = 0.0
        else:
            gains = [a.get("expectedApyGain") for a in actions if isinstance(a, Mapping)]
            data["apyImpact"] = float(sum(g for g in gains if isinstance(g, (int, float)) and not isinstance(g, bool)))

    return data


class DecisionService:
    """
    Decision Service
    Orchestrates the audit trail from draft to export
    """

    def __init__(self, store: DecisionStore, audit_config: AuditConfig):
        self.store = store
        self.audit_config = audit_config

    async def record(self, draft: Mapping[str, Any]) -> DecisionRecord:
        """
        Validate and persist a decision draft

        Raises:
            ValidationError: invalid draft
            ConflictError: id already stored
        """
        record = DecisionRecord.from_dict(complete_draft(draft))
        await self.store.append(record)
        logger.info(
            "Recorded %s decision %s (confidence=%.2f executed=%s)",
            record.type.value, record.id, record.confidence, record.executed,
        )
        return record

    async def get(self, decision_id: str) -> DecisionRecord:
        return await self.store.get(decision_id)

    async def query(self, query: DecisionQuery) -> QueryPage:
        return query_decisions(await self.store.list_all(), query)

    async def export(self, query: DecisionQuery, fmt: ExportFormat) -> AuditExport:
        """Export every record matching the query's filters (pagination ignored)"""
        records = filter_decisions(await self.store.list_all(), query.without_pagination())
        return export_records(
            records,
            fmt,
            version=self.audit_config.export_version,
            compliance=self.audit_config.compliance.to_dict(),
        )

    async def statistics(self) -> Dict[str, Any]:
        records = await self.store.list_all()
        stats = compute_statistics(records)
        summary = stats.to_dict()
        first, last = stats.first_timestamp, stats.last_timestamp

        return {
            "success": True,
            "description": "Decision-making statistics",
            "summary": {
                "totalDecisions": summary["totalDecisions"],
                "executionRate": summary["executionRate"],
                "avgConfidence": summary["avgConfidence"],
                "errorRate": summary["errorRate"],
                "totalApyGained": summary["totalApyGained"],
            },
            "byDecisionType": summary["byType"],
            "byProtocol": summary["byProtocol"],
            "riskChanges": summary["riskChanges"],
            "timeRange": {
                "first": ms_to_iso(first) if first is not None else None,
                "last": ms_to_iso(last) if last is not None else None,
                "daysActive": len({r.date for r in records}),
            },
        }

    async def timeline(self, group_by: str = "day") -> List[TimelineBucket]:
        return build_timeline(await self.store.list_all(), group_by)

    async def replay(self, decision_id: str) -> ReplayContext:
        decision = await self.store.get(decision_id)
        return build_replay_context(
            decision,
            await self.store.list_all(),
            context_size=self.audit_config.replay_context_size,
        )
