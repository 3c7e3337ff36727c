"""
Audit Trail API Routes
Decision history query, creation, statistics, timeline, replay and export
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import Response

from app.api.deps import get_decision_service
from app.config import settings
from app.domain.services.audit_export import ExportFormat
from app.domain.services.decision_query import DEFAULT_LIMIT, DecisionQuery
from app.domain.services.decision_service import DecisionService
from app.utils.time import now_utc

logger = logging.getLogger(__name__)
router = APIRouter()


def _echo(values) -> Any:
    return list(values) if values else "all"


@router.get("/decisions")
async def list_decisions(
    type: Optional[str] = Query(None, description="Comma-separated decision types"),
    protocol: Optional[str] = Query(None, description="Comma-separated protocol names"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    limit: int = DEFAULT_LIMIT,
    offset: int = 0,
    asset: Optional[str] = Query(None, description="Comma-separated asset symbols"),
    min_confidence: Optional[float] = Query(None, alias="minConfidence"),
    executed_only: bool = Query(False, alias="executedOnly"),
    with_errors: Optional[bool] = Query(None, alias="withErrors"),
    service: DecisionService = Depends(get_decision_service),
):
    """
    Query decision history

    Filters combine with AND; values inside one filter combine with OR.
    """
    query = DecisionQuery.from_params(
        type_csv=type,
        protocol_csv=protocol,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
        asset_csv=asset,
        min_confidence=min_confidence,
        executed_only=executed_only,
        with_errors=with_errors,
    )
    page = await service.query(query)

    return {
        "success": True,
        "description": "Decision audit trail - every decision with full reasoning",
        "query": {
            "type": _echo([t.value for t in query.types]),
            "protocol": _echo(query.protocols),
            "startDate": start_date,
            "endDate": end_date,
            "limit": page.limit,
            "offset": page.offset,
        },
        "count": page.count,
        "total": page.total,
        "decisions": [r.to_dict() for r in page.items],
        "pagination": {
            "limit": page.limit,
            "offset": page.offset,
            "hasMore": page.has_more,
        },
    }


@router.post("/decisions", status_code=201)
async def create_decision(
    draft: Dict[str, Any] = Body(...),
    service: DecisionService = Depends(get_decision_service),
):
    """Record a decision produced by the agent"""
    record = await service.record(draft)
    return {"success": True, "id": record.id, "decision": record.to_dict()}


@router.get("/decisions/{decision_id}")
async def get_decision(
    decision_id: str,
    service: DecisionService = Depends(get_decision_service),
):
    record = await service.get(decision_id)
    return {"success": True, "decision": record.to_dict()}


@router.get("/stats")
async def decision_stats(service: DecisionService = Depends(get_decision_service)):
    return await service.statistics()


@router.get("/timeline")
async def decision_timeline(
    group_by: str = Query("day", alias="groupBy"),
    service: DecisionService = Depends(get_decision_service),
):
    buckets = await service.timeline(group_by)
    return {
        "success": True,
        "groupBy": group_by,
        "bucketCount": len(buckets),
        "timeline": [b.to_dict() for b in buckets],
    }


@router.get("/replay/{decision_id}")
async def replay_decision(
    decision_id: str,
    service: DecisionService = Depends(get_decision_service),
):
    """Decision with the context that preceded it"""
    context = await service.replay(decision_id)
    return {
        "success": True,
        "decision": context.decision.to_dict(),
        "previousDecisions": [r.to_dict() for r in context.previous_decisions],
        "summary": context.summary,
    }


@router.get("/export")
async def export_decisions(
    format: Optional[str] = Query("json"),
    type: Optional[str] = None,
    protocol: Optional[str] = None,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    service: DecisionService = Depends(get_decision_service),
):
    """
    Compliance export as JSON envelope, CSV or Markdown report

    Pagination does not apply; every matching record is exported.
    """
    fmt = ExportFormat.parse(format)
    query = DecisionQuery.from_params(
        type_csv=type,
        protocol_csv=protocol,
        start_date=start_date,
        end_date=end_date,
    )
    export = await service.export(query, fmt)

    filename = f"{settings.EXPORT_FILENAME_PREFIX}-audit-{now_utc().date().isoformat()}.{export.extension}"
    headers = {
        "Content-Disposition": f'attachment; filename="{filename}"',
        "X-Audit-Chain-Hash": export.chain_hash,
        "X-Audit-Record-Count": str(export.record_count),
    }
    logger.info("Serving %s export %s (%d records)", fmt.value, filename, export.record_count)
    return Response(content=export.content, media_type=export.media_type, headers=headers)
