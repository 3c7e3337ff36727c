"""
Verification API Routes
Commit decision traces by hash and verify claimed hashes
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, StrictStr

from app.api.deps import get_commitment_service, get_config_engine
from app.api.responses import PrettyJSONResponse
from app.domain.errors import NotFound
from app.domain.services.commitment_service import CommitmentService, validate_commit_request
from app.domain.services.config_engine import ConfigEngine

router = APIRouter()


# Request models
class CommitRequest(BaseModel):
    hash: Optional[StrictStr] = None
    trace: Optional[Dict[str, Any]] = None
    commitment: Optional[StrictStr] = None


@router.post("/verify")
async def commit_trace(
    body: CommitRequest,
    service: CommitmentService = Depends(get_commitment_service),
):
    """
    Record a decision trace under its hash

    Returns 409 when the hash exists and duplicates are rejected.
    """
    digest, trace, commitment = validate_commit_request(body.model_dump())
    result = await service.commit(digest, trace, commitment)
    return result.to_dict()


@router.get("/verify")
async def verify_or_list(
    hash: Optional[str] = Query(None, description="Hash to verify"),
    service: CommitmentService = Depends(get_commitment_service),
    config_engine: ConfigEngine = Depends(get_config_engine),
):
    """
    Verify one hash, or describe the protocol and list recent commitments
    when no hash is given.
    """
    if hash:
        try:
            entry = await service.verify(hash)
        except NotFound:
            return PrettyJSONResponse(
                status_code=404,
                content={
                    "found": False,
                    "hash": hash,
                    "suggestion": (
                        "This hash may be committed onchain. Check "
                        + service.onchain_lookup_url(hash)
                    ),
                },
            )
        return service.verification_payload(entry)

    return await service.overview(config_engine.audit.recent_commitments_limit)
