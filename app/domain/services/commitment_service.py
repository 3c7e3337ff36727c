"""
Commitment Service
Record decision traces under their content hash and verify claimed hashes.

RESPONSIBILITIES:
- Validate commit requests
- Apply the duplicate-hash policy
- Pure lookup on verify (never mutates)
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from app.domain.errors import NotFound, ValidationError
from app.domain.models import CommitmentEntry, CommitmentStatus
from app.domain.services.config_engine import VerificationProtocolConfig
from app.domain.stores import CommitmentStore
from app.utils.time import now_utc

logger = logging.getLogger(__name__)

MAX_HASH_LENGTH = 256


class DuplicatePolicy(str, Enum):
    OVERWRITE = "overwrite"
    REJECT = "reject"


@dataclass(frozen=True)
class CommitResult:
    hash: str
    status: CommitmentStatus
    replaced: bool
    verify_url: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "hash": self.hash,
            "status": self.status.value,
            "verifyUrl": self.verify_url,
            "replaced": self.replaced,
        }


def validate_commit_request(body: Any) -> tuple:
    """Return (hash, trace, commitment) or raise ValidationError"""
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")

    digest = body.get("hash")
    trace = body.get("trace")
    commitment = body.get("commitment")

    if not digest or trace is None:
        raise ValidationError("Missing hash or trace")
    if not isinstance(digest, str):
        raise ValidationError("hash must be a string")
    if len(digest) > MAX_HASH_LENGTH:
        raise ValidationError(f"hash must be at most {MAX_HASH_LENGTH} characters")
    if not isinstance(trace, dict):
        raise ValidationError("trace must be a JSON object")
    if commitment is not None and not isinstance(commitment, str):
        raise ValidationError("commitment must be a string")

    return digest, trace, commitment or None


class CommitmentService:
    """Commit/verify protocol over a CommitmentStore"""

    def __init__(
        self,
        store: CommitmentStore,
        protocol: VerificationProtocolConfig,
        public_base_url: str,
        duplicate_policy: DuplicatePolicy = DuplicatePolicy.OVERWRITE,
    ):
        self.store = store
        self.protocol = protocol
        self.public_base_url = public_base_url.rstrip("/")
        self.duplicate_policy = DuplicatePolicy(duplicate_policy)

    def verify_url(self, digest: str) -> str:
        return f"{self.public_base_url}/api/verify?hash={quote(digest, safe='')}"

    def onchain_lookup_url(self, digest: str) -> str:
        return f"{self.protocol.onchain_lookup_url}{digest}"

    async def commit(
        self,
        digest: str,
        trace: Dict[str, Any],
        commitment: Optional[str] = None,
    ) -> CommitResult:
        """
        Record a trace under its hash.

        Raises:
            ConflictError: hash already recorded and policy is reject
        """
        entry = CommitmentEntry(
            hash=digest,
            trace=trace,
            commitment=commitment,
            recorded_at=now_utc(),
        )
        replaced = await self.store.put(
            entry, overwrite=self.duplicate_policy == DuplicatePolicy.OVERWRITE
        )
        if replaced:
            logger.info("Commitment %s replaced existing entry", digest)
        else:
            logger.info("Commitment %s recorded (%s)", digest, entry.status.value)

        return CommitResult(
            hash=digest,
            status=entry.status,
            replaced=replaced,
            verify_url=self.verify_url(digest),
        )

    async def verify(self, digest: str) -> CommitmentEntry:
        entry = await self.store.get(digest)
        if entry is None:
            raise NotFound(f"No commitment recorded for hash {digest}")
        return entry

    async def list_recent(self, limit: int = 20) -> List[CommitmentEntry]:
        if limit < 1:
            raise ValidationError("limit must be a positive integer")
        return await self.store.list_recent(limit)

    async def count(self) -> int:
        return await self.store.count()

    def verification_payload(self, entry: CommitmentEntry) -> Dict[str, Any]:
        """GET /verify?hash= response for a recorded entry"""
        status = "verified_onchain" if entry.status == CommitmentStatus.COMMITTED_ONCHAIN else "local_record"
        return {
            "found": True,
            **entry.to_dict(),
            "verification": {
                "protocol": self.protocol.name,
                "hashMatch": True,
                "status": status,
            },
        }

    def summarize(self, entry: CommitmentEntry) -> Dict[str, Any]:
        """Compact listing row for one entry"""
        action = entry.trace.get("action")
        return {
            "hash": entry.hash,
            "agent": entry.trace.get("agent") or self.protocol.default_agent,
            "action": (action.get("type") if isinstance(action, dict) else None) or "unknown",
            "timestamp": entry.recorded_at_iso,
            "status": "onchain" if entry.commitment else "local",
        }

    async def overview(self, limit: int = 20) -> Dict[str, Any]:
        recent = await self.list_recent(limit)
        return {
            "protocol": self.protocol.name,
            "description": self.protocol.description,
            "totalDecisions": await self.count(),
            "recentDecisions": [self.summarize(e) for e in recent],
            "docs": self.protocol.docs_url,
            "integration": {
                "status": "active",
                "features": list(self.protocol.features),
            },
        }
