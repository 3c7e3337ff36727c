"""
Route dependencies
Services are created in the application lifespan and kept on app.state.
"""

from fastapi import Request

from app.domain.errors import AuditServiceError
from app.domain.services.commitment_service import CommitmentService
from app.domain.services.config_engine import ConfigEngine
from app.domain.services.decision_service import DecisionService
from app.domain.services.yield_ranking import YieldRankingService


def _state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise AuditServiceError(f"{name} not initialized")
    return value


def get_config_engine(request: Request) -> ConfigEngine:
    return _state(request, "config_engine")


def get_decision_service(request: Request) -> DecisionService:
    return _state(request, "decision_service")


def get_commitment_service(request: Request) -> CommitmentService:
    return _state(request, "commitment_service")


def get_yield_service(request: Request) -> YieldRankingService:
    return _state(request, "yield_service")
