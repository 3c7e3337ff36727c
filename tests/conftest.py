from pathlib import Path
from typing import AsyncGenerator, List, Optional

import pytest
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.api.errors import register_exception_handlers
from app.api.responses import PrettyJSONResponse
from app.api.routes import audit, health, verify, yields
from app.domain.errors import UpstreamError
from app.domain.models import DecisionRecord
from app.domain.services.commitment_service import CommitmentService, DuplicatePolicy
from app.domain.services.config_engine import ConfigEngine
from app.domain.services.decision_service import DecisionService
from app.domain.services.yield_ranking import YieldRankingService
from app.infrastructure.db.database import Base
from app.infrastructure.db import models  # noqa: F401
from app.infrastructure.stores.memory import InMemoryCommitmentStore, InMemoryDecisionStore

CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


def make_decision(**overrides) -> DecisionRecord:
    """Valid record with sensible defaults; keyword args use the wire (camelCase) names"""
    data = {
        "id": "1706918400000-abc12345",
        "timestamp": 1706918400000,
        "type": "hold",
        "confidence": 0.9,
        "executed": False,
        "hasError": False,
        "protocols": [],
        "assets": [],
        "riskChange": "unchanged",
        "apyImpact": 0,
        "reasoningPreview": "Holding current position",
    }
    data.update(overrides)
    return DecisionRecord.from_dict(data)


def rebalance_decision(**overrides) -> DecisionRecord:
    data = {
        "id": "1706918400000-rf2k8m",
        "timestamp": 1706918400000,
        "type": "rebalance",
        "confidence": 0.82,
        "executed": True,
        "protocols": ["marinade", "kamino"],
        "assets": ["mSOL", "USDC"],
        "riskChange": "decreased",
        "apyImpact": 4.3,
        "reasoningPreview": 'Moving to Kamino "USDC" vault, risk 25',
        "txIds": ["5cGz9XnBhPvHmTzYkQrNpqJmvwRsK3kLxMbYdEfA7hJc"],
    }
    data.update(overrides)
    return make_decision(**data)


class FakePoolFeed:
    def __init__(self, pools: Optional[List[dict]] = None, error: bool = False):
        self.pools = pools or []
        self.error = error
        self.calls = 0

    async def fetch_pools(self):
        self.calls += 1
        if self.error:
            raise UpstreamError("Failed to fetch yields")
        return self.pools


class FakeSecondaryFeed:
    def __init__(self, rows: Optional[List[dict]] = None, error: bool = False):
        self.rows = rows or []
        self.error = error

    async def fetch_yields(self):
        if self.error:
            raise UpstreamError("Trading-fee feed unavailable")
        return self.rows


@pytest.fixture()
def config_engine() -> ConfigEngine:
    engine = ConfigEngine(CONFIG_DIR)
    engine.load_all()
    return engine


@pytest.fixture()
async def db_engine(tmp_path):
    db_path = tmp_path / "test.db"
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{db_path}",
        echo=False
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(db_engine) -> async_sessionmaker:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
        # cleanup
        await session.rollback()
        for table in reversed(Base.metadata.sorted_tables):
            await session.execute(table.delete())
        await session.commit()


@pytest.fixture()
def decision_store() -> InMemoryDecisionStore:
    return InMemoryDecisionStore()


@pytest.fixture()
def commitment_store() -> InMemoryCommitmentStore:
    return InMemoryCommitmentStore()


@pytest.fixture()
def pool_feed() -> FakePoolFeed:
    return FakePoolFeed()


@pytest.fixture()
def secondary_feed() -> FakeSecondaryFeed:
    return FakeSecondaryFeed()


@pytest.fixture()
def duplicate_policy() -> DuplicatePolicy:
    return DuplicatePolicy.OVERWRITE


@pytest.fixture()
async def app(
    config_engine,
    decision_store,
    commitment_store,
    pool_feed,
    secondary_feed,
    duplicate_policy,
) -> FastAPI:
    app = FastAPI(default_response_class=PrettyJSONResponse)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
    register_exception_handlers(app)

    app.include_router(health.router, tags=["Health"])
    app.include_router(audit.router, prefix="/api/audit", tags=["Audit Trail"])
    app.include_router(verify.router, prefix="/api", tags=["Verification"])
    app.include_router(yields.router, prefix="/api", tags=["Yields"])

    app.state.db_engine = None
    app.state.config_engine = config_engine
    app.state.decision_service = DecisionService(decision_store, config_engine.audit)
    app.state.commitment_service = CommitmentService(
        commitment_store,
        protocol=config_engine.verification,
        public_base_url="http://test",
        duplicate_policy=duplicate_policy,
    )
    app.state.yield_service = YieldRankingService(
        config_engine.yield_ranking, pool_feed, secondary_feed
    )

    return app


@pytest.fixture()
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
