"""
FastAPI Main Application
Decision audit trail, commitment verification and yield ranking
"""

from contextlib import asynccontextmanager
from pathlib import Path
import logging
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.errors import register_exception_handlers
from app.api.responses import PrettyJSONResponse
from app.config import settings
from app.core.logging import setup_logging
from app.domain.services.commitment_service import CommitmentService, DuplicatePolicy
from app.domain.services.config_engine import ConfigEngine
from app.domain.services.decision_service import DecisionService
from app.domain.services.yield_ranking import YieldRankingService
from app.infrastructure.fixtures.demo_decisions import seed_demo_decisions
from app.infrastructure.stores.memory import InMemoryCommitmentStore, InMemoryDecisionStore
from app.infrastructure.yield_feeds.defillama_client import DefiLlamaClient
from app.infrastructure.yield_feeds.trading_fee_client import TradingFeeClient

# Configure logging
setup_logging(
    level=settings.LOG_LEVEL,
    log_file=settings.LOG_FILE,
    max_bytes=settings.LOG_MAX_BYTES,
    backup_count=settings.LOG_BACKUP_COUNT,
)
logger = logging.getLogger(__name__)

CONFIG_DIR = Path(__file__).parent.parent / "config"


def build_services(app: FastAPI, config_engine: ConfigEngine, decision_store, commitment_store, yield_service) -> None:
    """Attach domain services to app.state for the route dependencies"""
    app.state.config_engine = config_engine
    app.state.decision_service = DecisionService(decision_store, config_engine.audit)
    app.state.commitment_service = CommitmentService(
        commitment_store,
        protocol=config_engine.verification,
        public_base_url=settings.PUBLIC_BASE_URL,
        duplicate_policy=DuplicatePolicy(settings.COMMITMENT_DUPLICATE_POLICY),
    )
    app.state.yield_service = yield_service


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager
    Handles startup and shutdown of storage and feed clients
    """
    # ===================
    # STARTUP
    # ===================
    logger.info("=" * 60)
    logger.info("Starting Decision Audit Service")
    logger.info("=" * 60)

    # 1. Load configuration
    logger.info("Step 1/4: Loading configuration...")
    config_engine = ConfigEngine(CONFIG_DIR)
    config_engine.load_all()
    logger.info(
        "Configuration loaded: chain=%s, %d supported protocols",
        config_engine.yield_ranking.chain,
        len(config_engine.yield_ranking.supported_protocols),
    )

    # 2. Storage
    logger.info("Step 2/4: Initializing storage (%s)...", settings.STORAGE_BACKEND)
    use_database = settings.STORAGE_BACKEND == "database"
    if use_database:
        from app.infrastructure.db.database import async_session_factory, engine, init_db
        from app.infrastructure.stores.sql import SqlCommitmentStore, SqlDecisionStore

        await init_db()
        decision_store = SqlDecisionStore(async_session_factory)
        commitment_store = SqlCommitmentStore(async_session_factory)
        app.state.db_engine = engine
    else:
        decision_store = InMemoryDecisionStore()
        commitment_store = InMemoryCommitmentStore()
        app.state.db_engine = None

    if settings.SEED_DEMO_DECISIONS:
        await seed_demo_decisions(decision_store)

    # 3. Feed clients
    logger.info("Step 3/4: Initializing yield feeds...")
    pool_feed = DefiLlamaClient(settings.YIELD_FEED_URL, timeout=settings.YIELD_FEED_TIMEOUT_SECONDS)
    secondary_feed = None
    if settings.TRADING_FEE_FEED_URL:
        secondary_feed = TradingFeeClient(
            settings.TRADING_FEE_FEED_URL, timeout=settings.YIELD_FEED_TIMEOUT_SECONDS
        )
    yield_service = YieldRankingService(config_engine.yield_ranking, pool_feed, secondary_feed)

    # 4. Services
    logger.info("Step 4/4: Wiring services...")
    build_services(app, config_engine, decision_store, commitment_store, yield_service)

    logger.info("API Server: http://%s:%s", settings.API_HOST, settings.API_PORT)
    logger.info("Commitment duplicate policy: %s", settings.COMMITMENT_DUPLICATE_POLICY)
    logger.info("=" * 60)

    yield

    # ===================
    # SHUTDOWN
    # ===================
    logger.info("Shutting down Decision Audit Service...")
    await yield_service.close()

    if use_database:
        from app.infrastructure.db.database import close_db

        await close_db()
        logger.info("Database connections closed")

    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Decision Audit Service",
    description="Audit trail, hash verification and yield ranking for an autonomous yield agent",
    version="1.0.0",
    default_response_class=PrettyJSONResponse,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Audit-Chain-Hash", "X-Audit-Record-Count"],
)

register_exception_handlers(app)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Decision Audit Service",
        "version": app.version,
        "endpoints": [
            "/api/audit/decisions",
            "/api/audit/stats",
            "/api/audit/timeline",
            "/api/audit/replay/{id}",
            "/api/audit/export",
            "/api/verify",
            "/api/yields",
        ],
        "docs": "/docs",
    }


# Import and include routers
from app.api.routes import audit, health, verify, yields  # noqa: E402

app.include_router(health.router, tags=["Health"])
app.include_router(audit.router, prefix="/api/audit", tags=["Audit Trail"])
app.include_router(verify.router, prefix="/api", tags=["Verification"])
app.include_router(yields.router, prefix="/api", tags=["Yields"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host=settings.API_HOST, port=settings.API_PORT, reload=settings.DEBUG)
