"""Health check endpoint"""

from fastapi import APIRouter, Request
from sqlalchemy import text

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    """Service and database status"""
    db_status = "memory"
    db_error = None
    engine = getattr(request.app.state, "db_engine", None)
    if engine is not None:
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            db_status = "connected"
        except Exception as exc:
            db_status = "error"
            db_error = str(exc)

    body = {
        "status": "healthy" if db_status != "error" else "degraded",
        "service": "Decision Audit Service",
        "version": request.app.version,
        "services": {
            "api": "running",
            "database": db_status,
        },
    }
    if db_error:
        body["database_error"] = db_error
    return body
