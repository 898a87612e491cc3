"""Health-check router."""

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/")
async def root():
    """Health check"""
    return {"status": "ok", "message": "WikiGaiaLab workflow API is running"}


@router.get("/api/v1/health")
async def health_check(request: Request):
    """Detailed health check with database latency and degradation status."""
    session_factory = getattr(request.app.state, "session_factory", None)

    database: dict = {"status": "not_configured"}
    if session_factory is not None:
        try:
            async with session_factory() as session:
                t0 = time.time()
                await session.execute(text("SELECT 1"))
                database = {
                    "status": "connected",
                    "latency_ms": round((time.time() - t0) * 1000, 2),
                }
        except (SQLAlchemyError, OSError) as e:
            logger.warning("Health check database probe failed: %s", e)
            database = {"status": "unavailable"}

    healthy = database["status"] == "connected"
    return {
        "status": "healthy" if healthy else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": request.app.state.settings.environment,
        "services": {"database": database},
        "mode": "full" if healthy else "degraded",
    }
