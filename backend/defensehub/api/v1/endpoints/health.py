"""
Health Check Endpoints

- /health       - liveness (app is running)
- /health/ready - readiness (database reachable)
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
from typing import Any, Dict
import time

from defensehub import __version__
from defensehub.core.config import settings
from defensehub.core.logging_config import logger


router = APIRouter(prefix="/health", tags=["Health Checks"])


async def check_database() -> Dict[str, Any]:
    """Check database connectivity"""
    start = time.time()
    try:
        from defensehub.core.database import get_session_local

        session_factory = get_session_local()
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))

        return {
            "status": "healthy",
            "latency_ms": round((time.time() - start) * 1000, 2),
            "connection": "ok",
        }
    except Exception as e:
        logger.error(f"[HealthCheck] Database check failed: {e}")
        return {
            "status": "unhealthy",
            "latency_ms": round((time.time() - start) * 1000, 2),
            "connection": "failed",
            "error": str(e),
        }


@router.get("")
async def liveness():
    return {
        "status": "healthy",
        "app_name": settings.APP_NAME,
        "version": __version__,
        "environment": settings.ENVIRONMENT,
    }


@router.get("/ready")
async def readiness():
    database = await check_database()
    healthy = database["status"] == "healthy"
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={"status": "ready" if healthy else "not_ready", "database": database},
    )
