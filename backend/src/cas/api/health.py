"""Health check API endpoints for CAS.

Liveness never touches the database. Readiness reports 503 when the plugin
store cannot be reached.
"""

import os
import time

from fastapi import APIRouter, Depends, Request

from ..core.config import Settings
from ..core.logging import get_logger
from ..core.response import CASResponse
from ..auth.rbac import get_settings

logger = get_logger(__name__)
router = APIRouter(prefix="/health", tags=["health"])


@router.get("", summary="Liveness", description="Process liveness check.")
async def liveness(settings: Settings = Depends(get_settings)):
    """Lightweight check that succeeds as long as the process serves requests."""
    return CASResponse.success(
        {
            "alive": True,
            "timestamp": time.time(),
            "pid": os.getpid(),
            "version": settings.version,
            "environment": settings.environment,
        }
    )


@router.get("/readiness", summary="Readiness", description="Database connectivity check.")
async def readiness(request: Request):
    """Checks that the plugin store answers ``SELECT 1``.

    Returns:
        JSONResponse with readiness status, 503 if not ready
    """
    logger.debug("Performing readiness check")

    start_time = time.time()
    database = request.app.state.database
    db_health = await database.health_check()

    readiness_status = {
        "ready": db_health["status"] == "healthy",
        "timestamp": time.time(),
        "checks": {"database": db_health},
    }
    execution_time = time.time() - start_time
    readiness_status["execution_time"] = execution_time

    if not readiness_status["ready"]:
        logger.warning(
            "Readiness check failed",
            extra={"database_error": db_health.get("error"), "execution_time": execution_time},
        )
        return CASResponse.error(
            message="Application not ready",
            code="STORE_UNAVAILABLE",
            details=readiness_status,
            status_code=503,
        )

    logger.debug("Readiness check passed", extra={"execution_time": execution_time})
    return CASResponse.success(readiness_status)
