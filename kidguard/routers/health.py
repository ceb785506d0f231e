"""Health check endpoints for container orchestration."""

from typing import Any

from fastapi import APIRouter, Response, status
from fastapi.responses import JSONResponse

from kidguard.config import settings
from kidguard.database import check_database_connection

router = APIRouter(tags=["Health"])


def _database_status(connected: bool, ok: str, failed: str) -> JSONResponse:
    return JSONResponse(
        status_code=(
            status.HTTP_200_OK if connected else status.HTTP_503_SERVICE_UNAVAILABLE
        ),
        content={
            "status": ok if connected else failed,
            "service": settings.service_name,
            "database": "connected" if connected else "disconnected",
        },
    )


@router.get("/health", response_model=None)
async def health_check() -> Response:
    """Health check with database status.

    200 {"status": "healthy"} when the database answers, otherwise 503
    {"status": "degraded"}.
    """
    return _database_status(
        await check_database_connection(), ok="healthy", failed="degraded"
    )


@router.get("/health/live")
async def liveness_check() -> dict[str, Any]:
    """Liveness check. Never touches the database."""
    return {"status": "alive", "service": settings.service_name}


@router.get("/health/ready", response_model=None)
async def readiness_check() -> Response:
    """Readiness check. Not ready while the database is unreachable."""
    return _database_status(
        await check_database_connection(), ok="ready", failed="not_ready"
    )
