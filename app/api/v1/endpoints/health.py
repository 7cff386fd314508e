"""Health check endpoints."""

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from app.config import settings
from app.database import check_database_connection
from app.dependencies import background_deliveries

router = APIRouter()


class HealthResponse(BaseModel):
    """Liveness response model."""

    status: str
    service: str
    version: str
    environment: str


class DetailedHealthResponse(HealthResponse):
    """Dependency-aware health response model."""

    database: str
    pending_notifications: int


async def _detailed() -> DetailedHealthResponse:
    db_healthy = await check_database_connection()
    return DetailedHealthResponse(
        status="healthy" if db_healthy else "degraded",
        service=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        database="healthy" if db_healthy else "unhealthy",
        pending_notifications=len(background_deliveries),
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Liveness check",
)
async def health_check() -> HealthResponse:
    """The process is up and serving requests."""
    return HealthResponse(
        status="healthy",
        service=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )


@router.get(
    "/health/detailed",
    response_model=DetailedHealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Detailed health check",
)
async def detailed_health_check() -> DetailedHealthResponse:
    """
    Health of the appointment store plus the notification backlog.

    Collaborator services are not probed here; their outages surface as
    503 responses on the operations that need them.
    """
    return await _detailed()


@router.get(
    "/health/ready",
    response_model=DetailedHealthResponse,
    summary="Readiness check",
)
async def readiness_check(response: Response) -> DetailedHealthResponse:
    """Like the detailed check, but answers 503 while the store is unreachable."""
    report = await _detailed()
    if report.database != "healthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return report


@router.get(
    "/ping",
    status_code=status.HTTP_200_OK,
    summary="Simple ping",
)
async def ping() -> dict[str, str]:
    """Pong response."""
    return {"message": "pong"}
