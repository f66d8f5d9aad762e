from fastapi import APIRouter

from retroapi.config import settings
from retroapi.schemas.health import HealthCheckResponse

router = APIRouter()


@router.get("/health", response_model=HealthCheckResponse)
async def health_check() -> HealthCheckResponse:
    """Health check endpoint."""

    return HealthCheckResponse(app=settings.APP_NAME, environment=settings.ENVIRONMENT)
