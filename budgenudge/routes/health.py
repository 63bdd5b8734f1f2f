"""
Health check route. PUBLIC: no authentication.
"""

from fastapi import APIRouter

from budgenudge.schemas.health import HealthResponse
from budgenudge.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["system"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check endpoint",
    description="Public health check (no authentication required).",
    status_code=200,
)
async def health_check() -> HealthResponse:
    logger.debug("Health check endpoint called")
    return HealthResponse(status="ok")
