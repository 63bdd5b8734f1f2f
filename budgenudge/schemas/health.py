"""
Health check schema. The endpoint is public.
"""

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    """Response model for GET /health, used by uptime monitors and the cron host."""

    model_config = ConfigDict(
        json_schema_extra={"example": {"status": "ok", "service": "budgenudge-backend"}}
    )

    status: str = Field(default="ok", examples=["ok"])
    service: str = Field(default="budgenudge-backend")
