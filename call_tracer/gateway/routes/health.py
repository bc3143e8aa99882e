"""
Health routes — GET /api/health.
"""

from fastapi import APIRouter
from pydantic import BaseModel, Field

from call_tracer import __version__

router = APIRouter()


class HealthResponse(BaseModel):
    """Response model for GET /api/health."""

    status: str = Field(..., description="Service status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Package version")


@router.get("/health", response_model=HealthResponse)
def simple_health() -> HealthResponse:
    """Simple health check endpoint.

    Useful for load balancers and uptime monitors.
    """
    return HealthResponse(status="healthy", service="Call Tracer Gateway", version=__version__)
