"""Response model for the health endpoint."""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """
    What:  Service status reported by GET /health.
    Who:   Docker health checks, load balancers, monitoring.

    The wrapper places this under "result" like any other payload.
    """

    status: str = Field(description="Overall service status")
    version: str = Field(description="Application version")
    failure_format: str = Field(description="problem_details or envelope")
    uptime_seconds: float = Field(description="Seconds since service started")
