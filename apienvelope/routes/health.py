"""
API Envelope — Health Check Route
===================================

What:  Liveness endpoint for monitoring and load balancer health checks.
How:   Reports version, uptime and the failure format the wrapper is using.
       The response is wrapped like every other API response:
           {"message": "GET Success", "result": {"status": "healthy", ...}}
"""

import time

from fastapi import APIRouter, Request

from apienvelope import __version__
from apienvelope.schemas.health import HealthResponse

router = APIRouter(tags=["Health"])

# Initialized once when the module loads
_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(request: Request) -> HealthResponse:
    options = request.app.state.wrapper_options
    return HealthResponse(
        status="healthy",
        version=__version__,
        failure_format="envelope" if options.disable_problem_details else "problem_details",
        uptime_seconds=round(time.time() - _start_time, 2),
    )
