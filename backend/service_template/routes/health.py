"""
Service Template — Health Check Route
=======================================

What:  Liveness endpoint for monitoring and load balancer probes.
Why:   Load balancers route away from instances that stop answering.
How:   Returns status and process uptime; touches no dependencies.

GET /health is excluded from rate limiting (see RateLimitMiddleware).
"""

import time

from fastapi import APIRouter

router = APIRouter(tags=["Health"])

# Track when the service started for uptime reporting
_start_time = time.monotonic()


@router.get("/health", summary="Service health check")
async def health_check() -> dict:
    return {
        "status": "ok",
        "message": "Server is healthy!",
        "uptime": round(time.monotonic() - _start_time, 2),
    }
