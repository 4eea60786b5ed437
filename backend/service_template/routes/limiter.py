"""
Service Template — Rate Limited Routes
========================================

Each route enforces a per-route tier on top of the global one. Denials
never reach the handler: require_admission raises RateLimitExceededError
and the 429 is rendered by its exception handler.
"""

from fastapi import APIRouter, Depends

from service_template.middleware.rate_limit import require_admission

router = APIRouter(prefix="/limiter", tags=["Rate Limiting"])


@router.get("/strict", dependencies=[Depends(require_admission("strict"))])
async def strict() -> dict:
    return {"message": "Strict rate limited route"}


@router.post("/auth", dependencies=[Depends(require_admission("auth"))])
async def auth() -> dict:
    return {"message": "Auth rate limited route"}
