"""
Service Template — Demo Routes
================================

GET /        greeting
GET /error   raises an unexpected error (→ 500 through the error responder)
GET /slow    sleeps before answering (→ "Slow request detected" warning)
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, Request

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Demo"])


async def trace_route(request: Request) -> None:
    """Debug breadcrumb for the routes that opt in."""
    logger.debug(
        "Route handler called",
        extra={
            "client": request.client.host if request.client else "unknown",
            "method": request.method,
            "path": request.url.path,
        },
    )


@router.get("/", dependencies=[Depends(trace_route)])
async def index() -> dict:
    return {"message": "Hello World!"}


@router.get("/error")
async def error() -> dict:
    # No message: clients get the generic "Server Error" in every environment
    raise RuntimeError()


@router.get("/slow")
async def slow(request: Request) -> dict:
    """
    Answer after an artificial delay.

    Why asyncio.sleep: the delay suspends only this request; other
    requests keep being served while it waits.
    """
    await asyncio.sleep(request.app.state.settings.slow_route_delay_seconds)
    return {"message": "Slow response completed"}
