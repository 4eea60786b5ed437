"""
Service Template — FastAPI Application Factory
================================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes middleware registration, exception handlers, route
       mounting and lifecycle management in one place.
How:   Factory pattern: create_app(settings) returns a configured FastAPI
       instance. Collaborators (limiter, instrumentation, responder) are
       built from the settings unless the caller injects its own.
Who:   server.main() and `uvicorn service_template.main:app`.

Request path:
    ┌──────────────────────────────────────────────────────────┐
    │  RateLimit → RequestLogging → ErrorFunnel → Router       │
    │                                              │           │
    │                     exception handlers ◄─────┘           │
    │                     (AppError, validation, 404/405)      │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:   configure log sinks, log "Server started successfully"
    Shutdown:  log "Application shutdown complete"
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator, Optional

from fastapi import FastAPI

from service_template import __version__
from service_template.config import Settings, get_settings
from service_template.error_handler import ErrorResponder, register_exception_handlers
from service_template.logging_config import setup_logging
from service_template.middleware.errors import ErrorFunnelMiddleware
from service_template.middleware.logging import RequestInstrumentation, RequestLoggingMiddleware
from service_template.middleware.rate_limit import AdmissionLimiter, RateLimitMiddleware
from service_template.routes import health, root
from service_template.routes import limiter as limiter_routes

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Code before yield runs on startup, code after yield on shutdown.

    A ConfigError from setup_logging propagates: uvicorn reports the failed
    startup and the process exits non-zero.
    """
    settings: Settings = app.state.settings

    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging(settings)
    logger.info(
        "Server started successfully",
        extra={
            "environment": settings.environment,
            "port": settings.port,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )

    yield  # Application runs here

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Application shutdown complete")


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    settings: Optional[Settings] = None,
    limiter: Optional[AdmissionLimiter] = None,
    instrumentation: Optional[RequestInstrumentation] = None,
    responder: Optional[ErrorResponder] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns: Fully configured FastAPI instance ready to receive requests.

    Why factory (not module-level app only):
        1. Testability: fresh app, fresh limiter counters per test
        2. Configuration: settings are passed in, not read from globals
        3. Injection: tests can hand in fakes for any collaborator
    """
    settings = settings or get_settings()
    if limiter is None:
        limiter = AdmissionLimiter(settings.rate_limit_tiers())
    instrumentation = instrumentation or RequestInstrumentation(
        slow_threshold_ms=settings.slow_request_threshold_ms,
        environment=settings.environment,
    )
    responder = responder or ErrorResponder(environment=settings.environment)

    app = FastAPI(
        title="Service Template",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.limiter = limiter
    app.state.error_responder = responder

    # ── Register Middleware ───────────────────────────────────────────────
    # Middleware executes in REVERSE order of addition:
    # RateLimit → RequestLogging → ErrorFunnel → routes

    # Error funnel: innermost, so unexpected faults become JSON 500s that
    # the request logger still sees
    app.add_middleware(ErrorFunnelMiddleware, responder=responder)

    # Request logging: start/finish/slow records, access line
    app.add_middleware(RequestLoggingMiddleware, instrumentation=instrumentation)

    # Rate limiting: first to execute = last added
    app.add_middleware(
        RateLimitMiddleware,
        limiter=limiter,
        tier=settings.global_rate_limit_tier,
    )

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(root.router)
    app.include_router(limiter_routes.router)
    app.include_router(health.router)

    return app


# ── Application Instance ─────────────────────────────────────────────────
# Why module-level: `uvicorn service_template.main:app` expects it
app = create_app()
