"""
Service Template — Application Package
========================================

An async HTTP service skeleton: structured logging, request
instrumentation, centralized error handling, rate limiting and graceful
shutdown, wired around FastAPI, pydantic-settings, the standard logging
module and uvicorn.

    ┌─────────────────────────────────────┐
    │        Routes (demo endpoints)      │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Middleware (limit, log, funnel)   │  ← cross-cutting concerns
    ├─────────────────────────────────────┤
    │  Error handler / Logging config     │  ← one place per concern
    ├─────────────────────────────────────┤
    │        Config (Settings)            │  ← environment driven
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
