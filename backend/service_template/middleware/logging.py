"""
Service Template — Request Logging Middleware
===============================================

What:  Logs every HTTP request on arrival and on completion.
Why:   Enables monitoring, debugging and performance analysis.
How:   A RequestContext is created on arrival and stored on request.state;
       completion is observed from the response the downstream app returns.
When:  After rate limiting (denied requests are not instrumented).

Records per request:
    info   "Incoming request"       method, path, client, user_agent
    info   "Outgoing response"      method, path, status_code, duration_ms
    warn   "Slow request detected"  same fields, only when duration > threshold
    http   access line              "GET /slow 200 1503.2ms - 127.0.0.1"

Access line policy (mirrors the environment):
    development    only status >= 400
    production     only status < 400
    other          every request
"""

import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from service_template.log_handlers import HTTP

access_logger = logging.getLogger("service_template.access")

BODY_METHODS = {"POST", "PUT", "PATCH"}


@dataclass
class RequestContext:
    """Per-request identity and timing; one instance per request."""

    method: str
    path: str
    client: str
    user_agent: str
    start: float = 0.0
    started_at: Optional[datetime] = None
    body: Any = None

    @classmethod
    def from_request(cls, request: Request) -> "RequestContext":
        return cls(
            method=request.method,
            path=request.url.path,
            client=request.client.host if request.client else "unknown",
            user_agent=request.headers.get("user-agent", "Unknown"),
        )

    def identity(self) -> dict:
        return {"method": self.method, "path": self.path, "client": self.client}


def should_log_access(environment: str, status_code: int) -> bool:
    if environment == "development":
        return status_code >= 400
    if environment == "production":
        return status_code < 400
    return True


class RequestInstrumentation:
    """
    Emits the start/finish records for a request.

    Args:
        slow_threshold_ms:  Durations above this add a "Slow request" warning
        environment:        Selects the access line policy
        clock:              Monotonic seconds (injectable for tests)
        logger:             Destination logger (injectable for tests)
    """

    def __init__(
        self,
        slow_threshold_ms: float = 1000.0,
        environment: str = "development",
        clock: Callable[[], float] = time.perf_counter,
        logger: Optional[logging.Logger] = None,
    ):
        self.slow_threshold_ms = slow_threshold_ms
        self.environment = environment
        self._clock = clock
        self.logger = logger or access_logger

    def on_request_start(self, ctx: RequestContext) -> None:
        ctx.start = self._clock()
        ctx.started_at = datetime.now(timezone.utc)
        self.logger.info(
            "Incoming request",
            extra={**ctx.identity(), "user_agent": ctx.user_agent},
        )

    def on_request_finish(self, ctx: RequestContext, status_code: int) -> float:
        """Log completion; returns the measured duration in milliseconds."""
        duration_ms = round((self._clock() - ctx.start) * 1000, 2)
        fields = {
            "method": ctx.method,
            "path": ctx.path,
            "status_code": status_code,
            "duration_ms": duration_ms,
        }
        self.logger.info("Outgoing response", extra=fields)

        if duration_ms > self.slow_threshold_ms:
            self.logger.warning(
                "Slow request detected",
                extra={**fields, "client": ctx.client},
            )

        if should_log_access(self.environment, status_code):
            self.logger.log(
                HTTP,
                "%s %s %d %.1fms - %s",
                ctx.method,
                ctx.path,
                status_code,
                duration_ms,
                ctx.client,
            )
        return duration_ms


def _decode_body(raw: bytes) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw.decode("utf-8", errors="replace")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Wraps each request in a RequestContext and reports it to a
    RequestInstrumentation.

    The context is stored on request.state.context so the error responder
    can include it in failure logs. Bodies of POST/PUT/PATCH requests are
    read up front for the same reason; Starlette replays them downstream.
    """

    def __init__(self, app, instrumentation: RequestInstrumentation):
        super().__init__(app)
        self.instrumentation = instrumentation

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        ctx = RequestContext.from_request(request)
        if request.method in BODY_METHODS:
            ctx.body = _decode_body(await request.body())
        request.state.context = ctx

        self.instrumentation.on_request_start(ctx)
        try:
            response = await call_next(request)
        except Exception:
            self.instrumentation.on_request_finish(ctx, 500)
            raise

        self.instrumentation.on_request_finish(ctx, response.status_code)
        return response
