"""
Service Template — Error Classifier & Responder
=================================================

What:  Turns any request-path failure into one log entry and one JSON response.
Why:   Every failure goes through ErrorResponder.handle, so each one is
       logged exactly once and answered with the same body shape.
How:   classify() maps a failure to a NormalizedError by type;
       ErrorResponder logs it with the request context and renders it.
Who:   Called by the FastAPI exception handlers registered below and by
       ErrorFunnelMiddleware for everything the handlers don't cover.

Classification (first match wins):
    AppError and subclasses     own status_code, own message
    anything else               500, str(failure) or "Server Error"

    Unexpected 5xx failures answer "Server Error" outside development so
    internal messages never reach clients in production.

Response body:
    {"success": false, "error": {"message": "...", "stack": "..."}}
    `stack` only when environment == "development".
"""

import logging
import traceback
from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from service_template.exceptions import (
    AppError,
    FieldValidationError,
    RateLimitExceededError,
    RouteNotFoundError,
)
from service_template.middleware.logging import RequestContext

GENERIC_MESSAGE = "Server Error"


@dataclass(frozen=True)
class NormalizedError:
    status_code: int
    message: str
    is_operational: bool
    stack: Optional[str] = None


def format_stack(failure: BaseException) -> str:
    return "".join(
        traceback.format_exception(type(failure), failure, failure.__traceback__)
    )


def classify(failure: BaseException, environment: str = "development") -> NormalizedError:
    """Map a failure to the status code and message the client will see."""
    if isinstance(failure, AppError):
        status_code = failure.status_code
        message = failure.message or GENERIC_MESSAGE
        operational = failure.is_operational
    else:
        status_code = 500
        message = str(failure) or GENERIC_MESSAGE
        operational = False

    if not operational and status_code >= 500 and environment != "development":
        message = GENERIC_MESSAGE

    return NormalizedError(
        status_code=status_code,
        message=message,
        is_operational=operational,
        stack=format_stack(failure),
    )


class ErrorResponder:
    """
    Logs a failure once with its request context, then builds the response.

    Args:
        environment:  "development" exposes stacks in response bodies
        logger:       Destination logger (injectable for tests)
    """

    def __init__(self, environment: str = "development", logger: Optional[logging.Logger] = None):
        self.environment = environment
        self.logger = logger or logging.getLogger(__name__)

    def handle(self, failure: BaseException, request: Request) -> NormalizedError:
        normalized = classify(failure, self.environment)
        self.logger.error(
            "Error occurred",
            extra={
                "error": {
                    "message": str(failure),
                    "name": type(failure).__name__,
                    "stack": normalized.stack,
                },
                "request": request_details(request),
                "status_code": normalized.status_code,
            },
        )
        return normalized

    def render(self, normalized: NormalizedError) -> JSONResponse:
        error: Dict[str, Any] = {"message": normalized.message}
        if self.environment == "development" and normalized.stack:
            error["stack"] = normalized.stack
        return JSONResponse(
            status_code=normalized.status_code,
            content={"success": False, "error": error},
        )

    def respond(self, failure: BaseException, request: Request) -> JSONResponse:
        return self.render(self.handle(failure, request))


def request_details(request: Request) -> Dict[str, Any]:
    """Request fields included in error logs."""
    ctx: Optional[RequestContext] = getattr(request.state, "context", None)
    if ctx is None:
        ctx = RequestContext.from_request(request)
    return {
        "method": ctx.method,
        "path": ctx.path,
        "client": ctx.client,
        "user_agent": ctx.user_agent,
        "body": ctx.body,
        "params": dict(request.path_params),
        "query": dict(request.query_params),
    }


def _responder(request: Request) -> ErrorResponder:
    return request.app.state.error_responder


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register handlers that feed failures into the app's ErrorResponder.

    Handler hierarchy:
        RateLimitExceededError  → 429, rate-limit headers, no error log
        AppError                → its own status via ErrorResponder
        RequestValidationError  → FieldValidationError (400)
        HTTPException 404       → RouteNotFoundError (404) when no route matched
        HTTPException other     → AppError with the framework status
        anything else           → ErrorFunnelMiddleware (500)
    """

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        """Admission denial is expected; it was logged when it was decided."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": {"message": exc.message}},
            headers=exc.headers,
        )

    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError):
        return _responder(request).respond(exc, request)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        messages = [
            "%s: %s" % (".".join(str(part) for part in err.get("loc", ())), err.get("msg", ""))
            for err in exc.errors()
        ]
        return _responder(request).respond(FieldValidationError(messages), request)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404 and request.scope.get("route") is None:
            failure: AppError = RouteNotFoundError(request.url.path)
        else:
            failure = AppError(str(exc.detail), status_code=exc.status_code)
        response = _responder(request).respond(failure, request)
        if exc.headers:
            response.headers.update(exc.headers)
        return response
