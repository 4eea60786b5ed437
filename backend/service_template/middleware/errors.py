"""
Service Template — Error Funnel Middleware
============================================

What:  Catches exceptions no registered handler claimed and answers them
       through the app's ErrorResponder.
Why:   Starlette routes handlers for plain `Exception` to its outermost
       ServerErrorMiddleware, which sits outside our request logging. This
       middleware sits innermost so unexpected faults still produce one
       error log, one JSON 500 and a normal "Outgoing response" record.
"""

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from service_template.error_handler import ErrorResponder


class ErrorFunnelMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, responder: ErrorResponder):
        super().__init__(app)
        self.responder = responder

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            return self.responder.respond(exc, request)
