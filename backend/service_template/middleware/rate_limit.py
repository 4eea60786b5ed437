"""
Service Template — Rate Limiting Middleware
=============================================

What:  Per-client fixed window admission control, one window per tier.
Why:   Protects the API from abuse; sensitive routes get tighter tiers.
How:   AdmissionLimiter keeps {(tier, client) → window start, count} in
       memory. RateLimitMiddleware enforces the global tier on every
       request; require_admission(tier) is a route dependency for the
       per-route tiers.
When:  First in the middleware chain (rejects abuse before any processing).

Algorithm: Fixed Window Counter
    1. No window for the key, or the window has elapsed → new window, count=1
    2. Otherwise count += 1
    3. Allowed iff count <= tier.max_requests

    The check and the increment run under one lock so the pair stays atomic
    even if the limiter is shared across threads.

Response on denial:
    HTTP 429 Too Many Requests
    RateLimit-Limit / RateLimit-Remaining / RateLimit-Reset / Retry-After
    {"success": false, "error": {"message": "Too many requests, ..."}}

Production Upgrade Path:
    This in-memory implementation works for single-process deployments.
    Multi-worker deployments need a shared store (e.g. Redis INCR + TTL).
"""

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional, Tuple

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse, Response

from service_template.config import RateLimitTier
from service_template.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)

DENIED_MESSAGE = RateLimitExceededError.default_message


@dataclass
class RateLimitWindow:
    key: str
    window_start: float
    count: int


@dataclass(frozen=True)
class AdmissionDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_after: float  # seconds until the current window resets

    @property
    def headers(self) -> Dict[str, str]:
        reset = max(0, math.ceil(self.reset_after))
        headers = {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(reset),
        }
        if not self.allowed:
            headers["Retry-After"] = str(reset)
        return headers


class AdmissionLimiter:
    """
    In-memory fixed window counters keyed by (tier, client key).

    Args:
        tiers:  Tier table, usually Settings.rate_limit_tiers()
        clock:  Monotonic time source in seconds (injectable for tests)
        sweep_every:  Evict expired windows after this many checks
    """

    def __init__(
        self,
        tiers: Mapping[str, RateLimitTier],
        clock: Callable[[], float] = time.monotonic,
        sweep_every: int = 1000,
    ):
        self.tiers = dict(tiers)
        self._clock = clock
        self._sweep_every = sweep_every
        self._windows: Dict[Tuple[str, str], RateLimitWindow] = {}
        self._lock = threading.Lock()
        self._checks = 0

    def check(self, key: str, tier: str) -> AdmissionDecision:
        """Count one request for `key` against `tier` and decide admission."""
        config = self.tiers[tier]
        now = self._clock()

        with self._lock:
            window = self._windows.get((tier, key))
            if window is None or now - window.window_start >= config.window_seconds:
                window = RateLimitWindow(key=key, window_start=now, count=1)
                self._windows[(tier, key)] = window
            else:
                window.count += 1
            count = window.count
            window_start = window.window_start

            self._checks += 1
            if self._checks % self._sweep_every == 0:
                self._sweep(now)

        return AdmissionDecision(
            allowed=count <= config.max_requests,
            limit=config.max_requests,
            remaining=max(0, config.max_requests - count),
            reset_after=window_start + config.window_seconds - now,
        )

    def try_admit(self, key: str, tier: str) -> bool:
        return self.check(key, tier).allowed

    def _sweep(self, now: float) -> None:
        """Drop windows that have elapsed. Caller holds the lock."""
        expired = [
            k for k, w in self._windows.items()
            if now - w.window_start >= self.tiers[k[0]].window_seconds
        ]
        for k in expired:
            del self._windows[k]
        if expired:
            logger.debug("Evicted %d expired rate limit windows", len(expired))

    def __len__(self) -> int:
        return len(self._windows)


def client_key(request: Request) -> str:
    """Rate limit key for a request: the client IP."""
    return request.client.host if request.client else "unknown"


def log_denial(request: Request, tier: str, log: Optional[logging.Logger] = None) -> None:
    (log or logger).warning(
        "Rate limit exceeded",
        extra={
            "client": client_key(request),
            "method": request.method,
            "path": request.url.path,
            "user_agent": request.headers.get("user-agent", "Unknown"),
            "tier": tier,
        },
    )


def denial_response(decision: AdmissionDecision) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={"success": False, "error": {"message": DENIED_MESSAGE}},
        headers=decision.headers,
    )


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Enforces one tier for every request.

    Excluded paths:
        - /health: Health checks should never be rate-limited
        - /docs, /openapi.json, /redoc: API documentation stays reachable
    """

    EXCLUDED_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}

    def __init__(
        self,
        app,
        limiter: AdmissionLimiter,
        tier: str = "general",
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(app)
        self.limiter = limiter
        self.tier = tier
        self.logger = logger or logging.getLogger(__name__)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in self.EXCLUDED_PATHS:
            return await call_next(request)

        decision = self.limiter.check(client_key(request), self.tier)
        if not decision.allowed:
            log_denial(request, self.tier, self.logger)
            return denial_response(decision)

        response = await call_next(request)
        route_decision = getattr(request.state, "admission", None)
        if route_decision is not None:
            decision = route_decision
        for name, value in decision.headers.items():
            response.headers.setdefault(name, value)
        return response


def require_admission(tier: str):
    """
    Route dependency enforcing a per-route tier.

    Usage:
        @router.get("/limiter/strict", dependencies=[Depends(require_admission("strict"))])

    The limiter is read from app.state so each app instance keeps its own
    counters. Denials raise RateLimitExceededError, rendered as 429 by its
    exception handler. An admitted decision is stored on request.state so
    RateLimitMiddleware reports the route tier's headers instead of the
    global tier's.
    """

    async def dependency(request: Request) -> AdmissionDecision:
        limiter: AdmissionLimiter = request.app.state.limiter
        decision = limiter.check(client_key(request), tier)
        if not decision.allowed:
            log_denial(request, tier)
            raise RateLimitExceededError(tier, headers=decision.headers)
        request.state.admission = decision
        return decision

    return dependency
