"""
Service Template — Custom Exception Hierarchy
===============================================

What:  Application-specific exceptions, one class per failure classification.
Why:   The error responder classifies failures by type instead of inspecting
       names or fields after the fact. Each variant fixes its HTTP status
       and client-facing message when it is raised.
How:   Every variant carries a message, a status code, an operational flag
       and an optional context dict (logged, never returned to the client).
Who:   Raised by routes, dependencies and framework adapters; caught by the
       handlers registered in error_handler.register_exception_handlers.

Exception Hierarchy:
    AppError (base, recognized application error)
    ├── ResourceNotFoundError   → 404 "Resource not found"
    ├── RouteNotFoundError      → 404 "Route {path} not found"
    ├── DuplicateFieldError     → 400 "Duplicate field value entered"
    ├── FieldValidationError    → 400 joined field messages
    ├── InvalidTokenError       → 401 "Invalid token"
    ├── TokenExpiredError       → 401 "Token expired"
    └── RateLimitExceededError  → 429 (admission denial, not a fault)

    ConfigError                 → fatal at startup, never reaches HTTP
"""

import uuid
from typing import Any, Dict, Mapping, Optional, Sequence, Union


class ConfigError(ValueError):
    """Raised when the service cannot be configured (bad environment name,
    invalid rotation policy). Fatal at startup."""


class AppError(Exception):
    """
    Base exception for all recognized application errors.

    Attributes:
        message:         Client-facing description (safe to return)
        status_code:     HTTP status returned to the client
        is_operational:  True for expected, handleable failures
        context:         Extra debug info (logged but NOT returned)
    """

    status_code: int = 500
    default_message: str = "Server Error"

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        is_operational: bool = True,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message if message is not None else self.default_message
        if status_code is not None:
            self.status_code = status_code
        if self.status_code < 100:
            raise ValueError(f"Invalid HTTP status code {self.status_code}")
        self.is_operational = is_operational
        self.context = context or {}
        super().__init__(self.message)


class ResourceNotFoundError(AppError):
    """
    An identifier could not be cast to the expected type.

    HTTP: 404. A malformed ID can never match a stored resource, so the
    client sees the same answer as for a missing one.
    """

    status_code = 404
    default_message = "Resource not found"

    def __init__(self, value: Any = None, context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        if value is not None:
            ctx["value"] = str(value)
        super().__init__(context=ctx)


class RouteNotFoundError(AppError):
    """No route matched the request path."""

    status_code = 404

    def __init__(self, path: str):
        super().__init__(f"Route {path} not found", context={"path": path})


class DuplicateFieldError(AppError):
    """A unique field already holds the submitted value. HTTP: 400."""

    status_code = 400
    default_message = "Duplicate field value entered"

    def __init__(self, field: Optional[str] = None):
        super().__init__(context={"field": field} if field else None)
        self.field = field


class FieldValidationError(AppError):
    """
    One or more fields failed validation.

    HTTP: 400. The message is every field message joined with ", " so the
    client sees all problems at once.
    """

    status_code = 400

    def __init__(self, field_messages: Union[Mapping[str, str], Sequence[str]]):
        if isinstance(field_messages, Mapping):
            messages = list(field_messages.values())
            ctx: Dict[str, Any] = {"fields": dict(field_messages)}
        else:
            messages = list(field_messages)
            ctx = {}
        super().__init__(", ".join(messages) or "Validation failed", context=ctx)
        self.field_messages = messages


class InvalidTokenError(AppError):
    """A credential token could not be verified. HTTP: 401."""

    status_code = 401
    default_message = "Invalid token"

    def __init__(self):
        super().__init__()


class TokenExpiredError(AppError):
    """A credential token verified but is past its expiry. HTTP: 401."""

    status_code = 401
    default_message = "Token expired"

    def __init__(self):
        super().__init__()


class RateLimitExceededError(AppError):
    """
    Raised by the per-route admission dependency when a tier denies a request.

    HTTP: 429. Carries the rate-limit headers so the handler can expose
    remaining/reset metadata to the client.
    """

    status_code = 429
    default_message = "Too many requests, please try again later."

    def __init__(self, tier: str, headers: Optional[Dict[str, str]] = None):
        super().__init__(context={"tier": tier})
        self.tier = tier
        self.headers = headers or {}


def parse_uuid(value: str) -> uuid.UUID:
    """
    Cast a path identifier to a UUID.

    Raises:
        ResourceNotFoundError: the value is not a valid UUID
    """
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise ResourceNotFoundError(value) from None
