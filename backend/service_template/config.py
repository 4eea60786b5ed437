"""
Service Template — Application Configuration
==============================================

What:  Centralized configuration management using Pydantic Settings.
Why:   Type-safe environment variable loading with validation on startup.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and produces a Settings object.
Who:   Passed explicitly into create_app(); middleware and handlers read
       it from there instead of importing a module-level singleton.
When:  Built once by the server entry point (or per test).

Environment variables (case-insensitive):
    ENVIRONMENT            development | production | anything else
    PORT                   listener port (default 3000)
    LOG_DIR                directory for error.log / combined.log
    LOG_MAX_BYTES          size threshold for file rotation
    LOG_BACKUP_COUNT       rolled files kept per sink
    LOG_COMPRESS           gzip rolled files
    RATE_LIMIT_<TIER>_REQUESTS / RATE_LIMIT_<TIER>_WINDOW
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Dict

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


@dataclass(frozen=True)
class RateLimitTier:
    """A named admission window: at most `max_requests` per `window_seconds`."""

    name: str
    window_seconds: float
    max_requests: int


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have sensible defaults for local development.
    Attributes are grouped by concern for readability.
    """

    # ── Server ────────────────────────────────────────────────────────────
    # What: Environment name; selects log thresholds and limiter tiers
    # Why a free string: unknown environments are valid and get the
    # "other" logging policy (see logging_config.configure)
    environment: str = Field(default="development")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000, ge=1, le=65535)

    # What: Seconds to wait for in-flight requests after SIGTERM/SIGINT
    # before forcing the process down with exit code 1
    shutdown_timeout_seconds: float = Field(default=10.0, gt=0)

    # ── Logging ───────────────────────────────────────────────────────────
    log_dir: str = Field(default="logs")

    # What: Roll a log file once it would grow past this many bytes
    # Default: 5MB = 5 * 1024 * 1024
    log_max_bytes: int = Field(default=5_242_880, gt=0)
    log_backup_count: int = Field(default=5, ge=1, le=365)
    log_daily_rotation: bool = Field(default=True)
    log_compress: bool = Field(default=False)

    # ── Request Instrumentation ───────────────────────────────────────────
    # What: Completed requests slower than this get a "Slow request" warning
    slow_request_threshold_ms: float = Field(default=1000.0, gt=0)

    # What: Artificial delay used by GET /slow
    slow_route_delay_seconds: float = Field(default=1.5, ge=0)

    # ── Rate Limiting ─────────────────────────────────────────────────────
    # What: Fixed-window limits per client IP, one pair per tier
    # Windows are in seconds
    rate_limit_general_requests: int = Field(default=100, ge=1)
    rate_limit_general_window: float = Field(default=900, gt=0)

    rate_limit_strict_requests: int = Field(default=5, ge=1)
    rate_limit_strict_window: float = Field(default=60, gt=0)

    rate_limit_auth_requests: int = Field(default=5, ge=1)
    rate_limit_auth_window: float = Field(default=900, gt=0)

    # Replaces the general tier while environment == "development"
    rate_limit_development_requests: int = Field(default=1000, ge=1)
    rate_limit_development_window: float = Field(default=900, gt=0)

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @field_validator("environment")
    @classmethod
    def normalize_environment(cls, v: str) -> str:
        """Strips whitespace and lower-cases; emptiness is rejected later by
        logging_config.configure so it surfaces as a ConfigError."""
        return v.strip().lower()

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def rate_limit_tiers(self) -> Dict[str, RateLimitTier]:
        """
        Build the tier table used by the AdmissionLimiter.

        Tiers:
            general      applied globally (outside development)
            strict       per-route, sensitive endpoints
            auth         per-route, credential endpoints
            development  relaxed global tier used in development
        """
        return {
            "general": RateLimitTier(
                "general",
                self.rate_limit_general_window,
                self.rate_limit_general_requests,
            ),
            "strict": RateLimitTier(
                "strict",
                self.rate_limit_strict_window,
                self.rate_limit_strict_requests,
            ),
            "auth": RateLimitTier(
                "auth",
                self.rate_limit_auth_window,
                self.rate_limit_auth_requests,
            ),
            "development": RateLimitTier(
                "development",
                self.rate_limit_development_window,
                self.rate_limit_development_requests,
            ),
        }

    @property
    def global_rate_limit_tier(self) -> str:
        """Tier name the global middleware enforces for this environment."""
        return "development" if self.is_development else "general"


@lru_cache
def get_settings() -> Settings:
    """
    Return the process-wide Settings built from the environment.

    Why cached: the server entry point and `uvicorn service_template.main:app`
    should agree on one instance. Tests build their own Settings(...) and
    pass them to create_app() instead.
    """
    return Settings()
