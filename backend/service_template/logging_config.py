"""
Service Template — Log Sink Configuration
===========================================

What:  Maps an environment name to log thresholds and installs the sinks.
Why:   Every module logs through `logging.getLogger(__name__)`; this is the
       one place that decides what reaches the console and the log files.
How:   configure() is a pure function returning a LogSinkConfig;
       setup_logging() turns that into handlers on the root logger.
When:  Once during application startup (lifespan), before serving.

Threshold table:
    environment     console   combined.log   error.log
    development     debug     debug          error
    production      warn      warn           error
    anything else   warn      debug          error

    The last row is asymmetric on purpose: unknown environments keep a
    quiet console while the combined file still records everything.
"""

import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from service_template.config import Settings
from service_template.exceptions import ConfigError
from service_template.log_handlers import (
    ConsoleFormatter,
    JSONFormatter,
    SizeAndDayRotatingFileHandler,
)

logger = logging.getLogger(__name__)

ERROR_LOG = "error.log"
COMBINED_LOG = "combined.log"

# Set on every handler setup_logging installs
OWNED_MARKER = "_service_template_sink"


@dataclass(frozen=True)
class RotationPolicy:
    """When file sinks roll over and how many rolled files they keep."""

    max_bytes: int = 5_242_880
    backup_count: int = 5
    daily: bool = True
    compress: bool = False

    def __post_init__(self):
        if self.max_bytes <= 0:
            raise ConfigError(f"max_bytes must be positive, got {self.max_bytes}")
        if self.backup_count < 1:
            raise ConfigError(f"backup_count must be at least 1, got {self.backup_count}")


@dataclass(frozen=True)
class LogSinkConfig:
    console_threshold: int
    file_thresholds: Dict[str, int]
    rotation: RotationPolicy = field(default_factory=RotationPolicy)


def configure(environment: str, rotation: Optional[RotationPolicy] = None) -> LogSinkConfig:
    """
    Select sink thresholds for an environment.

    Raises:
        ConfigError: environment is empty
    """
    env = (environment or "").strip().lower()
    if not env:
        raise ConfigError("Environment name must not be empty")

    if env == "development":
        console, combined = logging.DEBUG, logging.DEBUG
    elif env == "production":
        console, combined = logging.WARNING, logging.WARNING
    else:
        console, combined = logging.WARNING, logging.DEBUG

    return LogSinkConfig(
        console_threshold=console,
        file_thresholds={"error": logging.ERROR, "combined": combined},
        rotation=rotation or RotationPolicy(),
    )


def rotation_from_settings(settings: Settings) -> RotationPolicy:
    return RotationPolicy(
        max_bytes=settings.log_max_bytes,
        backup_count=settings.log_backup_count,
        daily=settings.log_daily_rotation,
        compress=settings.log_compress,
    )


def setup_logging(settings: Settings, console_stream=None) -> LogSinkConfig:
    """
    Install console and file sinks on the root logger.

    Safe to call more than once: sinks installed by an earlier call are
    closed and replaced so repeated startups don't duplicate output.
    Handlers installed by anything else are left alone.

    Returns:
        The LogSinkConfig that was applied.
    """
    sink_config = configure(settings.environment, rotation_from_settings(settings))
    rotation = sink_config.rotation

    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    console = logging.StreamHandler(console_stream or sys.stdout)
    console.setLevel(sink_config.console_threshold)
    console.setFormatter(ConsoleFormatter())

    handlers = [console]
    json_formatter = JSONFormatter()
    for name, filename in (("error", ERROR_LOG), ("combined", COMBINED_LOG)):
        handler = SizeAndDayRotatingFileHandler(
            str(log_dir / filename),
            max_bytes=rotation.max_bytes,
            backup_count=rotation.backup_count,
            daily=rotation.daily,
            compress=rotation.compress,
        )
        handler.setLevel(sink_config.file_thresholds[name])
        handler.setFormatter(json_formatter)
        handlers.append(handler)

    root = logging.getLogger()
    for existing in root.handlers[:]:
        if getattr(existing, OWNED_MARKER, False):
            root.removeHandler(existing)
            existing.close()
    for handler in handlers:
        setattr(handler, OWNED_MARKER, True)
        root.addHandler(handler)
    # Handlers filter by their own thresholds; the root passes everything
    root.setLevel(logging.DEBUG)

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    logger.debug(
        "Logging configured",
        extra={
            "environment": settings.environment,
            "log_dir": str(log_dir.resolve()),
        },
    )
    return sink_config
