"""
Service Template — Test Configuration (conftest.py)
=====================================================

What:  Shared pytest fixtures for the entire test suite.
Why:   Provides reusable test infrastructure (settings, app, API client,
       fake clocks, log isolation).
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── settings: Settings for a neutral "test" environment, logs in tmp_path
    ├── make_app: Factory building an app from Settings overrides
    ├── test_client: HTTPX AsyncClient bound to a fresh app
    ├── fake_clock: Manually advanced monotonic clock
    └── restore_root_logger: Undo setup_logging() side effects
"""

import logging
import os
import tempfile

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient


# ══════════════════════════════════════════════════════════════════════════
# Environment Setup
# ══════════════════════════════════════════════════════════════════════════

# Override settings for testing BEFORE any app imports
# Why: importing service_template.main builds a default app from the environment
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_DIR"] = tempfile.mkdtemp(prefix="service_template_test_")

from service_template.config import Settings  # noqa: E402
from service_template.main import create_app  # noqa: E402


class FakeClock:
    """Monotonic clock advanced explicitly by the test."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures (created fresh for each test)
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def settings(tmp_path):
    """Settings for an environment that is neither development nor production."""
    return Settings(environment="test", log_dir=str(tmp_path / "logs"))


@pytest.fixture
def make_app(tmp_path):
    """
    Build an app from keyword overrides.

    Usage:
        app = make_app(environment="development", slow_route_delay_seconds=0)
    """

    def factory(**overrides):
        overrides.setdefault("environment", "test")
        overrides.setdefault("log_dir", str(tmp_path / "logs"))
        collaborators = {
            key: overrides.pop(key)
            for key in ("limiter", "instrumentation", "responder")
            if key in overrides
        }
        return create_app(Settings(**overrides), **collaborators)

    return factory


@pytest_asyncio.fixture
async def test_client(make_app):
    """
    Provides an async HTTP test client for endpoint testing.

    Uses ASGITransport to route requests directly to the app (no server,
    no lifespan, so no log files are opened).
    """
    app = make_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def restore_root_logger():
    """Snapshot root logger handlers/level and restore them after the test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
