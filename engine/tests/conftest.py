"""
Pytest configuration and shared fixtures.
"""

import random
from collections.abc import Generator

import pytest

from resilience_engine.config import Settings, reset_settings
from resilience_engine.logging import clear_log_context
from tests.fixtures.fake_cluster import FakeCluster, FakeCommandRunner, make_test_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure no deployment settings leak into tests from the shell or a local .env."""
    env_vars = [
        "GATEWAY_URL",
        "USER_SERVICE_URL",
        "ORDER_SERVICE_URL",
        "CONCURRENT_USERS",
        "REQUESTS_PER_USER",
        "TEST_TIMEOUT_S",
        "RAMP_UP_TIME_S",
        "RESILIENCE_LOG_LEVEL",
        "RESILIENCE_REPORT_DIR",
        "RESILIENCE_STARTUP_DELAY_S",
    ]
    for var in env_vars:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture(autouse=True)
def reset_globals() -> Generator[None, None, None]:
    """Reset cached settings and log context between tests."""
    yield
    reset_settings()
    clear_log_context()


@pytest.fixture(autouse=True)
def seed_random() -> Generator[None, None, None]:
    """Seed random for reproducible payloads."""
    random.seed(42)
    yield
    random.seed()


@pytest.fixture
def settings() -> Settings:
    """Settings pointed at the fake cluster with zero waits."""
    return make_test_settings()


@pytest.fixture
def cluster() -> FakeCluster:
    """A healthy fake deployment."""
    return FakeCluster()


@pytest.fixture
def fake_runner(cluster: FakeCluster) -> FakeCommandRunner:
    return FakeCommandRunner(cluster)
