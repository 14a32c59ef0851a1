"""
Chaos testing configuration and shared fixtures.

Provides common fixtures and configuration for failure injection tests.
"""

import pytest

from resilience_engine.config import Settings
from resilience_engine.runtime.context import HarnessContext
from resilience_engine.scenarios.runner import ScenarioRunner
from tests.fixtures.fake_cluster import FakeCluster, FakeCommandRunner, make_context


@pytest.fixture
def runner() -> ScenarioRunner:
    return ScenarioRunner()


@pytest.fixture
def chaos_context(cluster: FakeCluster, fake_runner: FakeCommandRunner, settings: Settings) -> HarnessContext:
    """Harness wired to the fake cluster and fake command runner."""
    return make_context(cluster, settings, fake_runner)
